"""
vtree Session: Navigation State.

A Session owns one loaded tree for its whole lifetime:

    NOT_ENTERED --enter()--> ENTERED --exit()--> EXITED

``enter`` takes the tree lock before loading, ``exit`` saves pending
changes and gives the lock back. EXITED is terminal. The working
directory is kept as a VirtualPath and re-resolved from the root on
every use, so ``cd ..`` never follows a parent pointer.

Example:
    >>> with Session(store) as session:
    ...     session.enter("Project_A")
    ...     session.cd("/data")
    ...     [entry.name for entry in session.ls()]
    ['a']
"""

import os
from enum import Enum
from typing import List, Optional

import jinja2

from vtree.core.constants import DEFAULT_PROMPT, ErrorCode
from vtree.core.errors import DirectoryNotEmptyError, NotADirectoryError, SessionError, VTreeError
from vtree.infrastructure.config_manager import ConfigError
from vtree.infrastructure.logger import Logger, get_logger
from vtree.store.lock import TreeLock
from vtree.store.tree_store import TreeStore
from vtree.tree.model import Tree, VirtualPath
from vtree.tree.mutator import Mutator, describe
from vtree.tree.node import Directory, Node, Reference
from vtree.tree.render import ListingEntry, list_entries, render_tree
from vtree.tree.resolver import Resolved, ResolvedReference, resolve, resolve_directory


class SessionState(Enum):
    NOT_ENTERED = "not_entered"
    ENTERED = "entered"
    EXITED = "exited"


def compile_prompt(template: str) -> jinja2.Template:
    """Compile a prompt template.

    Templates see ``tree`` (tree name) and ``cwd`` (current virtual path).

    Raises:
        ConfigError: If the template does not parse
    """
    env = jinja2.Environment(autoescape=False, keep_trailing_newline=True)
    try:
        return env.from_string(template)
    except jinja2.TemplateError as e:
        raise ConfigError(f"Invalid prompt template: {e}")


class Session:
    """
    Interactive navigation over one tree.

    Attributes:
        store: Store the tree is loaded from and saved to
        state: Current lifecycle state
        tree: Loaded tree (None until entered)
        current: Working directory
    """

    def __init__(
        self,
        store: TreeStore,
        prompt_template: str = DEFAULT_PROMPT,
        logger: Optional[Logger] = None,
    ):
        self.store = store
        self.logger = logger or get_logger("vtree.session")
        self.state = SessionState.NOT_ENTERED
        self.tree: Optional[Tree] = None
        self.current = VirtualPath.root()
        self._lock: Optional[TreeLock] = None
        self._prompt = compile_prompt(prompt_template)

    # Lifecycle

    def _require_entered(self) -> Tree:
        if self.state is SessionState.NOT_ENTERED:
            raise SessionError("No tree entered")
        if self.state is SessionState.EXITED:
            raise SessionError("Session has ended")
        return self.tree

    def enter(self, tree_name: str) -> Tree:
        """Lock and load a tree, starting at its root.

        Raises:
            SessionError: If a tree is already entered or the session ended
            TreeNotFoundError / StoreCorruptError / LockHeldError: Nothing changes
        """
        if self.state is not SessionState.NOT_ENTERED:
            raise SessionError(
                "Session has ended" if self.state is SessionState.EXITED else "A tree is already entered"
            )

        lock = self.store.lock(tree_name).acquire()
        try:
            tree = self.store.load(tree_name)
        except BaseException:
            lock.release()
            raise

        self._lock = lock
        self.tree = tree
        self.current = VirtualPath.root()
        self.state = SessionState.ENTERED
        self.logger.info("Entered tree", tree=tree_name)
        return tree

    def save(self) -> None:
        """Write the tree now, dirty or not."""
        tree = self._require_entered()
        self.store.save(tree)

    def exit(self) -> None:
        """Save if dirty, release the lock and end the session.

        Exiting a session that never entered a tree just ends it. If saving
        fails the error is raised and the session stays ENTERED with its
        lock and unsaved changes, so the caller can retry.
        """
        if self.state is SessionState.EXITED:
            return
        if self.state is SessionState.ENTERED and self.tree.dirty:
            self.store.save(self.tree)
        self._close()

    def _close(self) -> None:
        if self._lock is not None:
            self._lock.release()
            self._lock = None
        self.state = SessionState.EXITED
        if self.tree is not None:
            self.logger.info("Left tree", tree=self.tree.name)

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # Leaving the block always gives the lock back, even if the final save fails
        try:
            self.exit()
        finally:
            if self.state is not SessionState.EXITED:
                self.logger.warning("Unsaved changes discarded", tree=self.tree.name)
                self._close()

    # Navigation

    @property
    def tree_name(self) -> str:
        return self._require_entered().name

    def resolve(self, path: str) -> Resolved:
        """Resolve a path from the working directory."""
        return resolve(self._require_entered(), self.current, path)

    def cd(self, path: Optional[str] = None) -> VirtualPath:
        """Change the working directory; no path means the root.

        Raises:
            PathNotFoundError: If the path does not exist (directory unchanged)
            NotADirectoryError: If the path names a reference (directory unchanged)
        """
        tree = self._require_entered()
        if path is None:
            self.current = VirtualPath.root()
        else:
            self.current = resolve_directory(tree, self.current, path).path
        return self.current

    def ls(self, path: Optional[str] = None) -> List[ListingEntry]:
        """Children of the working (or given) directory, sorted by name."""
        return list_entries(self.resolve(path if path is not None else "."))

    def pwd(self) -> str:
        self._require_entered()
        return str(self.current)

    def location(self) -> str:
        """Working directory qualified by the tree name, e.g. ``/[Project_A]/data``."""
        tree = self._require_entered()
        cwd = "" if self.current.is_root else str(self.current)
        return f"/[{tree.name}]{cwd}"

    def prompt(self) -> str:
        tree = self._require_entered()
        return self._prompt.render(tree=tree.name, cwd=str(self.current))

    def tree_text(self, path: Optional[str] = None) -> str:
        result = self.resolve(path if path is not None else ".")
        title = None
        if result.path.is_root:
            title = self.tree.name
        elif isinstance(result.node, Directory):
            title = str(result.path)
        return render_tree(result.node, title=title)

    # Mutation

    def _mutator(self) -> Mutator:
        return Mutator(self._require_entered(), self.current, logger=self.logger)

    def _follow(self, old: VirtualPath, new: Optional[VirtualPath]) -> None:
        """Keep the working directory valid after ``old`` moved to ``new``
        (or was removed, when ``new`` is None)."""
        if self.current != old and not old.is_ancestor_of(self.current):
            return
        if new is None:
            self.current = VirtualPath.root()
        else:
            self.current = VirtualPath(new.parts + self.current.parts[len(old.parts):])

    def mkdir(self, path: str) -> Directory:
        return self._mutator().mkdir_path(path)

    def add(self, path: str, real_path: str, description: Optional[str] = None) -> Reference:
        return self._mutator().add_path(path, real_path, description)

    def add_file(
        self, real_path: str, path: Optional[str] = None, description: Optional[str] = None
    ) -> Reference:
        """Add a reference to ``real_path``; without ``path`` it is named after
        the file and placed in the working directory."""
        if path is not None:
            return self.add(path, real_path, description)
        name = os.path.basename(os.path.normpath(os.path.expanduser(real_path)))
        return self._mutator().add_reference(".", name, real_path, description)

    def read(self, path: str) -> bytes:
        """Contents of the file a reference points at.

        Raises:
            NotADirectoryError: If the path names a directory
            VTreeError: If the target cannot be read
        """
        result = self.resolve(path)
        if not isinstance(result, ResolvedReference):
            raise NotADirectoryError(f"{result.path} is a directory, not a file reference")
        try:
            with open(result.target, "rb") as f:
                return f.read()
        except OSError as e:
            raise VTreeError(
                f"Cannot read {result.target}: {e.strerror or e}", ErrorCode.IO_FAILURE
            )

    def rm(self, path: str, recursive: bool = False) -> Node:
        """Remove a node; a non-empty directory needs ``recursive``.

        Raises:
            DirectoryNotEmptyError: If the directory has children (tree unchanged)
        """
        result = self.resolve(path)
        if isinstance(result.node, Directory) and len(result.node) and not recursive:
            raise DirectoryNotEmptyError(
                f"Directory {result.path} is not empty (use -r to remove it with its contents)"
            )
        removed = self._mutator().remove(path)
        self._follow(result.path, None)
        return removed

    def mv(self, path: str, destination: str) -> Node:
        source = self.resolve(path).path
        target = resolve_directory(self._require_entered(), self.current, destination).path
        node = self._mutator().move(path, destination)
        self._follow(source, target.join(node.name))
        return node

    def rename(self, path: str, new_name: str) -> Node:
        source = self.resolve(path).path
        node = self._mutator().rename(path, new_name)
        self._follow(source, source.parent.join(new_name))
        return node

    def describe(self, path: str) -> Optional[str]:
        return describe(self._require_entered(), self.current, path)

    def set_description(self, path: str, text: Optional[str]) -> None:
        self._mutator().set_description(path, text)
