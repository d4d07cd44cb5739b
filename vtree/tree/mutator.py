"""
vtree Tree: Structural Operations.

The Mutator is the only way nodes are created, removed, renamed, moved or
described. Each operation checks everything it needs before touching the
tree, so a failed call leaves the tree exactly as it was, and each
successful call marks the tree dirty for the next save.

Reference targets are made absolute when added. Their existence is only
checked to log a warning: a reference may point at a file that does not
exist yet.
"""

import os
from typing import Optional, Union

from vtree.core.constants import ErrorCode
from vtree.core.errors import NameCollisionError, VTreeError
from vtree.core.validators import (
    validate_description,
    validate_node_name,
    validate_target_path,
)
from vtree.infrastructure.logger import Logger, get_logger
from vtree.tree.model import Tree, VirtualPath
from vtree.tree.node import Directory, Node, Reference
from vtree.tree.resolver import resolve, resolve_directory, resolve_parent


def normalize_target(real_path: str, base_dir: Optional[str] = None) -> str:
    """Expand ``~`` and make a real path absolute (without resolving symlinks)."""
    expanded = os.path.expanduser(real_path)
    if not os.path.isabs(expanded):
        expanded = os.path.join(base_dir or os.getcwd(), expanded)
    return os.path.normpath(expanded)


class Mutator:
    """
    Structural operations on one tree.

    Relative paths are interpreted from ``current_dir`` (the root unless a
    session passes its working directory).

    Example:
        >>> mutator = Mutator(tree)
        >>> mutator.mkdir("/", "data")
        >>> mutator.add_reference("/data", "a", "/abs/221006/experiment_221006-A.csv")
    """

    def __init__(
        self,
        tree: Tree,
        current_dir: Union[VirtualPath, str, None] = None,
        logger: Optional[Logger] = None,
    ):
        self.tree = tree
        if current_dir is None:
            current_dir = VirtualPath.root()
        elif isinstance(current_dir, str):
            current_dir = VirtualPath.parse(current_dir)
        self.current_dir = current_dir
        self.logger = logger or get_logger("vtree.mutator")

    def _parent_dir(self, parent_path: str) -> Directory:
        return resolve_directory(self.tree, self.current_dir, parent_path).node

    def _check_free(self, parent: Directory, name: str, parent_label: str) -> None:
        validate_node_name(name)
        if name in parent:
            raise NameCollisionError(f"{name} already exists in {parent_label}")

    def _resolve_node(self, path: str):
        result = resolve(self.tree, self.current_dir, path)
        if result.path.is_root:
            raise VTreeError(
                f"The root of [{self.tree.name}] cannot be changed this way", ErrorCode.INVALID_INPUT
            )
        return result

    def mkdir(self, parent_path: str, name: str) -> Directory:
        """Create an empty directory ``name`` under ``parent_path``.

        Raises:
            NameCollisionError: If the name is taken
            PathNotFoundError / NotADirectoryError: If the parent is not a directory
            ValidationError: If the name is invalid
        """
        parent = resolve_directory(self.tree, self.current_dir, parent_path)
        self._check_free(parent.node, name, str(parent.path))

        node = parent.node.add(Directory(name=name))
        self.tree.mark_dirty()
        self.logger.debug("Created directory", path=str(parent.path.join(name)))
        return node

    def mkdir_path(self, path: str) -> Directory:
        """Create a directory addressed by its full path (parent must exist)."""
        parent, name = resolve_parent(self.tree, self.current_dir, path)
        return self.mkdir(str(parent.path), name)

    def add_reference(
        self,
        parent_path: str,
        name: str,
        real_path: str,
        description: Optional[str] = None,
    ) -> Reference:
        """Add a reference ``name`` -> ``real_path`` under ``parent_path``.

        A missing target is logged as a warning and the reference is
        created anyway.

        Raises:
            NameCollisionError: If the name is taken
            PathNotFoundError / NotADirectoryError: If the parent is not a directory
            ValidationError: If the name, path or description is invalid
        """
        parent = resolve_directory(self.tree, self.current_dir, parent_path)
        self._check_free(parent.node, name, str(parent.path))
        validate_target_path(real_path)
        validate_description(description)

        target = normalize_target(real_path)
        node = Reference(name=name, target=target, description=description)
        virtual = str(parent.path.join(name))
        if node.is_dangling():
            self.logger.warning("Reference target does not exist", path=virtual, target=target)

        parent.node.add(node)
        self.tree.mark_dirty()
        self.logger.debug("Added reference", path=virtual, target=target)
        return node

    def add_path(self, path: str, real_path: str, description: Optional[str] = None) -> Reference:
        """Add a reference addressed by its full virtual path."""
        parent, name = resolve_parent(self.tree, self.current_dir, path)
        return self.add_reference(str(parent.path), name, real_path, description)

    def remove(self, path: str) -> Node:
        """Remove a reference, or a directory together with its whole subtree.

        Callers that want to protect non-empty directories check
        ``len(node)`` first; this operation does not ask.

        Raises:
            PathNotFoundError: If the path does not exist
            VTreeError: If the path is the root
        """
        result = self._resolve_node(path)
        parent = self._parent_dir(str(result.path.parent))

        removed = parent.detach(result.path.name)
        self.tree.mark_dirty()
        if isinstance(removed, Directory):
            self.logger.debug("Removed directory", path=str(result.path), descendants=removed.count())
        else:
            self.logger.debug("Removed reference", path=str(result.path))
        return removed

    def rename(self, path: str, new_name: str) -> Node:
        """Rename a node in place.

        Raises:
            NameCollisionError: If a sibling already has ``new_name``
            PathNotFoundError: If the path does not exist
        """
        result = self._resolve_node(path)
        if new_name == result.path.name:
            return result.node

        parent = self._parent_dir(str(result.path.parent))
        self._check_free(parent, new_name, str(result.path.parent))

        node = parent.detach(result.path.name)
        node.name = new_name
        parent.add(node)
        self.tree.mark_dirty()
        self.logger.debug("Renamed", path=str(result.path), new_name=new_name)
        return node

    def move(self, path: str, new_parent_path: str) -> Node:
        """Move a node under another directory, keeping its name.

        Raises:
            NameCollisionError: If the destination already has that name
            NotADirectoryError: If the destination is not a directory
            VTreeError: If a directory would be moved into itself or below
        """
        result = self._resolve_node(path)
        destination = resolve_directory(self.tree, self.current_dir, new_parent_path)

        if destination.path == result.path or result.path.is_ancestor_of(destination.path):
            raise VTreeError(f"Cannot move {result.path} into itself", ErrorCode.INVALID_INPUT)
        if destination.path == result.path.parent:
            return result.node

        self._check_free(destination.node, result.path.name, str(destination.path))

        parent = self._parent_dir(str(result.path.parent))
        node = destination.node.add(parent.detach(result.path.name))
        self.tree.mark_dirty()
        self.logger.debug("Moved", path=str(result.path), to=str(destination.path))
        return node

    def set_description(self, path: str, text: Optional[str]) -> None:
        """Set (or clear with None) the description of a node.

        The root path sets the tree's own description.

        Raises:
            PathNotFoundError: If the path does not exist
            ValidationError: If the text is invalid
        """
        validate_description(text)
        result = resolve(self.tree, self.current_dir, path)
        if result.path.is_root:
            self.tree.description = text
        else:
            result.node.description = text
        self.tree.mark_dirty()


def describe(tree: Tree, current_dir: Union[VirtualPath, str], path: str) -> Optional[str]:
    """Read the description of a node (the tree's own for the root)."""
    result = resolve(tree, current_dir, path)
    if result.path.is_root:
        return tree.description
    return result.node.description
