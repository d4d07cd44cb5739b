"""
vtree Store: Persistent Trees.

Each tree is one hand-editable YAML document:

    <store>/trees/Project_A.yaml

    version: '1.0'
    name: Project_A
    description: Experiment data
    root:
      children:
      - kind: directory
        name: data
        children:
        - kind: reference
          name: a
          target: /abs/221006/experiment_221006-A.csv

Saving writes a temporary file next to the record, fsyncs it and renames
it over the old record, so a crash never leaves a half-written tree. A new
record gets mode 0644; a replaced record keeps its mode.
"""

import os
import stat
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple, Union

import yaml

from vtree.core.constants import Limits, StoreLayout
from vtree.core.errors import (
    NameCollisionError,
    StoreCorruptError,
    StoreIOError,
    TreeNotFoundError,
)
from vtree.core.validators import ValidationError, validate_tree_name
from vtree.infrastructure.logger import Logger, get_logger
from vtree.store.lock import TreeLock
from vtree.tree.model import Tree

RECORD_MODE = 0o644


class TreeStore:
    """
    Directory of persisted trees plus their lock files.

    Attributes:
        root: Store directory
        trees_dir: Where tree records live
        locks_dir: Where lock files live
    """

    def __init__(
        self,
        root: Union[str, Path],
        stale_seconds: float = Limits.DEFAULT_LOCK_STALE_SECONDS,
        logger: Optional[Logger] = None,
    ):
        self.root = Path(root).expanduser()
        self.trees_dir = self.root / StoreLayout.TREES_DIR
        self.locks_dir = self.root / StoreLayout.LOCKS_DIR
        self.stale_seconds = stale_seconds
        self.logger = logger or get_logger("vtree.store")

    def path_for(self, name: str) -> Path:
        """Record path for a tree name.

        Raises:
            ValidationError: If the name is not a valid tree name
        """
        validate_tree_name(name)
        return self.trees_dir / f"{name}{StoreLayout.TREE_SUFFIX}"

    def exists(self, name: str) -> bool:
        try:
            return self.path_for(name).is_file()
        except ValidationError:
            return False

    def list(self) -> List[str]:
        """Names of all stored trees, sorted."""
        if not self.trees_dir.is_dir():
            return []
        return sorted(
            path.name[: -len(StoreLayout.TREE_SUFFIX)]
            for path in self.trees_dir.iterdir()
            if path.is_file()
            and path.name.endswith(StoreLayout.TREE_SUFFIX)
            and not path.name.startswith(".")
        )

    def list_trees(self) -> List[Tuple[str, Optional[str]]]:
        """``(name, description)`` for every stored tree.

        Unreadable records are listed with a warning instead of failing the
        whole listing.
        """
        result = []
        for name in self.list():
            try:
                description = self.load(name).description
            except StoreCorruptError as e:
                self.logger.warning("Unreadable tree record", tree=name, error=e.message)
                description = None
            result.append((name, description))
        return result

    def load(self, name: str) -> Tree:
        """Load a tree.

        Raises:
            TreeNotFoundError: If no record exists
            StoreCorruptError: If the record cannot be parsed
            StoreIOError: If the record cannot be read
        """
        path = self.path_for(name)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise TreeNotFoundError(f"Virtual tree {name} does not exist")
        except OSError as e:
            raise StoreIOError(f"Cannot read {path}: {e}")

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise StoreCorruptError(f"Tree record {path} is not valid YAML: {e}")

        try:
            tree = Tree.from_dict(data, expected_name=name)
        except StoreCorruptError as e:
            raise StoreCorruptError(f"Tree record {path} is corrupt: {e.message}")

        self.logger.debug("Loaded tree", tree=name, nodes=tree.root.count())
        return tree

    def save(self, tree: Tree) -> None:
        """Write a tree atomically and mark it clean.

        Raises:
            StoreIOError: If writing fails (the previous record is kept)
        """
        path = self.path_for(tree.name)
        text = yaml.safe_dump(
            tree.to_dict(), sort_keys=False, allow_unicode=True, default_flow_style=False
        )

        tmp_name = None
        try:
            self.trees_dir.mkdir(parents=True, exist_ok=True)
            try:
                mode = stat.S_IMODE(path.stat().st_mode)
            except FileNotFoundError:
                mode = RECORD_MODE
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{tree.name}.", suffix=".tmp", dir=self.trees_dir
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                # mkstemp creates 0600
                os.fchmod(f.fileno(), mode)
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise StoreIOError(f"Cannot save tree {tree.name} to {path}: {e}")
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

        tree.mark_clean()
        self.logger.debug("Saved tree", tree=tree.name, path=str(path))

    def create(self, name: str, description: Optional[str] = None) -> Tree:
        """Create and save an empty tree.

        Raises:
            NameCollisionError: If a tree with that name exists
            ValidationError: If the name is invalid
        """
        if self.path_for(name).exists():
            raise NameCollisionError(f"Virtual tree {name} already exists")

        tree = Tree.new(name, description=description)
        self.save(tree)
        self.logger.info("Created tree", tree=name)
        return tree

    def delete(self, name: str) -> None:
        """Remove a tree record.

        Raises:
            TreeNotFoundError: If no record exists
            LockHeldError: If a session holds the tree
        """
        path = self.path_for(name)
        if not path.exists():
            raise TreeNotFoundError(f"Virtual tree {name} does not exist")

        with self.lock(name):
            try:
                path.unlink()
            except FileNotFoundError:
                raise TreeNotFoundError(f"Virtual tree {name} does not exist")
            except OSError as e:
                raise StoreIOError(f"Cannot delete {path}: {e}")

        self.logger.info("Deleted tree", tree=name)

    def lock(self, name: str) -> TreeLock:
        """Lock object for a tree (not yet acquired)."""
        validate_tree_name(name)
        return TreeLock(self.locks_dir, name, stale_seconds=self.stale_seconds, logger=self.logger)
