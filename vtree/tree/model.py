"""
vtree Tree: Tree and Virtual Paths.

A Tree is a named root Directory plus tree-level metadata and a dirty
flag. A VirtualPath is the sequence of child names leading from the root
to a node; two paths are the same node iff their segments are equal.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from vtree.core.constants import (
    CURRENT_SEGMENT,
    PARENT_SEGMENT,
    PATH_SEPARATOR,
    STORE_FORMAT_VERSION,
)
from vtree.core.errors import StoreCorruptError
from vtree.core.validators import ValidationError, validate_tree_name, validate_version
from vtree.tree.node import Directory, Reference, node_from_dict


@dataclass(frozen=True)
class VirtualPath:
    """Absolute, normalized position inside a tree.

    Attributes:
        parts: Child names from the root; empty for the root itself
    """

    parts: Tuple[str, ...] = ()

    @classmethod
    def root(cls) -> "VirtualPath":
        return cls(())

    @classmethod
    def parse(cls, text: str) -> "VirtualPath":
        """Parse an absolute path string such as ``/data/a``.

        ``.`` and empty segments are dropped; ``..`` is not accepted here
        (use the resolver for relative navigation).

        Raises:
            ValueError: If the string contains ``..``
        """
        parts = []
        for segment in split_segments(text):
            if segment == PARENT_SEGMENT:
                raise ValueError(f"Not a normalized path: {text}")
            parts.append(segment)
        return cls(tuple(parts))

    @property
    def is_root(self) -> bool:
        return not self.parts

    @property
    def name(self) -> str:
        """Last segment ("" for the root)."""
        return self.parts[-1] if self.parts else ""

    @property
    def parent(self) -> "VirtualPath":
        """Parent path; the root is its own parent."""
        return VirtualPath(self.parts[:-1])

    def join(self, name: str) -> "VirtualPath":
        return VirtualPath(self.parts + (name,))

    def is_ancestor_of(self, other: "VirtualPath") -> bool:
        """True if ``other`` lies strictly below this path."""
        return len(other.parts) > len(self.parts) and other.parts[: len(self.parts)] == self.parts

    def __str__(self) -> str:
        return PATH_SEPARATOR + PATH_SEPARATOR.join(self.parts)


def split_segments(text: str) -> List[str]:
    """Split a virtual path string into segments.

    Empty segments (doubled or trailing separators) and ``.`` are dropped;
    ``..`` is kept for the caller to interpret.
    """
    return [s for s in text.split(PATH_SEPARATOR) if s and s != CURRENT_SEGMENT]


def is_absolute(text: str) -> bool:
    return text.startswith(PATH_SEPARATOR)


@dataclass
class Tree:
    """
    A named virtual tree.

    Attributes:
        name: Tree name, the store key and the prompt's root marker
        root: Root directory (its name mirrors the tree name)
        description: Optional free text shown by `list`
        dirty: True when the in-memory tree differs from the saved one
    """

    name: str
    root: Directory = field(default=None)  # type: ignore[assignment]
    description: Optional[str] = None
    dirty: bool = False

    def __post_init__(self):
        if self.root is None:
            self.root = Directory(name=self.name)

    @classmethod
    def new(cls, name: str, description: Optional[str] = None) -> "Tree":
        """Create an empty tree.

        Raises:
            ValidationError: If the name is not a valid tree name
        """
        validate_tree_name(name)
        return cls(name=name, description=description, dirty=True)

    def mark_dirty(self) -> None:
        self.dirty = True

    def mark_clean(self) -> None:
        self.dirty = False

    def references(self) -> List[Tuple[str, Reference]]:
        """All references with their virtual paths."""
        return [(path, node) for path, node in self.root.walk() if isinstance(node, Reference)]

    def dangling(self) -> List[Tuple[str, Reference]]:
        """References whose target is currently missing."""
        return [(path, ref) for path, ref in self.references() if ref.is_dangling()]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"version": STORE_FORMAT_VERSION, "name": self.name}
        if self.description is not None:
            data["description"] = self.description
        root = self.root.to_dict()
        root.pop("name", None)
        root.pop("kind", None)
        root.pop("description", None)
        data["root"] = root
        return data

    @classmethod
    def from_dict(cls, data: Any, expected_name: Optional[str] = None) -> "Tree":
        """Rebuild a tree from its serialized form.

        Args:
            data: Dictionary produced by ``to_dict``
            expected_name: Store key the record was found under

        Raises:
            StoreCorruptError: If the data is malformed
        """
        if not isinstance(data, dict):
            raise StoreCorruptError("Tree record is not a mapping")

        version = str(data.get("version", STORE_FORMAT_VERSION))
        try:
            validate_version(version)
        except ValidationError as e:
            raise StoreCorruptError(e.message)
        if version.split(".")[0] != STORE_FORMAT_VERSION.split(".")[0]:
            raise StoreCorruptError(f"Unsupported record version {version}")

        name = data.get("name", expected_name)
        try:
            validate_tree_name(name)
        except ValidationError as e:
            raise StoreCorruptError(f"Invalid tree name in record: {e.message}")
        if expected_name is not None and name != expected_name:
            raise StoreCorruptError(f"Record names tree {name!r}, expected {expected_name!r}")

        description = data.get("description")
        if description is not None and not isinstance(description, str):
            raise StoreCorruptError("Tree description must be text")

        root_data = data.get("root") or {}
        if not isinstance(root_data, dict):
            raise StoreCorruptError("Tree root is not a mapping")
        root_data = dict(root_data, kind="directory", name=name)
        root = node_from_dict(root_data)
        if not isinstance(root, Directory):
            raise StoreCorruptError("Tree root is not a directory")

        return cls(name=name, root=root, description=description, dirty=False)
