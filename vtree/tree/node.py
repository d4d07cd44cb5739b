"""
vtree Tree: Node Variants.

A node is one of two variants, told apart by their ``kind`` tag:

- Directory: named children, owned exclusively by this directory
- Reference: a named pointer to a real filesystem path

Example structure:
    Project_A/
        data/
            a -> /abs/221006/experiment_221006-A.csv
        notes -> /home/me/notes.md
"""

import os
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Tuple, Union

from vtree.core.constants import PATH_SEPARATOR, NodeKind
from vtree.core.errors import NameCollisionError, PathNotFoundError, StoreCorruptError
from vtree.core.validators import ValidationError, validate_node_name


@dataclass
class Reference:
    """
    Leaf node pointing at a real file or directory.

    Attributes:
        name: Name inside the parent directory
        target: Real path as stored; it may not exist (dangling)
        description: Optional free text
    """

    name: str
    target: str
    description: Optional[str] = None

    kind: ClassVar[NodeKind] = NodeKind.REFERENCE

    def exists(self) -> bool:
        """Check whether the target currently exists on disk."""
        return os.path.exists(self.target)

    def is_dangling(self) -> bool:
        """Check whether the target is currently missing."""
        return not self.exists()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "kind": self.kind.value,
            "name": self.name,
            "target": self.target,
        }
        if self.description is not None:
            data["description"] = self.description
        return data


@dataclass
class Directory:
    """
    Interior node owning a set of uniquely named children.

    Children are kept in a dict keyed by name, so uniqueness holds by
    construction; ``add`` refuses to overwrite an existing entry. Names
    are compared case-sensitively.

    Attributes:
        name: Name inside the parent directory (tree name for the root)
        children: Mapping name -> Node
        description: Optional free text
    """

    name: str
    children: Dict[str, "Node"] = field(default_factory=dict)
    description: Optional[str] = None

    kind: ClassVar[NodeKind] = NodeKind.DIRECTORY

    def __contains__(self, name: str) -> bool:
        return name in self.children

    def __len__(self) -> int:
        return len(self.children)

    def get(self, name: str) -> Optional["Node"]:
        """Get a child by exact name, or None."""
        return self.children.get(name)

    def child(self, name: str) -> "Node":
        """Get a child by exact name.

        Raises:
            PathNotFoundError: If there is no such child
        """
        node = self.children.get(name)
        if node is None:
            raise PathNotFoundError(f"No such file or directory: {name}")
        return node

    def add(self, node: "Node") -> "Node":
        """Attach a node as a new child.

        Raises:
            NameCollisionError: If a child with the same name exists
        """
        if node.name in self.children:
            raise NameCollisionError(f"{node.name} already exists in {self.name or '/'}")
        self.children[node.name] = node
        return node

    def detach(self, name: str) -> "Node":
        """Remove and return a child.

        Raises:
            PathNotFoundError: If there is no such child
        """
        node = self.child(name)
        del self.children[name]
        return node

    def sorted_children(self) -> List["Node"]:
        """Children ordered by name."""
        return [self.children[name] for name in sorted(self.children)]

    def walk(self, prefix: str = "") -> Iterator[Tuple[str, "Node"]]:
        """Yield ``(virtual_path, node)`` for every descendant, depth first.

        Args:
            prefix: Virtual path of this directory ("" for the root)
        """
        for node in self.sorted_children():
            path = f"{prefix}{PATH_SEPARATOR}{node.name}"
            yield path, node
            if isinstance(node, Directory):
                yield from node.walk(path)

    def count(self) -> int:
        """Number of descendants."""
        return sum(1 for _ in self.walk())

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind.value, "name": self.name}
        if self.description is not None:
            data["description"] = self.description
        data["children"] = [child.to_dict() for child in self.sorted_children()]
        return data


Node = Union[Directory, Reference]


def node_from_dict(data: Any, where: str = "") -> Node:
    """Rebuild a node (and its subtree) from its serialized form.

    Args:
        data: Dictionary produced by ``to_dict``
        where: Virtual path of the node, used in error messages

    Returns:
        Directory or Reference

    Raises:
        StoreCorruptError: If the data is malformed
    """
    if not isinstance(data, dict):
        raise StoreCorruptError(f"Node at {where or '/'} is not a mapping")

    try:
        kind = NodeKind(data.get("kind"))
    except ValueError:
        raise StoreCorruptError(f"Unknown node kind at {where or '/'}: {data.get('kind')!r}")

    name = data.get("name")
    description = data.get("description")
    if description is not None and not isinstance(description, str):
        raise StoreCorruptError(f"Description at {where or '/'} must be text")

    if kind is NodeKind.REFERENCE:
        target = data.get("target")
        if not isinstance(target, str) or not target:
            raise StoreCorruptError(f"Reference at {where} has no target")
        return Reference(name=name, target=target, description=description)

    directory = Directory(name=name, description=description)
    children = data.get("children") or []
    if not isinstance(children, list):
        raise StoreCorruptError(f"Children of {where or '/'} must be a list")

    for child_data in children:
        child_name = child_data.get("name") if isinstance(child_data, dict) else None
        child_where = f"{where}{PATH_SEPARATOR}{child_name}"
        try:
            validate_node_name(child_name)
        except ValidationError as e:
            raise StoreCorruptError(f"Invalid node name at {child_where}: {e.message}")
        try:
            directory.add(node_from_dict(child_data, child_where))
        except NameCollisionError:
            raise StoreCorruptError(f"Duplicate name at {child_where}")

    return directory
