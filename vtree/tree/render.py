"""
vtree Tree: Listings and Tree Rendering.

Formats directory listings for `ls` and whole subtrees for `tree`:

    Project_A
      ├─ data/
      │  └─ a -> /abs/221006/experiment_221006-A.csv
      └─ notes -> /home/me/notes.md (!)

Dangling references are flagged with "(!)" in trees and "!" in listings.
"""

from dataclasses import dataclass
from typing import List, Optional

from vtree.core.constants import NodeKind
from vtree.tree.node import Directory, Node, Reference
from vtree.tree.resolver import Resolved, ResolvedReference

DANGLING_MARK = "!"


@dataclass(frozen=True)
class ListingEntry:
    """One line of an `ls` listing.

    Attributes:
        name: Node name
        kind: Directory or reference
        target: Real path for references, None for directories
        description: Node description, if any
        dangling: True for references whose target is missing right now
    """

    name: str
    kind: NodeKind
    target: Optional[str] = None
    description: Optional[str] = None
    dangling: bool = False

    @property
    def is_directory(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    @classmethod
    def from_node(cls, node: Node) -> "ListingEntry":
        if isinstance(node, Reference):
            return cls(
                name=node.name,
                kind=NodeKind.REFERENCE,
                target=node.target,
                description=node.description,
                dangling=node.is_dangling(),
            )
        return cls(name=node.name, kind=NodeKind.DIRECTORY, description=node.description)


def list_entries(result: Resolved) -> List[ListingEntry]:
    """Entries for a resolved path: the children of a directory, sorted by
    name, or the single entry of a reference."""
    if isinstance(result, ResolvedReference):
        return [ListingEntry.from_node(result.node)]
    return [ListingEntry.from_node(child) for child in result.node.sorted_children()]


def format_entry(entry: ListingEntry, long: bool = False) -> str:
    """Format one listing line.

    Short form: ``data/`` for directories, ``a`` for references (``a !``
    when dangling). Long form adds kind, target and description.
    """
    if entry.is_directory:
        line = f"{entry.name}/"
        if long:
            line = f"d  {line}"
    else:
        line = entry.name
        if long:
            flag = DANGLING_MARK if entry.dangling else " "
            line = f"{flag}  {line} -> {entry.target}"
        elif entry.dangling:
            line = f"{line} {DANGLING_MARK}"

    if long and entry.description:
        line = f"{line}  # {entry.description}"
    return line


def format_listing(entries: List[ListingEntry], long: bool = False) -> str:
    return "\n".join(format_entry(entry, long) for entry in entries)


def _label(node: Node) -> str:
    if isinstance(node, Directory):
        return f"{node.name}/"
    label = f"{node.name} -> {node.target}"
    if node.is_dangling():
        label = f"{label} ({DANGLING_MARK})"
    return label


def _render_children(directory: Directory, prefix: str, lines: List[str]) -> None:
    children = directory.sorted_children()
    for index, child in enumerate(children):
        last = index == len(children) - 1
        lines.append(f"{prefix}{'└─' if last else '├─'} {_label(child)}")
        if isinstance(child, Directory):
            _render_children(child, prefix + ("   " if last else "│  "), lines)


def render_tree(node: Node, title: Optional[str] = None) -> str:
    """Render a node and everything below it.

    Args:
        node: Directory (or single reference) to render
        title: First line; defaults to the node name

    Returns:
        Multi-line string without trailing newline
    """
    if isinstance(node, Reference):
        return _label(node)

    lines = [title if title is not None else node.name]
    _render_children(node, "  ", lines)
    return "\n".join(lines)
