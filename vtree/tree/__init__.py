"""
vtree Tree - Virtual tree model.

Public API:
-----------

Nodes:
    Directory: Interior node owning uniquely named children
    Reference: Leaf pointing at a real file or directory
    node_from_dict: Rebuild a node from its serialized form

Tree:
    Tree: Named root directory plus metadata and a dirty flag
    VirtualPath: Normalized position inside a tree

Resolution:
    resolve: Virtual path string -> ResolvedDirectory | ResolvedReference
    resolve_directory: Same, but the path must name a directory

Structure:
    Mutator: Create, remove, rename, move and describe nodes

Rendering:
    ListingEntry, list_entries, format_listing: `ls` output
    render_tree: `tree` output
"""

from vtree.tree.model import Tree, VirtualPath
from vtree.tree.mutator import Mutator, describe, normalize_target
from vtree.tree.node import Directory, Node, Reference, node_from_dict
from vtree.tree.render import ListingEntry, format_listing, list_entries, render_tree
from vtree.tree.resolver import (
    Resolved,
    ResolvedDirectory,
    ResolvedReference,
    resolve,
    resolve_directory,
    resolve_parent,
)

__all__ = [
    "Directory",
    "Reference",
    "Node",
    "node_from_dict",
    "Tree",
    "VirtualPath",
    "Resolved",
    "ResolvedDirectory",
    "ResolvedReference",
    "resolve",
    "resolve_directory",
    "resolve_parent",
    "Mutator",
    "describe",
    "normalize_target",
    "ListingEntry",
    "list_entries",
    "format_listing",
    "render_tree",
]
