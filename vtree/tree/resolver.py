"""
vtree Tree: Path Resolution.

Turns a virtual path string into either a directory of the tree or the real
path a reference points to. Resolution is a pure function of the tree
contents, the current directory and the path string; nothing is cached
and the filesystem is never consulted, so navigation keeps working while
reference targets come and go.

Path syntax:
    /data/a      absolute, starts at the tree root
    data/a       relative to the current directory
    .            current directory (skipped)
    ..           parent directory (an error at the root)
"""

import os
from dataclasses import dataclass
from typing import List, Tuple, Union

from vtree.core.constants import CURRENT_SEGMENT, PARENT_SEGMENT, PATH_SEPARATOR
from vtree.core.errors import NotADirectoryError, PathNotFoundError
from vtree.tree.model import Tree, VirtualPath, is_absolute, split_segments
from vtree.tree.node import Directory, Reference


@dataclass(frozen=True)
class ResolvedDirectory:
    """A path that names a directory."""

    path: VirtualPath
    node: Directory


@dataclass(frozen=True)
class ResolvedReference:
    """A path that names a reference.

    Attributes:
        path: Normalized virtual path of the reference
        node: The reference itself
        target: Stored real path, returned whether or not it exists
    """

    path: VirtualPath
    node: Reference

    @property
    def target(self) -> str:
        return self.node.target

    def is_dangling(self) -> bool:
        return not os.path.exists(self.target)


Resolved = Union[ResolvedDirectory, ResolvedReference]


def _walk_to(tree: Tree, path: VirtualPath) -> Tuple[List[str], List[Directory]]:
    """Re-walk a stored directory path from the root."""
    names: List[str] = []
    stack: List[Directory] = [tree.root]
    for name in path.parts:
        node = stack[-1].get(name)
        if node is None:
            raise PathNotFoundError(f"Current directory no longer exists: {path}")
        if not isinstance(node, Directory):
            raise NotADirectoryError(f"Not a directory: {VirtualPath(tuple(names + [name]))}")
        names.append(name)
        stack.append(node)
    return names, stack


def resolve(tree: Tree, current_dir: Union[VirtualPath, str], virtual_path: str) -> Resolved:
    """
    Resolve a virtual path against a tree.

    Args:
        tree: Tree to resolve in
        current_dir: Directory relative paths start from
        virtual_path: Path string; a leading "/" starts at the root

    Returns:
        ResolvedDirectory or ResolvedReference

    Raises:
        PathNotFoundError: If a segment does not exist, or ".." leaves the tree
        NotADirectoryError: If a non-final segment names a reference

    Example:
        >>> resolve(tree, VirtualPath.parse("/data"), "a").target
        '/abs/221006/experiment_221006-A.csv'
    """
    if isinstance(current_dir, str):
        current_dir = VirtualPath.parse(current_dir)

    start = VirtualPath.root() if is_absolute(virtual_path) else current_dir
    names, stack = _walk_to(tree, start)

    segments = split_segments(virtual_path)
    for index, segment in enumerate(segments):
        if segment == PARENT_SEGMENT:
            if not names:
                raise PathNotFoundError(f"Cannot go above the root of [{tree.name}]")
            names.pop()
            stack.pop()
            continue

        node = stack[-1].get(segment)
        here = VirtualPath(tuple(names + [segment]))
        if node is None:
            raise PathNotFoundError(f"No such file or directory: {here}")

        if isinstance(node, Reference):
            if index < len(segments) - 1:
                raise NotADirectoryError(f"Not a directory: {here}")
            return ResolvedReference(path=here, node=node)

        names.append(segment)
        stack.append(node)

    return ResolvedDirectory(path=VirtualPath(tuple(names)), node=stack[-1])


def resolve_directory(
    tree: Tree, current_dir: Union[VirtualPath, str], virtual_path: str
) -> ResolvedDirectory:
    """Resolve a path that must name a directory.

    Raises:
        NotADirectoryError: If the path names a reference
    """
    result = resolve(tree, current_dir, virtual_path)
    if isinstance(result, ResolvedReference):
        raise NotADirectoryError(f"Not a directory: {result.path}")
    return result


def resolve_parent(
    tree: Tree, current_dir: Union[VirtualPath, str], virtual_path: str
) -> Tuple[ResolvedDirectory, str]:
    """Resolve everything but the last segment of a path.

    Used to address a node that may not exist yet, e.g. the target of
    ``mkdir data/raw``.

    Returns:
        (parent directory, last segment)

    Raises:
        PathNotFoundError: If the path is empty or ends in "." / ".."
        NotADirectoryError: If the parent is a reference
    """
    segments = [s for s in virtual_path.split(PATH_SEPARATOR) if s]
    if not segments:
        raise PathNotFoundError("A name is required")
    leaf = segments[-1]
    if leaf in (CURRENT_SEGMENT, PARENT_SEGMENT):
        raise PathNotFoundError(f"Path must end with a name: {virtual_path}")

    parent_text = PATH_SEPARATOR.join(segments[:-1])
    if is_absolute(virtual_path):
        parent_text = PATH_SEPARATOR + parent_text
    return resolve_directory(tree, current_dir, parent_text), leaf
