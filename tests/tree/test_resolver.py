#!/usr/bin/env python3
"""Tests for virtual path resolution."""

import pytest

from vtree.core.errors import NotADirectoryError, PathNotFoundError
from vtree.tree.model import VirtualPath
from vtree.tree.resolver import (
    ResolvedDirectory,
    ResolvedReference,
    resolve,
    resolve_directory,
    resolve_parent,
)

ROOT = VirtualPath.root()
DATA = VirtualPath.parse("/data")


class TestResolve:
    """Tests for resolve()."""

    def test_root(self, sample_tree):
        """/ resolves to the root directory."""
        result = resolve(sample_tree, DATA, "/")
        assert isinstance(result, ResolvedDirectory)
        assert result.path.is_root
        assert result.node is sample_tree.root

    def test_absolute_reference(self, sample_tree, real_files):
        """An absolute path to a reference yields its target."""
        result = resolve(sample_tree, ROOT, "/data/a")
        assert isinstance(result, ResolvedReference)
        assert result.target == str(real_files["a"])
        assert str(result.path) == "/data/a"

    def test_relative(self, sample_tree, real_files):
        """Relative paths start at the current directory."""
        result = resolve(sample_tree, DATA, "a")
        assert result.target == str(real_files["a"])

    def test_dot_and_empty_segments(self, sample_tree):
        """. and doubled slashes are ignored."""
        result = resolve(sample_tree, ROOT, "./data//./raw/")
        assert str(result.path) == "/data/raw"

    def test_empty_string_is_current(self, sample_tree):
        """An empty path names the current directory."""
        assert resolve(sample_tree, DATA, "").path == DATA

    def test_parent(self, sample_tree):
        """.. steps up by re-walking from the root."""
        result = resolve(sample_tree, VirtualPath.parse("/data/raw"), "../../notes")
        assert isinstance(result, ResolvedReference)
        assert str(result.path) == "/notes"

    def test_parent_at_root(self, sample_tree):
        """.. at the root fails."""
        with pytest.raises(PathNotFoundError):
            resolve(sample_tree, ROOT, "..")

    def test_parent_above_root_after_descent(self, sample_tree):
        """Climbing past the root fails even after going down."""
        with pytest.raises(PathNotFoundError):
            resolve(sample_tree, ROOT, "data/../..")

    def test_missing(self, sample_tree):
        """A missing segment is reported with its path."""
        with pytest.raises(PathNotFoundError) as exc_info:
            resolve(sample_tree, ROOT, "/data/zzz/a")
        assert "/data/zzz" in exc_info.value.message

    def test_reference_as_intermediate(self, sample_tree):
        """A reference cannot be walked through."""
        with pytest.raises(NotADirectoryError):
            resolve(sample_tree, ROOT, "/data/a/more")

    def test_case_sensitive(self, sample_tree):
        """Lookup is by exact name."""
        with pytest.raises(PathNotFoundError):
            resolve(sample_tree, ROOT, "/DATA")

    def test_dangling_still_resolves(self, sample_tree, real_files):
        """Resolution does not consult the filesystem."""
        real_files["a"].unlink()
        result = resolve(sample_tree, ROOT, "/data/a")
        assert result.target == str(real_files["a"])
        assert result.is_dangling()

    def test_current_dir_as_string(self, sample_tree):
        """The current directory may be given as a string."""
        assert str(resolve(sample_tree, "/data", "raw").path) == "/data/raw"

    def test_stale_current_dir(self, sample_tree):
        """A current directory that no longer exists is reported."""
        with pytest.raises(PathNotFoundError):
            resolve(sample_tree, VirtualPath.parse("/gone"), "a")

    def test_does_not_mutate(self, sample_tree):
        """Resolution leaves the tree untouched."""
        sample_tree.mark_clean()
        before = sample_tree.to_dict()
        resolve(sample_tree, ROOT, "/data/a")
        assert sample_tree.to_dict() == before
        assert not sample_tree.dirty


class TestResolveDirectory:
    """Tests for resolve_directory()."""

    def test_directory(self, sample_tree):
        """Directories resolve."""
        assert resolve_directory(sample_tree, ROOT, "data").path == DATA

    def test_reference_rejected(self, sample_tree):
        """References are not directories."""
        with pytest.raises(NotADirectoryError):
            resolve_directory(sample_tree, ROOT, "/notes")


class TestResolveParent:
    """Tests for resolve_parent()."""

    def test_new_leaf(self, sample_tree):
        """The parent must exist; the leaf need not."""
        parent, leaf = resolve_parent(sample_tree, ROOT, "/data/new")
        assert parent.path == DATA
        assert leaf == "new"

    def test_relative(self, sample_tree):
        """Relative paths use the current directory."""
        parent, leaf = resolve_parent(sample_tree, DATA, "raw/x")
        assert str(parent.path) == "/data/raw"
        assert leaf == "x"

    def test_top_level(self, sample_tree):
        """A single segment has the current directory as parent."""
        parent, leaf = resolve_parent(sample_tree, DATA, "x")
        assert parent.path == DATA
        assert leaf == "x"

    def test_absolute_top_level(self, sample_tree):
        """/x has the root as parent."""
        parent, leaf = resolve_parent(sample_tree, DATA, "/x")
        assert parent.path.is_root
        assert leaf == "x"

    @pytest.mark.parametrize("path", ["", "/", "data/..", "data/."])
    def test_no_leaf(self, sample_tree, path):
        """A path must end in a name."""
        with pytest.raises(PathNotFoundError):
            resolve_parent(sample_tree, ROOT, path)

    def test_missing_parent(self, sample_tree):
        """A missing parent is not created."""
        with pytest.raises(PathNotFoundError):
            resolve_parent(sample_tree, ROOT, "/nope/x")
