#!/usr/bin/env python3
"""Tests for the navigation session."""

from unittest.mock import patch

import pytest

from vtree.core.constants import ErrorCode
from vtree.core.errors import (
    DirectoryNotEmptyError,
    LockHeldError,
    NameCollisionError,
    NotADirectoryError,
    PathNotFoundError,
    SessionError,
    StoreCorruptError,
    StoreIOError,
    TreeNotFoundError,
    VTreeError,
)
from vtree.infrastructure.config_manager import ConfigError
from vtree.session.session import Session, SessionState, compile_prompt
from vtree.tree.model import VirtualPath


@pytest.fixture
def session(store, saved_tree):
    session = Session(store)
    session.enter("Project_A")
    yield session
    session.exit()


class TestLifecycle:
    """State transitions."""

    def test_enter(self, store, saved_tree):
        """Entering loads the tree at its root and takes the lock."""
        session = Session(store)
        assert session.state is SessionState.NOT_ENTERED
        tree = session.enter("Project_A")
        assert session.state is SessionState.ENTERED
        assert tree.name == "Project_A"
        assert session.pwd() == "/"
        assert store.lock("Project_A").path.exists()
        session.exit()

    def test_exit_releases_lock(self, store, saved_tree):
        """Exiting releases the lock and is terminal."""
        session = Session(store)
        session.enter("Project_A")
        session.exit()
        assert session.state is SessionState.EXITED
        assert not store.lock("Project_A").path.exists()
        with pytest.raises(SessionError):
            session.ls()
        with pytest.raises(SessionError):
            session.enter("Project_A")

    def test_exit_twice(self, session):
        """Exiting again does nothing."""
        session.exit()
        session.exit()
        assert session.state is SessionState.EXITED

    def test_not_entered(self, store):
        """Commands need an entered tree."""
        session = Session(store)
        with pytest.raises(SessionError):
            session.cd("/")
        with pytest.raises(SessionError):
            session.pwd()

    def test_enter_twice(self, session):
        """Only one tree per session."""
        with pytest.raises(SessionError):
            session.enter("Project_A")

    def test_enter_missing_tree(self, store):
        """A missing tree leaves the session unentered and unlocked."""
        session = Session(store)
        with pytest.raises(TreeNotFoundError):
            session.enter("Nope")
        assert session.state is SessionState.NOT_ENTERED
        assert not store.lock("Nope").path.exists()

    def test_enter_corrupt_tree(self, store):
        """A corrupt record releases the lock again."""
        store.trees_dir.mkdir(parents=True)
        store.path_for("Broken").write_text("[unclosed\n")
        session = Session(store)
        with pytest.raises(StoreCorruptError):
            session.enter("Broken")
        assert session.state is SessionState.NOT_ENTERED
        assert not store.lock("Broken").path.exists()

    def test_enter_locked(self, store, saved_tree):
        """A second session on the same tree is refused."""
        with Session(store) as first:
            first.enter("Project_A")
            second = Session(store)
            with pytest.raises(LockHeldError):
                second.enter("Project_A")
            assert second.state is SessionState.NOT_ENTERED
        with Session(store) as third:
            third.enter("Project_A")

    def test_context_manager_exits(self, store, saved_tree):
        """Leaving the block saves and releases."""
        with Session(store) as session:
            session.enter("Project_A")
            session.mkdir("/new")
        assert session.state is SessionState.EXITED
        assert "new" in store.load("Project_A").root

    def test_exit_saves_dirty(self, store, saved_tree):
        """Pending changes are saved on exit."""
        session = Session(store)
        session.enter("Project_A")
        session.rm("/notes")
        session.exit()
        assert "notes" not in store.load("Project_A").root

    def test_exit_without_changes_does_not_write(self, store, saved_tree):
        """A clean tree is not rewritten."""
        record = store.path_for("Project_A")
        before = record.stat().st_mtime_ns
        session = Session(store)
        session.enter("Project_A")
        session.ls()
        session.exit()
        assert record.stat().st_mtime_ns == before

    def test_exit_save_failure_keeps_session(self, store, saved_tree):
        """A failed save on exit keeps the lock and the unsaved changes."""
        session = Session(store)
        session.enter("Project_A")
        session.mkdir("/later")
        with patch.object(store, "save", side_effect=StoreIOError("disk full")):
            with pytest.raises(StoreIOError):
                session.exit()
        assert session.state is SessionState.ENTERED
        assert store.lock("Project_A").path.exists()
        assert session.tree.dirty

        session.exit()
        assert session.state is SessionState.EXITED
        assert "later" in store.load("Project_A").root

    def test_context_manager_save_failure_releases(self, store, saved_tree):
        """Leaving the block gives the lock back even when the save fails."""
        with patch.object(store, "save", side_effect=StoreIOError("disk full")):
            with pytest.raises(StoreIOError):
                with Session(store) as session:
                    session.enter("Project_A")
                    session.mkdir("/lost")
        assert session.state is SessionState.EXITED
        assert not store.lock("Project_A").path.exists()
        assert "lost" not in store.load("Project_A").root


class TestNavigation:
    """cd, ls, pwd."""

    def test_cd(self, session):
        """cd updates the working directory."""
        session.cd("/data")
        assert session.pwd() == "/data"
        session.cd("raw")
        assert session.pwd() == "/data/raw"
        session.cd("..")
        assert session.current == VirtualPath.parse("/data")

    def test_cd_no_argument(self, session):
        """cd without a path returns to the root."""
        session.cd("/data/raw")
        session.cd()
        assert session.pwd() == "/"

    def test_cd_parent_at_root(self, session):
        """cd .. at the root fails and keeps the directory."""
        with pytest.raises(PathNotFoundError):
            session.cd("..")
        assert session.pwd() == "/"

    def test_cd_reference(self, session):
        """cd into a reference fails and keeps the directory."""
        session.cd("/data")
        with pytest.raises(NotADirectoryError):
            session.cd("a")
        assert session.pwd() == "/data"

    def test_cd_missing(self, session):
        """cd into a missing path fails and keeps the directory."""
        session.cd("/data")
        with pytest.raises(PathNotFoundError):
            session.cd("zzz")
        assert session.pwd() == "/data"

    def test_ls(self, session, real_files):
        """ls lists the working directory."""
        session.cd("/data")
        entries = session.ls()
        assert [e.name for e in entries] == ["a", "b", "raw"]
        assert entries[0].target == str(real_files["a"])
        assert entries[0].description == "run A"
        assert not any(e.dangling for e in entries)

    def test_ls_path(self, session):
        """ls takes an optional path and does not move."""
        assert [e.name for e in session.ls("/data/raw")] == []
        assert session.pwd() == "/"

    def test_ls_flags_dangling(self, session, real_files):
        """Dangling references resolve but are flagged."""
        real_files["a"].unlink()
        entries = {e.name: e for e in session.ls("/data")}
        assert entries["a"].dangling
        assert not entries["b"].dangling
        assert session.resolve("/data/a").target == str(real_files["a"])

    def test_ls_does_not_dirty(self, session):
        """Listing is read-only."""
        session.ls("/data")
        assert not session.tree.dirty

    def test_location_and_prompt(self, session):
        """Prompt and location name the tree."""
        assert session.prompt() == "/[Project_A]/ > "
        assert session.location() == "/[Project_A]"
        session.cd("/data")
        assert session.prompt() == "/[Project_A]/data/ > "
        assert session.location() == "/[Project_A]/data"

    def test_custom_prompt(self, store, saved_tree):
        """The prompt template is configurable."""
        with Session(store, prompt_template="{{ tree }}:{{ cwd }}$ ") as session:
            session.enter("Project_A")
            assert session.prompt() == "Project_A:/$ "

    def test_invalid_prompt(self, store):
        """Broken templates are configuration errors."""
        with pytest.raises(ConfigError):
            Session(store, prompt_template="{% if %}")

    def test_compile_prompt(self):
        """Templates render with tree and cwd."""
        assert compile_prompt("[{{ tree }}]").render(tree="T", cwd="/") == "[T]"

    def test_tree_text(self, session):
        """tree renders from the working directory."""
        text = session.tree_text()
        assert text.splitlines()[0] == "Project_A"
        session.cd("/data")
        assert session.tree_text().splitlines()[0] == "/data"


class TestMutation:
    """In-session changes."""

    def test_mkdir_relative(self, session):
        """mkdir works relative to the working directory."""
        session.cd("/data")
        session.mkdir("processed")
        assert "processed" in [e.name for e in session.ls()]
        assert session.tree.dirty

    def test_add(self, session, real_files):
        """add creates a reference."""
        session.add("/data/raw/a", str(real_files["a"]), "raw A")
        assert session.describe("/data/raw/a") == "raw A"

    def test_rm_non_empty_requires_recursive(self, session):
        """Non-empty directories need recursive removal."""
        with pytest.raises(DirectoryNotEmptyError):
            session.rm("/data")
        assert "data" in session.tree.root
        assert not session.tree.dirty
        session.rm("/data", recursive=True)
        assert "data" not in session.tree.root

    def test_rm_empty_directory(self, session):
        """Empty directories go without recursion."""
        session.rm("/data/raw")
        assert "raw" not in session.tree.root.get("data")

    def test_rm_current_directory(self, session):
        """Removing the working directory moves back to the root."""
        session.cd("/data/raw")
        session.rm("/data", recursive=True)
        assert session.pwd() == "/"

    def test_mv_follows_current(self, session):
        """Moving the working directory keeps the session inside it."""
        session.mkdir("/archive")
        session.cd("/data/raw")
        session.mv("/data", "/archive")
        assert session.pwd() == "/archive/data/raw"

    def test_rename_follows_current(self, session):
        """Renaming an ancestor updates the working directory."""
        session.cd("/data/raw")
        session.rename("/data", "runs")
        assert session.pwd() == "/runs/raw"

    def test_rename_elsewhere_keeps_current(self, session):
        """Unrelated renames leave the working directory alone."""
        session.cd("/data")
        session.rename("/notes", "readme")
        assert session.pwd() == "/data"

    def test_descriptions(self, session):
        """Descriptions can be read and set."""
        session.set_description("/data", "All runs")
        assert session.describe("/data") == "All runs"
        assert session.describe("/") == "Experiment data"

    def test_save(self, session, store):
        """save writes immediately."""
        session.mkdir("/later")
        session.save()
        assert not session.tree.dirty
        assert "later" in store.load("Project_A").root

    def test_add_file_named_after_target(self, session, real_files):
        """Without a path the reference is named after the file, in the working directory."""
        session.cd("/data/raw")
        reference = session.add_file(str(real_files["b"]))
        assert reference.name == "experiment_221006-B.csv"
        assert session.resolve("/data/raw/experiment_221006-B.csv").target == str(real_files["b"])

    def test_add_file_with_path(self, session, real_files):
        """An explicit path names the reference."""
        session.add_file(str(real_files["b"]), "/data/raw/second", "run B")
        assert session.describe("/data/raw/second") == "run B"

    def test_add_file_collision(self, session, real_files):
        """The derived name still has to be free."""
        session.add_file(str(real_files["notes"]))
        with pytest.raises(NameCollisionError):
            session.add_file(str(real_files["notes"]))


class TestRead:
    """Reading referenced files."""

    def test_read(self, session):
        """read returns the target's bytes."""
        session.cd("/data")
        assert session.read("a") == b"t,value\n0,1.5\n1,2.5\n"

    def test_read_directory(self, session):
        """Directories cannot be read."""
        with pytest.raises(NotADirectoryError):
            session.read("/data")

    def test_read_dangling(self, session, real_files):
        """A missing target is an I/O failure."""
        real_files["notes"].unlink()
        with pytest.raises(VTreeError) as exc_info:
            session.read("/notes")
        assert exc_info.value.error_code == ErrorCode.IO_FAILURE

    def test_read_missing_path(self, session):
        """Unknown paths are reported as such."""
        with pytest.raises(PathNotFoundError):
            session.read("/zzz")
