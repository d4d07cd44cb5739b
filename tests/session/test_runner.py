#!/usr/bin/env python3
"""Tests for the command runner."""

import subprocess
import sys
from unittest.mock import MagicMock, patch

import pytest

from vtree.core.constants import ErrorCode
from vtree.core.errors import ResolutionFailedError, SpawnFailedError
from vtree.core.validators import ValidationError
from vtree.session.runner import OPENER, CommandRunner, is_marked, tokenize
from vtree.session.session import Session


@pytest.fixture
def session(store, saved_tree):
    session = Session(store)
    session.enter("Project_A")
    yield session
    session.exit()


@pytest.fixture
def completed():
    """Patch subprocess.run to succeed without spawning anything."""
    with patch("vtree.session.runner.subprocess.run") as run:
        run.return_value = subprocess.CompletedProcess(args=[], returncode=0)
        yield run


class TestMarkers:
    """Tests for marker detection and tokenizing."""

    @pytest.mark.parametrize("token", ["<a>", "<data/a>", "</data/a>", "<../b c>"])
    def test_marked(self, token):
        """Whole tokens in angle brackets are virtual paths."""
        assert is_marked(token)

    @pytest.mark.parametrize("token", ["a", "<>", "<a", "a>", "--out=<a>", "x<a>y"])
    def test_not_marked(self, token):
        """Everything else is literal."""
        assert not is_marked(token)

    def test_tokenize_quotes(self):
        """POSIX quoting keeps spaces inside tokens."""
        assert tokenize("diff <a> '<raw/b c>' \"x y\"") == ["diff", "<a>", "<raw/b c>", "x y"]

    def test_tokenize_unbalanced(self):
        """Unbalanced quotes are invalid input."""
        with pytest.raises(ValidationError):
            tokenize("cat 'oops")


class TestSubstitute:
    """Tests for substitution."""

    def test_relative(self, session, real_files):
        """Marked paths resolve from the working directory."""
        session.cd("/data")
        argv = CommandRunner().substitute(["cat", "<a>", "-n"], session)
        assert argv == ["cat", str(real_files["a"]), "-n"]

    def test_absolute_and_parent(self, session, real_files):
        """Absolute and .. paths work."""
        session.cd("/data/raw")
        argv = CommandRunner().substitute(["x", "</notes>", "<../b>"], session)
        assert argv == ["x", str(real_files["notes"]), str(real_files["b"])]

    def test_unmarked_untouched(self, session):
        """Unmarked tokens are never resolved, even when they name a node."""
        session.cd("/data")
        assert CommandRunner().substitute(["cat", "a", "data"], session) == ["cat", "a", "data"]

    def test_program_marked(self, session, real_files):
        """The program itself may be a reference."""
        argv = CommandRunner().substitute(["</notes>"], session)
        assert argv == [str(real_files["notes"])]

    def test_missing(self, session):
        """Unknown paths fail with the resolver's reason."""
        with pytest.raises(ResolutionFailedError) as exc_info:
            CommandRunner().substitute(["cat", "<zzz>"], session)
        assert exc_info.value.error_code == ErrorCode.PATH_NOT_FOUND
        assert exc_info.value.token == "<zzz>"

    def test_directory(self, session):
        """Directories are not file arguments."""
        with pytest.raises(ResolutionFailedError) as exc_info:
            CommandRunner().substitute(["ls", "<data>"], session)
        assert exc_info.value.error_code == ErrorCode.NOT_A_DIRECTORY

    def test_dangling_substituted_with_warning(self, session, real_files):
        """Dangling targets are passed on; the program reports the failure."""
        real_files["a"].unlink()
        logger = MagicMock()
        argv = CommandRunner(logger=logger).substitute(["cat", "</data/a>"], session)
        assert argv == ["cat", str(real_files["a"])]
        logger.warning.assert_called_once()


class TestRun:
    """Tests for run()."""

    def test_run_string(self, session, real_files, completed):
        """Command lines are tokenized, substituted and run without a shell."""
        session.cd("/data")
        status = CommandRunner().run("cat <a>", session)
        assert status == 0
        completed.assert_called_once_with(["cat", str(real_files["a"])])

    def test_run_argv(self, session, real_files, completed):
        """Pre-split argv is used as is."""
        CommandRunner().run(["wc", "-l", "</data/b>"], session)
        completed.assert_called_once_with(["wc", "-l", str(real_files["b"])])

    def test_exit_status_returned(self, session, completed):
        """The child's status is returned."""
        completed.return_value = subprocess.CompletedProcess(args=[], returncode=3)
        assert CommandRunner().run("false", session) == 3

    def test_resolution_failure_spawns_nothing(self, session, completed):
        """Nothing runs when a marked path fails."""
        with pytest.raises(ResolutionFailedError):
            CommandRunner().run("cat <zzz>", session)
        completed.assert_not_called()

    def test_empty_command(self, session):
        """An empty command is invalid."""
        with pytest.raises(ValidationError):
            CommandRunner().run("   ", session)

    def test_spawn_failure(self, session):
        """A program that cannot start is a spawn failure."""
        with pytest.raises(SpawnFailedError):
            CommandRunner().run(["/nonexistent/vtree-test-program"], session)

    def test_real_process(self, session, real_files):
        """A real child sees the substituted path and its status comes back."""
        script = "import sys; sys.exit(0 if open(sys.argv[1]).read().startswith('t,value') else 5)"
        status = CommandRunner().run([sys.executable, "-c", script, "</data/a>"], session)
        assert status == 0

    def test_real_process_failure_status(self, session):
        """Non-zero statuses are passed through."""
        assert CommandRunner().run([sys.executable, "-c", "raise SystemExit(4)"], session) == 4


class TestOpen:
    """Tests for open()."""

    def test_open(self, session, real_files, completed):
        """The platform opener gets the reference's target."""
        session.cd("/data")
        assert CommandRunner().open("a", session) == 0
        completed.assert_called_once_with([OPENER, str(real_files["a"])])

    def test_open_directory(self, session, completed):
        """Directories are not opened."""
        with pytest.raises(ResolutionFailedError):
            CommandRunner().open("/data", session)
        completed.assert_not_called()
