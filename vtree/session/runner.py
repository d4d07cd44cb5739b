"""
vtree Session: Command Runner.

Runs an external program with virtual paths replaced by real ones.

Marker rule: the command line is split the way a POSIX shell would
(``shlex.split``), and every token written as ``<virtual/path>`` is a
virtual path. It is resolved from the session's working directory and
must name a reference; the token is replaced by the reference's target.
All other tokens, including the program name, are passed through as
written. Unmarked tokens are never resolved, even if they happen to match
a node name.

    call cat <a>                 ->  cat /abs/221006/experiment_221006-A.csv
    call diff <a> "<../b c>"     ->  diff /abs/a.csv /abs/b.csv
    call <tools/plot> <a>        ->  /opt/bin/plot /abs/a.csv

The program runs without a shell, inherits the terminal and is waited for.
"""

import shlex
import subprocess
import sys
from typing import List, Optional, Sequence, Union

from vtree.core.constants import REFERENCE_CLOSE, REFERENCE_OPEN
from vtree.core.errors import (
    NotADirectoryError,
    ResolutionFailedError,
    SpawnFailedError,
    VTreeError,
)
from vtree.core.validators import ValidationError
from vtree.infrastructure.logger import Logger, get_logger
from vtree.session.session import Session
from vtree.tree.resolver import ResolvedReference

# Hands a file to the desktop's default application
OPENER = "open" if sys.platform == "darwin" else "xdg-open"


def is_marked(token: str) -> bool:
    """True for tokens of the form ``<path>`` with something between the brackets."""
    return len(token) > 2 and token.startswith(REFERENCE_OPEN) and token.endswith(REFERENCE_CLOSE)


def tokenize(command_line: str) -> List[str]:
    """Split a command line with POSIX shell quoting.

    Raises:
        ValidationError: On unbalanced quotes
    """
    try:
        return shlex.split(command_line)
    except ValueError as e:
        raise ValidationError(f"Cannot parse command line: {e}")


class CommandRunner:
    """
    Substitutes marked virtual paths and runs the resulting command.

    Example:
        >>> runner = CommandRunner()
        >>> runner.run("cat <a>", session)
        0
    """

    def __init__(self, logger: Optional[Logger] = None):
        self.logger = logger or get_logger("vtree.runner")

    def substitute(self, argv: Sequence[str], session: Session) -> List[str]:
        """Replace every marked token with its reference target.

        Raises:
            ResolutionFailedError: If a marked path does not resolve to a reference
        """
        result = []
        for token in argv:
            if not is_marked(token):
                result.append(token)
                continue

            virtual = token[len(REFERENCE_OPEN):-len(REFERENCE_CLOSE)]
            try:
                resolved = session.resolve(virtual)
            except VTreeError as e:
                raise ResolutionFailedError(token, e)

            if not isinstance(resolved, ResolvedReference):
                raise ResolutionFailedError(
                    token, NotADirectoryError(f"{resolved.path} is a directory, not a file reference")
                )

            if resolved.is_dangling():
                self.logger.warning(
                    "Reference target does not exist", path=str(resolved.path), target=resolved.target
                )
            result.append(resolved.target)
        return result

    def run(self, command: Union[str, Sequence[str]], session: Session) -> int:
        """Run a command and wait for it.

        Args:
            command: Command line string, or already tokenized argv
            session: Entered session marked paths resolve in

        Returns:
            The program's exit status

        Raises:
            ValidationError: If the command is empty or cannot be parsed
            ResolutionFailedError: If a marked path cannot be substituted
            SpawnFailedError: If the program cannot be started
        """
        argv = tokenize(command) if isinstance(command, str) else list(command)
        if not argv:
            raise ValidationError("No command given")

        argv = self.substitute(argv, session)
        self.logger.debug("Spawning", argv=argv)

        try:
            completed = subprocess.run(argv)
        except OSError as e:
            raise SpawnFailedError(f"Cannot run {argv[0]}: {e.strerror or e}")

        self.logger.debug("Command finished", program=argv[0], status=completed.returncode)
        return completed.returncode

    def open(self, path: str, session: Session) -> int:
        """Open a referenced file with the platform's default application.

        Raises:
            ResolutionFailedError: If ``path`` does not name a reference
            SpawnFailedError: If the opener is not installed
        """
        return self.run([OPENER, REFERENCE_OPEN + path + REFERENCE_CLOSE], session)
