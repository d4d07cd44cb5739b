"""
vtree Session: Interactive Shell.

Reads commands line by line and runs them against an entered Session.
A failing command prints ``error: <message>`` and leaves the session as it
was; only ``exit`` (or end of input) ends the loop.

    /[Project_A]/ > cd data
    /[Project_A]/data/ > ls -l
    !  a -> /abs/221006/experiment_221006-A.csv  # run A
    /[Project_A]/data/ > call cat <a>
"""

import sys
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set, TextIO, Tuple

from vtree.core.constants import ErrorCode
from vtree.core.errors import VTreeError
from vtree.core.validators import ValidationError
from vtree.infrastructure.logger import Logger, get_logger
from vtree.session.runner import CommandRunner, tokenize
from vtree.session.session import Session, SessionState
from vtree.tree.render import format_listing


@dataclass(frozen=True)
class Command:
    """A shell command: handler plus its help line."""

    name: str
    usage: str
    summary: str
    handler: Callable[["Repl", List[str]], None]


def _split_flags(args: List[str], allowed: str) -> Tuple[Set[str], List[str]]:
    """Separate leading single-letter flags (``-l``, ``-r``) from operands."""
    flags = set()
    rest = list(args)
    while rest and rest[0].startswith("-") and len(rest[0]) > 1:
        token = rest.pop(0)
        if token == "--":
            break
        for letter in token[1:]:
            if letter not in allowed:
                raise ValidationError(f"Unknown option -{letter}")
            flags.add(letter)
    return flags, rest


def _expect(args: List[str], minimum: int, maximum: Optional[int], usage: str) -> None:
    if len(args) < minimum or (maximum is not None and len(args) > maximum):
        raise ValidationError(f"usage: {usage}")


class Repl:
    """
    Line interpreter for one session.

    Attributes:
        session: Entered session commands act on
        runner: Runs `call` commands
        last_status: Exit status of the most recent `call`
    """

    def __init__(
        self,
        session: Session,
        runner: Optional[CommandRunner] = None,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
        logger: Optional[Logger] = None,
    ):
        self.session = session
        self.runner = runner or CommandRunner()
        self.stdin = stdin
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr
        self.logger = logger or get_logger("vtree.repl")
        self.last_status = 0

    # Output

    def _print(self, text: str = "") -> None:
        print(text, file=self.stdout)

    def _error(self, message: str) -> None:
        print(f"error: {message}", file=self.stderr)

    # Commands

    def do_ls(self, args: List[str]) -> None:
        flags, rest = _split_flags(args, "l")
        _expect(rest, 0, 1, COMMANDS["ls"].usage)
        listing = format_listing(self.session.ls(rest[0] if rest else None), long="l" in flags)
        if listing:
            self._print(listing)

    def do_cd(self, args: List[str]) -> None:
        _expect(args, 0, 1, COMMANDS["cd"].usage)
        self.session.cd(args[0] if args else None)

    def do_pwd(self, args: List[str]) -> None:
        _expect(args, 0, 0, COMMANDS["pwd"].usage)
        self._print(self.session.location())

    def do_tree(self, args: List[str]) -> None:
        _expect(args, 0, 1, COMMANDS["tree"].usage)
        self._print(self.session.tree_text(args[0] if args else None))

    def do_call(self, args: List[str]) -> None:
        _expect(args, 1, None, COMMANDS["call"].usage)
        self.last_status = self.runner.run(args, self.session)
        if self.last_status != 0:
            self.logger.info("Command exited with non-zero status", status=self.last_status)

    def do_mkdir(self, args: List[str]) -> None:
        _expect(args, 1, 1, COMMANDS["mkdir"].usage)
        self.session.mkdir(args[0])

    def do_add(self, args: List[str]) -> None:
        _expect(args, 1, None, COMMANDS["add"].usage)
        if len(args) == 1:
            self.session.add_file(args[0])
            return
        description = " ".join(args[2:]) or None
        self.session.add(args[0], args[1], description)

    def do_cp(self, args: List[str]) -> None:
        _expect(args, 1, 2, COMMANDS["cp"].usage)
        self.session.add_file(args[0], args[1] if len(args) > 1 else None)

    def do_cat(self, args: List[str]) -> None:
        _expect(args, 1, 1, COMMANDS["cat"].usage)
        text = self.session.read(args[0]).decode("utf-8", errors="replace")
        if text and not text.endswith("\n"):
            text += "\n"
        self.stdout.write(text)

    def do_open(self, args: List[str]) -> None:
        _expect(args, 1, 1, COMMANDS["open"].usage)
        self.last_status = self.runner.open(args[0], self.session)

    def do_rm(self, args: List[str]) -> None:
        flags, rest = _split_flags(args, "r")
        _expect(rest, 1, 1, COMMANDS["rm"].usage)
        self.session.rm(rest[0], recursive="r" in flags)

    def do_mv(self, args: List[str]) -> None:
        _expect(args, 2, 2, COMMANDS["mv"].usage)
        self.session.mv(args[0], args[1])

    def do_rename(self, args: List[str]) -> None:
        _expect(args, 2, 2, COMMANDS["rename"].usage)
        self.session.rename(args[0], args[1])

    def do_desc(self, args: List[str]) -> None:
        _expect(args, 1, None, COMMANDS["desc"].usage)
        if len(args) == 1:
            self._print(self.session.describe(args[0]) or "(no description)")
            return
        self.session.set_description(args[0], " ".join(args[1:]) or None)

    def do_save(self, args: List[str]) -> None:
        _expect(args, 0, 0, COMMANDS["save"].usage)
        self.session.save()

    def do_help(self, args: List[str]) -> None:
        width = max(len(command.usage) for command in COMMANDS.values())
        for command in COMMANDS.values():
            self._print(f"  {command.usage.ljust(width)}  {command.summary}")

    def do_exit(self, args: List[str]) -> None:
        _expect(args, 0, 0, COMMANDS["exit"].usage)
        self.session.exit()

    # Loop

    def execute(self, line: str) -> bool:
        """Run one command line.

        Returns:
            False once the session has ended, True otherwise
        """
        try:
            tokens = tokenize(line)
        except ValidationError as e:
            self._error(e.message)
            return True
        if not tokens:
            return True

        name, args = tokens[0], tokens[1:]
        command = COMMANDS.get(name)
        if command is None:
            self._error(f"Unknown command: {name} (try 'help')")
            return True

        try:
            command.handler(self, args)
        except VTreeError as e:
            self.logger.debug("Command failed", command=name, code=int(e.error_code))
            self._error(e.message)
        except KeyboardInterrupt:
            # Ctrl-C while a command runs cancels that command only
            self._print()
            self.last_status = int(ErrorCode.INTERRUPTED)
            self.logger.info("Command interrupted", command=name)

        return self.session.state is not SessionState.EXITED

    def _read_line(self) -> str:
        prompt = self.session.prompt()
        if self.stdin is None:
            return input(prompt)
        self.stdout.write(prompt)
        self.stdout.flush()
        line = self.stdin.readline()
        if not line:
            raise EOFError
        return line.rstrip("\n")

    def loop(self) -> int:
        """Read and run commands until `exit` or end of input.

        Returns:
            Status of the last `call` (0 if none ran)
        """
        while self.session.state is SessionState.ENTERED:
            try:
                line = self._read_line()
            except EOFError:
                self._print()
                try:
                    self.session.exit()
                except VTreeError as e:
                    self._error(e.message)
                break
            except KeyboardInterrupt:
                self._print()
                continue

            if not self.execute(line):
                break

        return self.last_status


COMMANDS: Dict[str, Command] = {
    command.name: command
    for command in (
        Command("ls", "ls [-l] [path]", "List a directory (-l: targets and descriptions)", Repl.do_ls),
        Command("cd", "cd [path]", "Change directory (no path: tree root)", Repl.do_cd),
        Command("pwd", "pwd", "Show the current directory", Repl.do_pwd),
        Command("tree", "tree [path]", "Show a directory and everything below it", Repl.do_tree),
        Command("call", "call <program> [args...]", "Run a program; <path> arguments become real paths", Repl.do_call),
        Command("mkdir", "mkdir <path>", "Create a directory", Repl.do_mkdir),
        Command(
            "add",
            "add <path> <real-path> [description...] | add <real-path>",
            "Add a file reference (one argument: named after the file, in the current directory)",
            Repl.do_add,
        ),
        Command("cp", "cp <real-path> [path]", "Add a reference (name defaults to the file name)", Repl.do_cp),
        Command("cat", "cat <path>", "Print a referenced file", Repl.do_cat),
        Command("open", "open <path>", "Open a referenced file with the default application", Repl.do_open),
        Command("rm", "rm [-r] <path>", "Remove a node (-r: non-empty directories)", Repl.do_rm),
        Command("mv", "mv <path> <directory>", "Move a node into another directory", Repl.do_mv),
        Command("rename", "rename <path> <new-name>", "Rename a node", Repl.do_rename),
        Command("desc", "desc <path> [text...]", "Show or set a description", Repl.do_desc),
        Command("save", "save", "Save the tree now", Repl.do_save),
        Command("help", "help", "Show this list", Repl.do_help),
        Command("exit", "exit", "Save and leave the tree", Repl.do_exit),
    )
}
