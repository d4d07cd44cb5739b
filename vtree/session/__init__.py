"""vtree Session - Interactive navigation and command execution.

Usage:
    from vtree.session import Repl, Session

    with Session(store) as session:
        session.enter("Project_A")
        Repl(session).loop()
"""

from vtree.session.repl import COMMANDS, Command, Repl
from vtree.session.runner import CommandRunner, is_marked, tokenize
from vtree.session.session import Session, SessionState, compile_prompt

__all__ = [
    "Session",
    "SessionState",
    "compile_prompt",
    "CommandRunner",
    "is_marked",
    "tokenize",
    "Repl",
    "Command",
    "COMMANDS",
]
