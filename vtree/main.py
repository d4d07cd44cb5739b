#!/usr/bin/env python3
"""Command execution for vtree.

This module handles:
- Component initialization (store, session, runner)
- Dispatch of the parsed sub-command
- Locking trees for the duration of one-shot edits
- Mapping errors to exit codes

Example:
    >>> from vtree.main import run_vtree
    >>> run_vtree(args, config, logger)
"""

import argparse
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

from vtree.core.constants import ConfigKey, ErrorCode, Limits
from vtree.core.errors import DanglingReferenceError, DirectoryNotEmptyError, VTreeError
from vtree.infrastructure.config_manager import ConfigManager
from vtree.infrastructure.logger import Logger
from vtree.session.repl import Repl
from vtree.session.runner import CommandRunner
from vtree.session.session import Session
from vtree.store.tree_store import TreeStore
from vtree.tree.model import Tree
from vtree.tree.mutator import Mutator, describe
from vtree.tree.node import Directory
from vtree.tree.render import format_listing, list_entries, render_tree
from vtree.tree.resolver import resolve


def exit_status(returncode: int) -> int:
    """Map a child's return code to a shell exit status (signals become 128+N)."""
    if returncode < 0:
        return 128 - returncode
    return returncode


class VTreeMain:
    """
    Main controller for one vtree invocation.

    Handles component setup and runs the selected command.
    """

    def __init__(self, args: argparse.Namespace, config: ConfigManager, logger: Logger):
        """
        Initialize vtree main controller.

        Args:
            args: Parsed command-line arguments
            config: Configuration manager
            logger: Logger instance
        """
        self.args = args
        self.config = config
        self.logger = logger

        self.store: Optional[TreeStore] = None
        self.runner: Optional[CommandRunner] = None

    def initialize_components(self) -> None:
        """Create the store and command runner from configuration."""
        store_path = self.config.store_path()
        stale_seconds = self.config.get(
            ConfigKey.LOCK_STALE_SECONDS, Limits.DEFAULT_LOCK_STALE_SECONDS
        )

        self.logger.debug("Opening store", path=str(store_path))
        self.store = TreeStore(store_path, stale_seconds=stale_seconds, logger=self.logger.child("store"))
        self.runner = CommandRunner(logger=self.logger.child("runner"))

    def new_session(self) -> Session:
        return Session(
            self.store,
            prompt_template=self.config.get(ConfigKey.PROMPT),
            logger=self.logger.child("session"),
        )

    @contextmanager
    def editing(self, tree_name: str) -> Iterator[Tree]:
        """Lock and load a tree; save it on a clean exit if it changed."""
        with self.store.lock(tree_name):
            tree = self.store.load(tree_name)
            yield tree
            if tree.dirty:
                self.store.save(tree)

    def _print(self, text: str) -> None:
        print(text)

    # Commands

    def cmd_new(self) -> int:
        self.store.create(self.args.tree, self.args.description)
        return 0

    def cmd_add(self) -> int:
        with self.editing(self.args.tree) as tree:
            Mutator(tree, logger=self.logger.child("mutator")).add_path(
                self.args.path, self.args.target, self.args.description
            )
        return 0

    def cmd_mkdir(self) -> int:
        with self.editing(self.args.tree) as tree:
            Mutator(tree, logger=self.logger.child("mutator")).mkdir_path(self.args.path)
        return 0

    def cmd_rm(self) -> int:
        with self.editing(self.args.tree) as tree:
            result = resolve(tree, "/", self.args.path)
            if isinstance(result.node, Directory) and len(result.node) and not self.args.recursive:
                raise DirectoryNotEmptyError(
                    f"Directory {result.path} is not empty (use --recursive to remove it with its contents)"
                )
            Mutator(tree, logger=self.logger.child("mutator")).remove(self.args.path)
        return 0

    def cmd_mv(self) -> int:
        with self.editing(self.args.tree) as tree:
            Mutator(tree, logger=self.logger.child("mutator")).move(
                self.args.path, self.args.destination
            )
        return 0

    def cmd_rename(self) -> int:
        with self.editing(self.args.tree) as tree:
            Mutator(tree, logger=self.logger.child("mutator")).rename(
                self.args.path, self.args.new_name
            )
        return 0

    def cmd_desc(self) -> int:
        if not self.args.text:
            tree = self.store.load(self.args.tree)
            self._print(describe(tree, "/", self.args.path) or "(no description)")
            return 0

        with self.editing(self.args.tree) as tree:
            Mutator(tree, logger=self.logger.child("mutator")).set_description(
                self.args.path, " ".join(self.args.text)
            )
        return 0

    def cmd_enter(self) -> int:
        with self.new_session() as session:
            session.enter(self.args.tree)
            Repl(session, self.runner, logger=self.logger.child("repl")).loop()
        return 0

    def cmd_list(self) -> int:
        for name, description in self.store.list_trees():
            self._print(f"{name}  # {description}" if description else name)
        return 0

    def cmd_ls(self) -> int:
        tree = self.store.load(self.args.tree)
        listing = format_listing(list_entries(resolve(tree, "/", self.args.path)), long=self.args.long)
        if listing:
            self._print(listing)
        return 0

    def cmd_tree(self) -> int:
        tree = self.store.load(self.args.tree)
        result = resolve(tree, "/", self.args.path)
        title = tree.name if result.path.is_root else str(result.path)
        self._print(render_tree(result.node, title=title))
        return 0

    def cmd_check(self) -> int:
        tree = self.store.load(self.args.tree)
        dangling = tree.dangling()
        for path, reference in dangling:
            self._print(f"{path} -> {reference.target}")
        if dangling:
            raise DanglingReferenceError(f"{len(dangling)} dangling reference(s) in {tree.name}")
        return 0

    def cmd_delete(self) -> int:
        if not self.store.exists(self.args.tree):
            # Let the store report a missing tree or an invalid name
            self.store.load(self.args.tree)

        if not self.args.yes:
            try:
                answer = input(f"Delete tree {self.args.tree}? [y/N] ")
            except EOFError:
                answer = ""
            if answer.strip().lower() not in ("y", "yes"):
                print("Aborted", file=sys.stderr)
                return int(ErrorCode.INVALID_INPUT)

        self.store.delete(self.args.tree)
        return 0

    def cmd_call(self) -> int:
        with self.new_session() as session:
            session.enter(self.args.tree)
            status = self.runner.run([self.args.program] + self.args.arguments, session)
        return exit_status(status)

    def run(self) -> int:
        """
        Run the selected command.

        Returns:
            Exit code (0 for success, non-zero for failure)
        """
        handler = getattr(self, f"cmd_{self.args.command}", None)
        if handler is None:
            self.logger.error("Unknown command", command=self.args.command)
            return int(ErrorCode.INVALID_INPUT)

        try:
            self.initialize_components()
            with self.logger.add_context(command=self.args.command):
                return handler()

        except VTreeError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return int(e.error_code)

        except KeyboardInterrupt:
            self.logger.info("Interrupted by user")
            return int(ErrorCode.INTERRUPTED)


def run_vtree(args: argparse.Namespace, config: ConfigManager, logger: Logger) -> int:
    """
    Main entry point for running a vtree command.

    Args:
        args: Parsed command-line arguments
        config: Configuration manager
        logger: Logger instance

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    main = VTreeMain(args, config, logger)
    return main.run()


def main():
    """
    Entry point when run as standalone script.

    Typically called via cli.py, but can be run directly for testing.
    """
    from vtree.cli import main as cli_main

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
