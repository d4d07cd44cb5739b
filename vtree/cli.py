#!/usr/bin/env python3
"""Command-line interface for vtree.

This module provides the CLI for building and browsing virtual trees:
- Argument parsing and validation
- Configuration loading (file, environment, arguments)
- Logging setup
- Mapping errors to exit codes

Example:
    >>> from vtree.cli import parse_arguments
    >>> args = parse_arguments(["mkdir", "Project_A", "/data"])
"""

import argparse
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

from vtree.core.constants import VTREE_VERSION, ConfigKey, ErrorCode
from vtree.core.errors import VTreeError
from vtree.infrastructure.config_manager import ConfigManager, ConfigSource
from vtree.infrastructure.logger import Logger, LogLevel, configure_logging

DESCRIPTION = "vtree - Virtual file trees over real files"


class CLIError(VTreeError):
    """Exception raised for CLI-related errors."""

    error_code = ErrorCode.INVALID_INPUT


def tree_name(value: str) -> str:
    """Tree name argument; ``/Project_A`` is accepted for ``Project_A``."""
    return value[1:] if value.startswith("/") else value


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vtree",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create a tree and fill it
  vtree new Project_A --description "Experiment data"
  vtree mkdir /Project_A /data
  vtree add Project_A /data/a /abs/221006/experiment_221006-A.csv

  # Look at it
  vtree ls Project_A /data --long

  # Browse it interactively
  vtree enter Project_A

  # Run a program on a virtual path
  vtree call Project_A cat '</data/a>'

  # Remove a directory together with its contents
  vtree rm Project_A /data --recursive
        """,
    )

    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {VTREE_VERSION}",
    )

    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        type=str,
        help="Configuration file path (YAML format)",
    )

    parser.add_argument(
        "-s",
        "--store",
        metavar="DIR",
        type=str,
        help="Store directory (default: $VTREE_HOME or ~/.vtree)",
    )

    log_group = parser.add_argument_group("logging options")

    log_group.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    log_group.add_argument(
        "--log-file",
        metavar="FILE",
        type=str,
        help="Also write log records to this file",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    new = commands.add_parser("new", help="Create an empty tree")
    new.add_argument("tree", type=tree_name)
    new.add_argument("-d", "--description", metavar="TEXT")

    add = commands.add_parser("add", help="Add a reference to a real file")
    add.add_argument("tree", type=tree_name)
    add.add_argument("path", help="Virtual path of the new reference")
    add.add_argument("target", help="Real file or directory it points to")
    add.add_argument("-d", "--description", metavar="TEXT")

    mkdir = commands.add_parser("mkdir", help="Create a directory")
    mkdir.add_argument("tree", type=tree_name)
    mkdir.add_argument("path")

    rm = commands.add_parser("rm", help="Remove a reference or directory")
    rm.add_argument("tree", type=tree_name)
    rm.add_argument("path")
    rm.add_argument(
        "-r", "--recursive", action="store_true", help="Remove non-empty directories too"
    )

    mv = commands.add_parser("mv", help="Move a node into another directory")
    mv.add_argument("tree", type=tree_name)
    mv.add_argument("path")
    mv.add_argument("destination", help="Directory to move into")

    rename = commands.add_parser("rename", help="Rename a node")
    rename.add_argument("tree", type=tree_name)
    rename.add_argument("path")
    rename.add_argument("new_name")

    desc = commands.add_parser("desc", help="Show or set a description")
    desc.add_argument("tree", type=tree_name)
    desc.add_argument("path")
    desc.add_argument("text", nargs="*", help="New description (omit to show)")

    enter = commands.add_parser("enter", help="Browse a tree interactively")
    enter.add_argument("tree", type=tree_name)

    commands.add_parser("list", help="List trees")

    ls = commands.add_parser("ls", help="List a directory")
    ls.add_argument("tree", type=tree_name)
    ls.add_argument("path", nargs="?", default="/")
    ls.add_argument(
        "-l", "--long", action="store_true", help="Show targets and descriptions"
    )

    tree = commands.add_parser("tree", help="Show a tree")
    tree.add_argument("tree", type=tree_name)
    tree.add_argument("path", nargs="?", default="/")

    check = commands.add_parser("check", help="Report references whose target is missing")
    check.add_argument("tree", type=tree_name)

    delete = commands.add_parser("delete", help="Delete a tree")
    delete.add_argument("tree", type=tree_name)
    delete.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    call = commands.add_parser(
        "call",
        help="Run a program with <virtual/path> arguments replaced",
        description="Run a program from the tree root. Arguments written as "
        "<virtual/path> are replaced by the real path of that reference.",
    )
    call.add_argument("tree", type=tree_name)
    call.add_argument("program")
    call.add_argument("arguments", nargs=argparse.REMAINDER)

    return parser


def parse_arguments(args: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        args: Argument list to parse (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace

    Raises:
        SystemExit: On invalid arguments or --help/--version
        CLIError: If arguments parse but are inconsistent
    """
    parsed = _build_parser().parse_args(args)
    _validate_arguments(parsed)
    return parsed


def _validate_arguments(args: argparse.Namespace) -> None:
    """
    Validate parsed arguments.

    Args:
        args: Parsed arguments namespace

    Raises:
        CLIError: If validation fails
    """
    if args.config:
        config_path = Path(args.config).expanduser()

        if not config_path.exists():
            raise CLIError(f"Configuration file does not exist: {args.config}")

        if not config_path.is_file():
            raise CLIError(f"Configuration path is not a file: {args.config}")

    if args.store:
        store_path = Path(args.store).expanduser()
        if store_path.exists() and not store_path.is_dir():
            raise CLIError(f"Store path is not a directory: {args.store}")


def build_config_from_args(args: argparse.Namespace) -> Dict:
    """
    Build configuration dictionary from command-line arguments.

    Args:
        args: Parsed arguments namespace

    Returns:
        Configuration dictionary for ConfigManager (CLI_ARGS level)
    """
    section: Dict = {}

    if args.store:
        section["store"] = {"path": os.path.abspath(os.path.expanduser(args.store))}

    logging_config: Dict = {}
    if args.debug:
        logging_config["level"] = "DEBUG"
    if args.log_file:
        logging_config["file"] = args.log_file
    if logging_config:
        section["logging"] = logging_config

    return {ConfigKey.ROOT: section}


def load_config(args: argparse.Namespace) -> ConfigManager:
    """
    Assemble configuration from defaults, file, environment and arguments.

    Raises:
        ConfigError: If the file cannot be read or the result is invalid
    """
    config = ConfigManager(config_file=args.config)
    config.load_dict(build_config_from_args(args), ConfigSource.CLI_ARGS)
    config.validate()
    return config


def setup_logging(args: argparse.Namespace, config: ConfigManager) -> Logger:
    """
    Setup logging based on arguments and configuration.

    Args:
        args: Parsed arguments namespace
        config: Configuration manager

    Returns:
        Configured logger instance
    """
    level = "DEBUG" if args.debug else config.get(ConfigKey.LOG_LEVEL, LogLevel.WARNING.name)
    log_file = args.log_file or config.get(ConfigKey.LOG_FILE)

    logger = configure_logging(level, log_file)
    logger.debug("Logging configured", level=str(level), file=log_file)
    return logger


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Parses arguments, loads configuration and passes control to
    vtree.main for the selected command.

    Returns:
        Process exit code
    """
    try:
        args = parse_arguments(argv)
        config = load_config(args)
        logger = setup_logging(args, config)

        from vtree.main import run_vtree

        return run_vtree(args, config, logger)

    except VTreeError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return int(e.error_code)

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return int(ErrorCode.INTERRUPTED)

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        import traceback

        traceback.print_exc()
        return int(ErrorCode.INTERNAL_ERROR)


if __name__ == "__main__":
    sys.exit(main())
