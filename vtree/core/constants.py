"""
vtree Core: Constants and Type Definitions

This module provides system-wide constants, exit codes, and type definitions
shared by the tree model, the store and the command-line front end.
"""
from enum import Enum, IntEnum

# Version information
VTREE_VERSION = "1.0.0"
STORE_FORMAT_VERSION = "1.0"


# Exit codes, also carried by every VTreeError
class ErrorCode(IntEnum):
    """Standardized error codes for vtree operations."""

    SUCCESS = 0  # Operation completed successfully
    INVALID_INPUT = 1  # Bad name, bad arguments, invalid configuration
    PATH_NOT_FOUND = 2  # Virtual path doesn't exist
    TREE_NOT_FOUND = 3  # No stored tree with that name
    COLLISION = 4  # Name already taken by a sibling or another tree
    NOT_A_DIRECTORY = 5  # Reference used where a directory is required
    NOT_EMPTY = 6  # Directory removal without recursive flag
    IO_FAILURE = 7  # Reading or writing the store failed
    STORE_CORRUPT = 8  # Persisted record unreadable
    LOCK_HELD = 9  # Another session holds the tree
    SPAWN_FAILED = 10  # External command could not start
    DANGLING = 11  # Dangling references found by `check`
    INTERNAL_ERROR = 12  # Bug in vtree
    INTERRUPTED = 130  # Ctrl-C


class NodeKind(Enum):
    """Tag of the two node variants."""

    DIRECTORY = "directory"
    REFERENCE = "reference"


# Virtual path syntax
PATH_SEPARATOR = "/"
CURRENT_SEGMENT = "."
PARENT_SEGMENT = ".."

# Marker around a virtual path argument of `call`, e.g. `call cat <data/a>`
REFERENCE_OPEN = "<"
REFERENCE_CLOSE = ">"

# Characters never allowed in node or tree names
INVALID_NAME_CHARS = '\\/#|"*?<>:'


class Limits:
    """System limits and default values."""

    MAX_NAME_LENGTH = 255
    MAX_PATH_LENGTH = 4096
    MAX_DESCRIPTION_LENGTH = 4096

    # A lock older than this is considered abandoned
    DEFAULT_LOCK_STALE_SECONDS = 24 * 60 * 60


# Store layout
class StoreLayout:
    """Names used inside the store directory."""

    DEFAULT_HOME = "~/.vtree"
    TREES_DIR = "trees"
    LOCKS_DIR = "locks"
    TREE_SUFFIX = ".yaml"
    LOCK_SUFFIX = ".lock"
    HOME_ENV = "VTREE_HOME"


# Configuration keys
class ConfigKey:
    """Configuration key constants (dot-separated paths)."""

    ROOT = "vtree"
    STORE_PATH = "vtree.store.path"
    LOCK_STALE_SECONDS = "vtree.lock.stale_seconds"
    LOG_LEVEL = "vtree.logging.level"
    LOG_FILE = "vtree.logging.file"
    PROMPT = "vtree.session.prompt"


DEFAULT_PROMPT = "/[{{ tree }}]{{ cwd }}{% if cwd != '/' %}/{% endif %} > "

# Default configuration values
DEFAULT_CONFIG = {
    "vtree": {
        "store": {
            "path": None,
        },
        "lock": {
            "stale_seconds": Limits.DEFAULT_LOCK_STALE_SECONDS,
        },
        "logging": {
            "level": "WARNING",
            "file": None,
        },
        "session": {
            "prompt": DEFAULT_PROMPT,
        },
    }
}
