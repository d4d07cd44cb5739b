"""
vtree Core: Error Taxonomy.

Every failure vtree reports is a VTreeError carrying the ErrorCode the
command-line front end exits with.
"""
from typing import Optional

from vtree.core.constants import ErrorCode


class VTreeError(Exception):
    """Base exception for all vtree errors."""

    error_code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, error_code: Optional[ErrorCode] = None):
        """Initialize VTreeError.

        Args:
            message: Error message
            error_code: Associated error code (defaults to the class code)
        """
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code


class TreeNotFoundError(VTreeError):
    """No stored tree with the requested name."""

    error_code = ErrorCode.TREE_NOT_FOUND


class PathNotFoundError(VTreeError):
    """A virtual path does not name a node."""

    error_code = ErrorCode.PATH_NOT_FOUND


class NameCollisionError(VTreeError):
    """Create or rename onto an existing sibling (or tree) name."""

    error_code = ErrorCode.COLLISION


class NotADirectoryError(VTreeError):  # noqa: A001 - shadows the builtin on purpose
    """A Reference was used as a parent or a `cd` target."""

    error_code = ErrorCode.NOT_A_DIRECTORY


class DirectoryNotEmptyError(VTreeError):
    """Removing a non-empty directory without asking for recursion."""

    error_code = ErrorCode.NOT_EMPTY


class DanglingReferenceError(VTreeError):
    """References whose target is missing, reported by `check`."""

    error_code = ErrorCode.DANGLING


class StoreCorruptError(VTreeError):
    """A persisted tree record cannot be read back."""

    error_code = ErrorCode.STORE_CORRUPT


class StoreIOError(VTreeError):
    """Reading or writing the store failed."""

    error_code = ErrorCode.IO_FAILURE


class LockHeldError(VTreeError):
    """Another live session holds the tree."""

    error_code = ErrorCode.LOCK_HELD


class SpawnFailedError(VTreeError):
    """An external command could not be started."""

    error_code = ErrorCode.SPAWN_FAILED


class ResolutionFailedError(VTreeError):
    """A marked argument of `call` could not be turned into a real path."""

    error_code = ErrorCode.PATH_NOT_FOUND

    def __init__(self, token: str, cause: VTreeError):
        super().__init__(f"Cannot resolve {token}: {cause.message}", cause.error_code)
        self.token = token
        self.cause = cause


class SessionError(VTreeError):
    """Operation not allowed in the current session state."""

    error_code = ErrorCode.INVALID_INPUT
