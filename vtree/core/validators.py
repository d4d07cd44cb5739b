"""
vtree Core: Input Validators.

This module provides input validation functions for node names, tree names,
reference targets, descriptions and configuration.
"""
import re
from typing import Any, Dict, Optional

from vtree.core.constants import (
    CURRENT_SEGMENT,
    INVALID_NAME_CHARS,
    PARENT_SEGMENT,
    ConfigKey,
    ErrorCode,
    Limits,
)
from vtree.core.errors import VTreeError


class ValidationError(VTreeError):
    """Base exception for validation errors."""

    error_code = ErrorCode.INVALID_INPUT


def _check_text(value: Any, what: str, max_length: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{what} must be string, got {type(value).__name__}")

    if len(value) > max_length:
        raise ValidationError(f"{what} exceeds maximum length ({max_length})")

    if "\0" in value:
        raise ValidationError(f"{what} contains null bytes")

    return value


def validate_node_name(name: str) -> bool:
    """Validate the name of a directory or reference.

    Args:
        name: Name to validate

    Returns:
        True if valid

    Raises:
        ValidationError: If name is invalid
    """
    if not name:
        raise ValidationError("Name cannot be empty")

    _check_text(name, "Name", Limits.MAX_NAME_LENGTH)

    if name in (CURRENT_SEGMENT, PARENT_SEGMENT):
        raise ValidationError(f"Name {name!r} is reserved")

    if any(ord(c) < 32 for c in name):
        raise ValidationError("Name contains control characters")

    bad = sorted({c for c in name if c in INVALID_NAME_CHARS})
    if bad:
        raise ValidationError(
            f"Name {name!r} is not valid: must not contain any of "
            f"{' '.join(INVALID_NAME_CHARS)} (found {''.join(bad)})"
        )

    if name != name.strip():
        raise ValidationError(f"Name {name!r} has leading or trailing whitespace")

    return True


def validate_tree_name(name: str) -> bool:
    """Validate a tree name.

    Tree names become file names inside the store, so they follow the node
    name rules and additionally may not start with a dot.

    Raises:
        ValidationError: If name is invalid
    """
    validate_node_name(name)

    if name.startswith("."):
        raise ValidationError(f"Tree name {name!r} must not start with '.'")

    return True


def validate_target_path(path: str) -> bool:
    """Validate the real path a reference points to.

    Existence is not checked here; forward references are allowed.

    Raises:
        ValidationError: If path is invalid
    """
    if not path:
        raise ValidationError("Target path cannot be empty")

    _check_text(path, "Target path", Limits.MAX_PATH_LENGTH)

    if any(ord(c) < 32 and c not in "\t" for c in path):
        raise ValidationError("Target path contains control characters")

    return True


def validate_description(text: Optional[str]) -> bool:
    """Validate a free-text description (None means "no description").

    Raises:
        ValidationError: If text is invalid
    """
    if text is None:
        return True

    _check_text(text, "Description", Limits.MAX_DESCRIPTION_LENGTH)
    return True


def validate_log_level(level: str) -> bool:
    """Validate a logging level name.

    Raises:
        ValidationError: If level is unknown
    """
    if not isinstance(level, str) or level.upper() not in (
        "DEBUG",
        "INFO",
        "WARNING",
        "ERROR",
        "CRITICAL",
    ):
        raise ValidationError(f"Invalid log level: {level}")
    return True


def validate_version(version: str) -> bool:
    """Validate version string format.

    Raises:
        ValidationError: If version is invalid
    """
    if not version:
        raise ValidationError("Version cannot be empty")

    if not isinstance(version, str):
        raise ValidationError(f"Version must be string, got {type(version)}")

    # Simple semantic version check (X.Y or X.Y.Z)
    if not re.match(r"^\d+\.\d+(\.\d+)?$", version):
        raise ValidationError(f"Invalid version format: {version}. Expected X.Y or X.Y.Z")

    return True


def validate_config(config: Dict[str, Any]) -> bool:
    """Validate the merged vtree configuration.

    Args:
        config: Configuration dictionary (with the top-level "vtree" key)

    Returns:
        True if valid

    Raises:
        ValidationError: If configuration is invalid
    """
    if not isinstance(config, dict):
        raise ValidationError("Configuration must be a dictionary")

    section = config.get(ConfigKey.ROOT, {})
    if not isinstance(section, dict):
        raise ValidationError("'vtree' section must be a dictionary")

    store = section.get("store", {}) or {}
    if not isinstance(store, dict):
        raise ValidationError("'vtree.store' must be a dictionary")
    store_path = store.get("path")
    if store_path is not None and (not isinstance(store_path, str) or not store_path):
        raise ValidationError(f"Store path must be a non-empty string: {store_path!r}")

    lock = section.get("lock", {}) or {}
    if not isinstance(lock, dict):
        raise ValidationError("'vtree.lock' must be a dictionary")
    stale = lock.get("stale_seconds", Limits.DEFAULT_LOCK_STALE_SECONDS)
    if isinstance(stale, bool) or not isinstance(stale, (int, float)) or stale <= 0:
        raise ValidationError(f"Lock stale_seconds must be positive number: {stale}")

    logging_cfg = section.get("logging", {}) or {}
    if not isinstance(logging_cfg, dict):
        raise ValidationError("'vtree.logging' must be a dictionary")
    if "level" in logging_cfg:
        validate_log_level(logging_cfg["level"])

    session = section.get("session", {}) or {}
    if not isinstance(session, dict):
        raise ValidationError("'vtree.session' must be a dictionary")
    prompt = session.get("prompt")
    if prompt is not None and not isinstance(prompt, str):
        raise ValidationError(f"Prompt template must be string: {prompt!r}")

    return True
