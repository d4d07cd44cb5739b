#!/usr/bin/env python3
"""Layered configuration for vtree.

Values come from five layers; a higher layer wins key by key:

1. Compiled defaults (``DEFAULT_CONFIG``)
2. User config file (``--config``, ``$VTREE_CONFIG`` or ~/.config/vtree/config.yaml)
3. Environment (``VTREE_HOME``, ``VTREE_LOG_LEVEL``, ...)
4. Command-line options
5. Runtime overrides

Keys are dotted paths into the nested ``vtree:`` section.

Example:
    >>> config = ConfigManager()
    >>> config.get("vtree.lock.stale_seconds", default=86400)
    >>> config.store_path()
"""

import copy
import os
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional

import yaml

from vtree.core.constants import DEFAULT_CONFIG, ConfigKey, ErrorCode, StoreLayout
from vtree.core.errors import VTreeError
from vtree.core.validators import ValidationError, validate_config

USER_CONFIG_PATH = "~/.config/vtree/config.yaml"
CONFIG_ENV = "VTREE_CONFIG"

# Environment variable -> configuration key
ENV_KEYS = {
    StoreLayout.HOME_ENV: ConfigKey.STORE_PATH,
    "VTREE_LOCK_STALE_SECONDS": ConfigKey.LOCK_STALE_SECONDS,
    "VTREE_LOG_LEVEL": ConfigKey.LOG_LEVEL,
    "VTREE_LOG_FILE": ConfigKey.LOG_FILE,
    "VTREE_PROMPT": ConfigKey.PROMPT,
}

# Keys whose environment value is converted with coerce_env_value; all others stay strings
COERCED_KEYS = {ConfigKey.LOCK_STALE_SECONDS}


class ConfigSource(Enum):
    """Configuration layers, lowest precedence first."""

    COMPILED_DEFAULTS = 1
    USER_CONFIG = 2
    ENVIRONMENT = 3
    CLI_ARGS = 4
    RUNTIME = 5


class ConfigError(VTreeError):
    """Unreadable or invalid configuration."""

    error_code = ErrorCode.INVALID_INPUT


def coerce_env_value(value: str) -> Any:
    """Turn an environment string into a bool, int or float where it looks like one."""
    lowered = value.lower()
    if lowered in ("true", "yes"):
        return True
    if lowered in ("false", "no"):
        return False
    for kind in (int, float):
        try:
            return kind(value)
        except ValueError:
            continue
    return value


def _lookup(section: Dict[str, Any], key: str) -> Optional[Any]:
    node: Any = section
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def _assign(section: Dict[str, Any], key: str, value: Any) -> None:
    *parents, leaf = key.split(".")
    for part in parents:
        section = section.setdefault(part, {})
    section[leaf] = value


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursive merge; a None in ``override`` keeps the base value."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = _merge(result[key], value)
        elif value is not None or key not in result:
            result[key] = value
    return result


class ConfigManager:
    """Thread-safe layered configuration (see module docstring for the layers)."""

    def __init__(
        self,
        config_file: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
        load_user_config: bool = True,
    ):
        """
        Args:
            config_file: File to load as the user layer; must exist
            environ: Environment to read overrides from (os.environ if None)
            load_user_config: Fall back to ~/.config/vtree/config.yaml when present
        """
        self._layers: Dict[ConfigSource, Dict[str, Any]] = {
            ConfigSource.COMPILED_DEFAULTS: copy.deepcopy(DEFAULT_CONFIG)
        }
        self._lock = threading.RLock()
        self._environ = os.environ if environ is None else environ

        config_file = config_file or self._environ.get(CONFIG_ENV)
        if config_file:
            self.load_file(config_file)
        elif load_user_config:
            user_path = Path(USER_CONFIG_PATH).expanduser()
            if user_path.is_file():
                self.load_file(str(user_path))

        self._load_environment()

    def _ordered(self, highest_first: bool = False) -> Iterator[Dict[str, Any]]:
        for source in sorted(self._layers, key=lambda s: s.value, reverse=highest_first):
            yield self._layers[source]

    def load_file(self, file_path: str, source: ConfigSource = ConfigSource.USER_CONFIG) -> None:
        """Read a YAML file into ``source``.

        The top-level ``vtree:`` key is optional in the file.

        Raises:
            ConfigError: If the file is missing, unreadable or not a mapping
        """
        path = Path(file_path).expanduser()
        if not path.exists():
            raise ConfigError(f"Config file not found: {file_path}", ErrorCode.PATH_NOT_FOUND)

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML parse error in {file_path}: {e}")
        except OSError as e:
            raise ConfigError(f"Error loading config {file_path}: {e}", ErrorCode.IO_FAILURE)

        data = {} if data is None else data
        if not isinstance(data, dict):
            raise ConfigError(f"Invalid config format in {file_path}")
        if ConfigKey.ROOT not in data:
            data = {ConfigKey.ROOT: data}

        with self._lock:
            self._layers[source] = data

    def load_dict(self, config_data: Dict[str, Any], source: ConfigSource = ConfigSource.RUNTIME) -> None:
        """Replace layer ``source`` with a copy of ``config_data``."""
        with self._lock:
            self._layers[source] = copy.deepcopy(config_data)

    def _load_environment(self) -> None:
        layer: Dict[str, Any] = {}
        for env_name, key in ENV_KEYS.items():
            value = self._environ.get(env_name)
            if value:
                _assign(layer, key, coerce_env_value(value) if key in COERCED_KEYS else value)

        if layer:
            with self._lock:
                self._layers[ConfigSource.ENVIRONMENT] = layer

    def get(self, key: str, default: Any = None) -> Any:
        """Value of dotted ``key`` from the highest layer that sets it."""
        with self._lock:
            for layer in self._ordered(highest_first=True):
                value = _lookup(layer, key)
                if value is not None:
                    return value
            return default

    def set(self, key: str, value: Any, source: ConfigSource = ConfigSource.RUNTIME) -> None:
        with self._lock:
            _assign(self._layers.setdefault(source, {}), key, value)

    def get_all(self) -> Dict[str, Any]:
        """All layers merged into one nested dictionary."""
        with self._lock:
            merged: Dict[str, Any] = {}
            for layer in self._ordered():
                merged = _merge(merged, layer)
            return merged

    def validate(self) -> bool:
        """Check the merged configuration.

        Raises:
            ConfigError: If a value has the wrong type or range
        """
        try:
            return validate_config(self.get_all())
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e.message}")

    def store_path(self) -> Path:
        """Directory holding the tree store."""
        return Path(self.get(ConfigKey.STORE_PATH) or StoreLayout.DEFAULT_HOME).expanduser()
