"""
Config Registry: a fixed table of typed settings read by every component.

Keys are fixed when the registry is created. Values may change at runtime but
never change type.
"""

from __future__ import annotations

import os
from collections.abc import Iterator, Mapping
from typing import Union

from shellcore.errors import ConfigurationError

ConfigValue = Union[int, bool]

DEFAULTS: dict[str, ConfigValue] = {
    "log_error": 0,
    "log_warn": 1,
    "log_info": 2,
    "log_debug": 3,
    "exit_general_error": 1,
    "exit_interrupted": 130,
    "exit_timeout": 124,
    "timeout_default": 30,
    "log_max_depth": 50,
    "cache_max_size": 100,
    "progress_update_interval": 10,
    "performance_mode": False,
    "show_progress": True,
}

# Environment variable -> registry key
ENV_OVERRIDES: dict[str, str] = {
    "SHELLCORE_PERFORMANCE_MODE": "performance_mode",
    "SHELLCORE_SHOW_PROGRESS": "show_progress",
    "SHELLCORE_CACHE_MAX_SIZE": "cache_max_size",
    "SHELLCORE_TIMEOUT_DEFAULT": "timeout_default",
    "SHELLCORE_LOG_MAX_DEPTH": "log_max_depth",
    "SHELLCORE_PROGRESS_INTERVAL": "progress_update_interval",
}

VERBOSE_ENV = "SHELLCORE_VERBOSE"


def _coerce(key: str, current: ConfigValue, value: object) -> ConfigValue:
    """Convert value to the type of current, or raise ConfigurationError."""
    if isinstance(current, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value in ("true", "false"):
            return value == "true"
        raise ConfigurationError(
            f"Value for '{key}' must be 'true' or 'false', but got {value!r}."
        )

    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0:
            raise ConfigurationError(f"Value for '{key}' must be non-negative, but got {value}.")
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    raise ConfigurationError(f"Value for '{key}' must be an integer, but got {value!r}.")


class ConfigRegistry(Mapping[str, ConfigValue]):
    """
    Mutable, fixed-key settings table.

    Example:
        >>> config = ConfigRegistry()
        >>> config.set("cache_max_size", "10")
        10
        >>> config["cache_max_size"]
        10
    """

    def __init__(self, overrides: Mapping[str, object] | None = None) -> None:
        self._values: dict[str, ConfigValue] = dict(DEFAULTS)
        self.verbosity: int = int(DEFAULTS["log_info"])
        for key, value in (overrides or {}).items():
            self.set(key, value)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ConfigRegistry:
        """
        Build a registry from SHELLCORE_* environment variables.

        Malformed values are ignored so a bad environment never breaks startup.
        Verbosity above INFO is only honoured outside performance mode.
        """
        env = os.environ if environ is None else environ
        registry = cls()

        for var, key in ENV_OVERRIDES.items():
            raw = env.get(var)
            if raw:
                try:
                    registry.set(key, raw.strip().lower())
                except ConfigurationError:
                    pass

        raw_verbose = env.get(VERBOSE_ENV, "").strip()
        if raw_verbose.isdigit():
            requested = int(raw_verbose)
            info = int(registry["log_info"])
            debug = int(registry["log_debug"])
            if requested <= info:
                registry.verbosity = requested
            elif not registry["performance_mode"]:
                registry.verbosity = min(requested, debug)

        return registry

    def __getitem__(self, key: str) -> ConfigValue:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def set(self, key: str, value: object) -> ConfigValue:
        """
        Overwrite a setting, keeping its type.

        Args:
            key: Existing setting name.
            value: New value; "true"/"false" and digit strings are accepted.

        Returns:
            The stored (coerced) value.

        Raises:
            ConfigurationError: For an empty or unknown key or a mistyped value.
        """
        if not key:
            raise ConfigurationError("Configuration key cannot be empty.")
        if key not in self._values:
            raise ConfigurationError(f"Unknown configuration key: '{key}'.")
        coerced = _coerce(key, self._values[key], value)
        self._values[key] = coerced
        return coerced

    @property
    def performance_mode(self) -> bool:
        return bool(self._values["performance_mode"])

    @property
    def show_progress(self) -> bool:
        return bool(self._values["show_progress"])
