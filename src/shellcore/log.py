"""
Logging Engine: leveled, timestamped, recursion-guarded diagnostics.

Every line goes to stderr as ``<timestamp> [<tag>] <message>``. The tag is
coloured only when stderr is a terminal and colour is not disabled. Logging
never raises into the caller; the only fatal outcome is exceeding the
recursion depth, which is reported as LogStatus.FATAL.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager

from rich.console import Console
from rich.text import Text

from shellcore._types import LogLevel, LogStatus
from shellcore.config import ConfigRegistry

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_TAGS: dict[LogLevel, tuple[str, str]] = {
    LogLevel.ERROR: ("error", "red"),
    LogLevel.WARN: ("warn", "yellow"),
    LogLevel.INFO: ("info", "blue"),
    LogLevel.DEBUG: ("debug", "green"),
}

_STDLIB_LEVELS: dict[LogLevel, int] = {
    LogLevel.ERROR: logging.ERROR,
    LogLevel.WARN: logging.WARNING,
    LogLevel.INFO: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
}


def color_disabled() -> bool:
    """Return True when the environment asks for plain output."""
    return bool(os.environ.get("NO_COLOR")) or os.environ.get("TERM") == "dumb"


def make_stderr_console() -> Console:
    """Create the console all diagnostics are written to."""
    return Console(
        stderr=True,
        highlight=False,
        soft_wrap=True,
        no_color=color_disabled(),
    )


class LogEngine:
    """
    Leveled logger with an explicit recursion guard.

    Example:
        >>> log = LogEngine(ConfigRegistry())
        >>> log.info("Loaded", 3, "modules")
        <LogStatus.OK: 'ok'>
    """

    def __init__(self, config: ConfigRegistry, *, console: Console | None = None) -> None:
        self._config = config
        self._console = console or make_stderr_console()
        self._depth = 0
        self._cached_epoch = -1
        self._cached_timestamp = ""

    @property
    def console(self) -> Console:
        return self._console

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def verbosity(self) -> LogLevel:
        return LogLevel(self._config.verbosity)

    def set_verbosity(self, level: LogLevel | int) -> None:
        self._config.verbosity = int(LogLevel(level))

    def enable_debug(self) -> None:
        """Switch to debug verbosity."""
        self.set_verbosity(LogLevel.DEBUG)
        self.info("Debug mode enabled")

    def get_level(self) -> str:
        """Describe the current verbosity, e.g. 'Current verbosity level: 2 (info)'."""
        level = self._config.verbosity
        try:
            name = LogLevel(level).name.lower()
        except ValueError:
            name = "unknown"
        return f"Current verbosity level: {level} ({name})"

    @contextmanager
    def _guard(self) -> Iterator[bool]:
        """Track nesting depth; yields False once the configured limit is exceeded."""
        self._depth += 1
        try:
            yield self._depth <= int(self._config["log_max_depth"])
        finally:
            self._depth -= 1

    def _timestamp(self) -> str:
        now = int(time.time())
        if now != self._cached_epoch:
            self._cached_epoch = now
            self._cached_timestamp = time.strftime(TIMESTAMP_FORMAT, time.localtime(now))
        return self._cached_timestamp

    def _write_raw(self, line: str) -> None:
        try:
            self._console.file.write(line + "\n")
            self._console.file.flush()
        except (OSError, ValueError):
            pass

    def log(self, level: LogLevel | int, *parts: object) -> LogStatus:
        """
        Emit one message if level is within the current verbosity.

        Args:
            level: A LogLevel or its integer value.
            *parts: Message fragments, joined with single spaces.

        Returns:
            OK when emitted or filtered, FAILED for an invalid level,
            FATAL when the recursion depth limit was exceeded.
        """
        with self._guard() as within_limit:
            if not within_limit:
                self._write_raw("FATAL: Recursion in log engine")
                return LogStatus.FATAL

            try:
                if isinstance(level, bool) or not isinstance(level, int):
                    raise ValueError(level)
                level = LogLevel(level)
            except ValueError:
                self._write_raw(f"[error] Invalid log level: '{level}'")
                return LogStatus.FAILED

            if level > self._config.verbosity:
                return LogStatus.OK

            try:
                message = " ".join(str(part) for part in parts)
            except Exception as e:
                self._write_raw(f"[error] Could not format log message: {e}")
                return LogStatus.FAILED

            tag, style = _TAGS[level]
            line = Text.assemble(
                self._timestamp(),
                " ",
                (f"[{tag}]", style),
                " ",
                message,
            )
            try:
                self._console.print(line, soft_wrap=True)
            except (OSError, ValueError):
                return LogStatus.FAILED

            logger.log(_STDLIB_LEVELS[level], message)
            return LogStatus.OK

    def error(self, *parts: object) -> LogStatus:
        return self.log(LogLevel.ERROR, *parts)

    def warn(self, *parts: object) -> LogStatus:
        return self.log(LogLevel.WARN, *parts)

    def info(self, *parts: object) -> LogStatus:
        return self.log(LogLevel.INFO, *parts)

    def debug(self, *parts: object) -> LogStatus:
        return self.log(LogLevel.DEBUG, *parts)
