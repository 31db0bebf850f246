"""
Core type definitions for shellcore.

Uses dataclasses and enums for lightweight, typed abstractions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any


class LogLevel(IntEnum):
    """Log verbosity, ordered from least to most verbose."""

    ERROR = 0
    WARN = 1
    INFO = 2
    DEBUG = 3


class LogStatus(Enum):
    """Outcome of a single LogEngine.log() call."""

    OK = "ok"
    FAILED = "failed"  # Bad call, e.g. an invalid level
    FATAL = "fatal"  # Recursion depth exceeded

    @property
    def success(self) -> bool:
        return self is LogStatus.OK


class Trust(Enum):
    """Who produced the code being executed."""

    UNTRUSTED = "untrusted"
    SHELL_INIT = "shell_init"  # Known startup tool on the allow-list


class ExecMode(Enum):
    """Where code runs."""

    RUN_ISOLATED = "run_isolated"  # Child process under a timeout
    EVAL_INLINE = "eval_inline"  # The ShellState namespace of this process


class UnsetKind(Enum):
    """What kind of binding StateManager.unset() targets."""

    VAR = "var"
    FUNC = "func"
    AUTO = "auto"


class UnsetResult(Enum):
    """Outcome of StateManager.unset()."""

    REMOVED = "removed"
    NOT_FOUND = "not_found"
    READ_ONLY_BLOCKED = "read_only_blocked"
    INVALID = "invalid"

    @property
    def success(self) -> bool:
        return self is UnsetResult.REMOVED


@dataclass(frozen=True, slots=True)
class ExecutionRequest:
    """A single run/eval request as seen by the execution pipeline."""

    command: str
    timeout: float
    mode: ExecMode = ExecMode.RUN_ISOLATED
    trust: Trust = Trust.UNTRUSTED
    high_risk: bool = False
    capture_output: bool = False


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Immutable result from command execution."""

    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool = False
    truncated: bool = False
    blocked: str | None = None

    @property
    def success(self) -> bool:
        """Return True if command exited with code 0."""
        return self.exit_code == 0 and not self.timed_out

    def raise_for_status(self) -> None:
        """Raise CommandError if exit_code is non-zero."""
        if not self.success:
            raise CommandError(
                f"Command failed with exit code {self.exit_code}: "
                f"{self.blocked or self.stderr or self.stdout}"
            )


@dataclass(frozen=True, slots=True)
class PreparedRequest:
    """
    A request after resolve, scan and the interrupt check.

    ``outcome`` is set when the pipeline already ended (blocked, refused,
    interrupted, failed init); otherwise ``code`` is ready to execute,
    inline when ``inline`` is True.
    """

    request: ExecutionRequest
    code: str
    inline: bool = False
    outcome: CommandResult | None = None


class CommandError(Exception):
    """Raised when a command exits with non-zero status."""

    pass


@dataclass(frozen=True, slots=True)
class CallResult:
    """Result of ShellRuntime.call(); found is False when no such function exists."""

    found: bool
    exit_code: int
    value: Any = None

    @property
    def success(self) -> bool:
        return self.found and self.exit_code == 0


@dataclass(frozen=True, slots=True)
class PlatformInfo:
    """Immutable OS classification computed once per runtime."""

    ostype: str
    is_macos: bool = False
    is_linux: bool = False
    is_bsd: bool = False
    is_cygwin: bool = False
    is_wsl: bool = False
    is_termux: bool = False
    is_unknown: bool = False

    def flags(self) -> dict[str, bool]:
        """Return the boolean flags keyed by name."""
        return {
            "is_macos": self.is_macos,
            "is_linux": self.is_linux,
            "is_bsd": self.is_bsd,
            "is_cygwin": self.is_cygwin,
            "is_wsl": self.is_wsl,
            "is_termux": self.is_termux,
            "is_unknown": self.is_unknown,
        }
