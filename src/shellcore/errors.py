"""
Exception hierarchy for shellcore.

Component classes raise these; ShellRuntime converts them into status codes
and log lines so a startup script is never unwound by a library failure.
"""

from __future__ import annotations


class ShellCoreError(Exception):
    """Base class for all shellcore errors."""


class ConfigurationError(ShellCoreError):
    """Raised for unknown configuration keys or mistyped values."""


class PathResolutionError(ShellCoreError):
    """
    Raised when a path cannot be resolved.

    Attributes:
        path: The path as given by the caller.
    """

    def __init__(self, message: str, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class ExecutionError(ShellCoreError):
    """Raised when a command cannot be started at all."""


class FatalError(ShellCoreError):
    """
    Raised by ShellRuntime.die() inside a sourced file.

    Safe sourcing catches it and returns exit_code to its caller instead of
    terminating the process.
    """

    def __init__(self, message: str, exit_code: int = 1) -> None:
        self.exit_code = exit_code
        super().__init__(message)
