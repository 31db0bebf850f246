"""
shellcore - safe primitives for shell startup code.

Example:
    >>> from shellcore import create_runtime
    >>> rt = create_runtime()
    >>> rt.run("echo hello").success
    True
"""

import logging

from shellcore._types import (
    CallResult,
    CommandError,
    CommandResult,
    ExecMode,
    LogLevel,
    LogStatus,
    PlatformInfo,
    Trust,
    UnsetKind,
    UnsetResult,
)
from shellcore.api import create_runtime
from shellcore.config import ConfigRegistry
from shellcore.errors import (
    ConfigurationError,
    ExecutionError,
    FatalError,
    PathResolutionError,
    ShellCoreError,
)
from shellcore.runtime import ShellRuntime
from shellcore.sandbox import LocalSandbox, Sandbox
from shellcore.security import SecurityScanner, SecurityViolation, ShellInitAllowlist

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Main API
    "create_runtime",
    "ShellRuntime",
    # Types
    "CallResult",
    "CommandResult",
    "ExecMode",
    "LogLevel",
    "LogStatus",
    "PlatformInfo",
    "Trust",
    "UnsetKind",
    "UnsetResult",
    # Components
    "ConfigRegistry",
    "Sandbox",
    "LocalSandbox",
    "SecurityScanner",
    "ShellInitAllowlist",
    # Errors
    "CommandError",
    "ConfigurationError",
    "ExecutionError",
    "FatalError",
    "PathResolutionError",
    "SecurityViolation",
    "ShellCoreError",
]
