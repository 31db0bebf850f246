"""
Abstract base class for isolated execution backends.

The execution layer talks only to this interface, so tests and embedders can
swap in their own backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shellcore._types import CommandResult


class Sandbox(ABC):
    """
    Abstract base for isolated execution backends.

    Provides a consistent interface for running shell text in a child
    process under a timeout.
    """

    @property
    @abstractmethod
    def has_timeout_wrapper(self) -> bool:
        """True when a timeout facility protects every child process."""
        ...

    @abstractmethod
    async def execute(
        self,
        command: str,
        *,
        timeout: float = 30.0,
        capture_output: bool = False,
    ) -> CommandResult:
        """
        Execute shell text in a child process and return the result.

        Args:
            command: The shell text to execute.
            timeout: Maximum seconds to wait before killing the process.
            capture_output: Collect stdout/stderr instead of inheriting them.

        Returns:
            CommandResult with exit_code, and output when captured.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """
        Release backend resources.

        Idempotent - safe to call multiple times.
        """
        ...

    async def __aenter__(self) -> Sandbox:
        """Enter async context manager."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Exit async context manager, cleaning up resources."""
        await self.close()
