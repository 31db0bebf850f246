"""
Advisory, process-wide interrupt flag set from SIGINT/SIGTERM.

The flag never preempts running work. Safe execution and safe sourcing check
it before starting; once set it stays set for the life of the runtime.
"""

from __future__ import annotations

import signal
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from shellcore.config import ConfigRegistry
    from shellcore.log import LogEngine


class InterruptMonitor:
    """Records interrupts and reports them as the configured exit code."""

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(
        self,
        config: ConfigRegistry,
        log: LogEngine,
        *,
        on_interrupt: Callable[[], None] | None = None,
    ) -> None:
        self._config = config
        self._log = log
        self._on_interrupt = on_interrupt
        self._previous: dict[int, Any] = {}
        self.interrupted = False

    def install(self) -> bool:
        """
        Register handlers for SIGINT and SIGTERM.

        Returns False when signals cannot be installed here (for example
        outside the main thread).
        """
        try:
            for signum in self.SIGNALS:
                self._previous[signum] = signal.signal(signum, self._handle)
        except ValueError:
            self._log.debug("Interrupt handlers not installed: not in the main thread")
            return False
        return True

    def uninstall(self) -> None:
        """Restore the handlers that were active before install()."""
        for signum, handler in self._previous.items():
            signal.signal(signum, handler)
        self._previous.clear()

    def _handle(self, signum: int, frame: object) -> None:
        self.trigger()

    def trigger(self) -> None:
        """Mark the runtime as interrupted; repeated calls are no-ops."""
        if self.interrupted:
            return
        self.interrupted = True
        if self._on_interrupt is not None:
            self._on_interrupt()
        self._log.warn("Interrupt received. Gracefully shutting down...")

    def check(self) -> int:
        """Return 0, or the interrupted exit code when an interrupt was seen."""
        if self.interrupted:
            self._log.info("Operation cancelled by user.")
            return int(self._config["exit_interrupted"])
        return 0
