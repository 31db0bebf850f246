"""Tests for InterruptMonitor."""

from __future__ import annotations

import os
import signal
import threading

from rich.console import Console

from shellcore import ConfigRegistry
from shellcore.interrupts import InterruptMonitor
from shellcore.log import LogEngine


class TestInterruptMonitor:
    def test_not_interrupted(self, config: ConfigRegistry, log: LogEngine) -> None:
        assert InterruptMonitor(config, log).check() == 0

    def test_trigger_is_sticky(self, config: ConfigRegistry, log: LogEngine, console: Console) -> None:
        monitor = InterruptMonitor(config, log)
        monitor.trigger()
        assert monitor.check() == 130
        assert monitor.check() == 130
        text = console.file.getvalue()  # type: ignore[attr-defined]
        assert text.count("Interrupt received") == 1
        assert "Operation cancelled by user." in text

    def test_custom_exit_code(self, config: ConfigRegistry, log: LogEngine) -> None:
        config.set("exit_interrupted", 2)
        monitor = InterruptMonitor(config, log)
        monitor.trigger()
        assert monitor.check() == 2

    def test_on_interrupt_called_once(self, config: ConfigRegistry, log: LogEngine) -> None:
        calls: list[int] = []
        monitor = InterruptMonitor(config, log, on_interrupt=lambda: calls.append(1))
        monitor.trigger()
        monitor.trigger()
        assert calls == [1]

    def test_signal_sets_flag(self, config: ConfigRegistry, log: LogEngine) -> None:
        monitor = InterruptMonitor(config, log)
        assert monitor.install()
        try:
            os.kill(os.getpid(), signal.SIGTERM)
            assert monitor.interrupted
        finally:
            monitor.uninstall()

    def test_install_outside_main_thread(self, config: ConfigRegistry, log: LogEngine) -> None:
        monitor = InterruptMonitor(config, log)
        results: list[bool] = []
        thread = threading.Thread(target=lambda: results.append(monitor.install()))
        thread.start()
        thread.join()
        assert results == [False]
