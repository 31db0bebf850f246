"""
Adaptive progress indicator.

Progress is drawn only on an interactive stderr, at exactly INFO verbosity,
and while ``show_progress`` is enabled. Long loops are sampled so the line is
redrawn a handful of times rather than on every step.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shellcore._types import LogLevel
from shellcore.ui.terminal import CLEAR_LINE

if TYPE_CHECKING:
    from shellcore.config import ConfigRegistry
    from shellcore.log import LogEngine
    from shellcore.ui.terminal import TerminalProbe

WIDE_TERMINAL = 70
BAR_FILL = "█"
BAR_EMPTY = "░"


def comma(n: int | str) -> str:
    """Group digits in threes: comma(1234567) == '1,234,567'. Non-numbers pass through."""
    text = str(n)
    sign = ""
    if text.startswith("-"):
        sign, text = "-", text[1:]
    if not text.isdigit():
        return sign + text
    return sign + f"{int(text):,}"


def should_sample(current: int, total: int, interval: int) -> bool:
    """
    Decide whether step ``current`` of ``total`` is drawn.

    Boundaries are always drawn. Up to 3 items: nothing else. Up to 8: the
    midpoint too. Up to 25: every 5th. Beyond that: every ``interval``-th.
    """
    if current in (1, total):
        return True
    if total <= 3:
        return False
    if total <= 8:
        return current == (total + 1) // 2
    if total <= 25:
        return current % 5 == 0
    return current % max(1, interval) == 0


class ProgressIndicator:
    """Draws ``[bar] pct% ...`` lines on stderr."""

    def __init__(self, config: ConfigRegistry, log: LogEngine, terminal: TerminalProbe) -> None:
        self._config = config
        self._log = log
        self._terminal = terminal
        self.renders = 0

    def enabled(self) -> bool:
        """True when all three gates are open."""
        return (
            self._terminal.is_terminal
            and self._config.verbosity == LogLevel.INFO
            and self._config.show_progress
        )

    def show(self, current: int, total: int, label: str = "items") -> bool:
        """
        Draw progress for step ``current`` of ``total``.

        Returns:
            True if a line was drawn.
        """
        if (
            isinstance(current, bool)
            or isinstance(total, bool)
            or not isinstance(current, int)
            or not isinstance(total, int)
        ):
            self._log.debug("Invalid progress params: must be integers.")
            return False
        if total <= 0 or current < 0 or current > total:
            self._log.debug(f"Invalid progress range: {current}/{total}.")
            return False

        if not self.enabled():
            return False

        interval = int(self._config["progress_update_interval"])
        if not should_sample(current, total, interval):
            return False

        line = self.render(current, total, label or "items", self._terminal.width())
        out = self._terminal.console.file
        out.write(CLEAR_LINE + line)
        if current == total:
            out.write("\n")
        out.flush()
        self.renders += 1
        return True

    @staticmethod
    def render(current: int, total: int, label: str, width: int) -> str:
        """Format one progress line for a terminal of the given width."""
        percent = (current * 100) // total
        bar_width = 20 if width > 40 else 10
        filled = min(bar_width, max(0, (percent * bar_width) // 100))
        bar = BAR_FILL * filled + BAR_EMPTY * (bar_width - filled)

        if width > WIDE_TERMINAL:
            return f"[{bar}] {percent:3d}% | {label}: {comma(current)} / {comma(total)} "
        return f"[{bar}] {percent:3d}% ({comma(current)}/{comma(total)})"

    def clear(self) -> None:
        self._terminal.clear_line()

    def toggle(self) -> bool:
        """Flip ``show_progress``; returns the new value."""
        enabled = not self._config.show_progress
        self._config.set("show_progress", enabled)
        self._log.info("Progress bars enabled" if enabled else "Progress bars disabled")
        return enabled
