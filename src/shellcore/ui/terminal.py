"""
Terminal capability probe.
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from rich.console import Console

DEFAULT_WIDTH = 80
MIN_WIDTH = 10

CLEAR_LINE = "\r\x1b[K"


class TerminalProbe:
    """Answers "is stderr a terminal" and "how wide is it", caching the width."""

    def __init__(self, console: Console, *, environ: Mapping[str, str] | None = None) -> None:
        self._console = console
        self._environ = environ
        self._cached_width = 0
        self._cached_columns: str | None = None

    @property
    def console(self) -> Console:
        return self._console

    @property
    def is_terminal(self) -> bool:
        return self._console.is_terminal

    def width(self) -> int:
        """
        Return the terminal width in columns.

        ``COLUMNS`` wins when it is a number >= 10; otherwise the console size
        is used when attached to a terminal; otherwise 80. The answer is
        cached until ``COLUMNS`` changes.
        """
        env = os.environ if self._environ is None else self._environ
        columns = env.get("COLUMNS", "")
        if self._cached_width and columns == self._cached_columns:
            return self._cached_width

        width = DEFAULT_WIDTH
        if columns.isdigit() and int(columns) >= MIN_WIDTH:
            width = int(columns)
        elif self._console.is_terminal:
            size = self._console.size.width
            if size >= MIN_WIDTH:
                width = size

        self._cached_width = width
        self._cached_columns = columns
        return width

    def clear_line(self) -> None:
        """Erase a partially drawn line, if attached to a terminal."""
        if self._console.is_terminal:
            self._console.file.write(CLEAR_LINE)
            self._console.file.flush()
