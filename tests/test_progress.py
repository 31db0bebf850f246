"""Tests for the terminal probe and progress indicator."""

from __future__ import annotations

import pytest
from rich.console import Console

from shellcore import ConfigRegistry
from shellcore.log import LogEngine
from shellcore.ui import ProgressIndicator, TerminalProbe, comma, should_sample
from shellcore.ui.terminal import CLEAR_LINE


@pytest.fixture
def progress(config: ConfigRegistry, tty_console: Console) -> ProgressIndicator:
    log = LogEngine(config, console=tty_console)
    return ProgressIndicator(config, log, TerminalProbe(tty_console, environ={}))


def written(console: Console) -> str:
    return console.file.getvalue()  # type: ignore[attr-defined]


class TestComma:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(0, "0"), (999, "999"), (1000, "1,000"), (1234567, "1,234,567"), (-1234, "-1,234"), ("abc", "abc")],
    )
    def test_comma(self, value: int | str, expected: str) -> None:
        assert comma(value) == expected


class TestSampling:
    def test_tiny_totals_draw_boundaries_only(self) -> None:
        assert [i for i in range(1, 4) if should_sample(i, 3, 10)] == [1, 3]

    def test_small_totals_draw_midpoint(self) -> None:
        assert [i for i in range(1, 8) if should_sample(i, 7, 10)] == [1, 4, 7]

    def test_medium_totals_every_fifth(self) -> None:
        assert [i for i in range(1, 21) if should_sample(i, 20, 10)] == [1, 5, 10, 15, 20]

    def test_large_totals_use_interval(self) -> None:
        drawn = [i for i in range(1, 101) if should_sample(i, 100, 10)]
        assert drawn == [1, 10, 20, 30, 40, 50, 60, 70, 80, 90, 100]

    def test_thirty_items_use_interval(self) -> None:
        assert [i for i in range(1, 31) if should_sample(i, 30, 10)] == [1, 10, 20, 30]

    def test_boundaries_always_drawn(self) -> None:
        for total in (1, 2, 5, 13, 26, 1000):
            assert should_sample(1, total, 10)
            assert should_sample(total, total, 10)


class TestTerminalProbe:
    def test_columns_wins(self, tty_console: Console) -> None:
        assert TerminalProbe(tty_console, environ={"COLUMNS": "132"}).width() == 132

    def test_small_columns_ignored(self, tty_console: Console) -> None:
        assert TerminalProbe(tty_console, environ={"COLUMNS": "5"}).width() == 100

    def test_default_when_not_a_terminal(self, console: Console) -> None:
        assert TerminalProbe(console, environ={}).width() == 80

    def test_cache_follows_columns(self, tty_console: Console) -> None:
        env = {"COLUMNS": "90"}
        probe = TerminalProbe(tty_console, environ=env)
        assert probe.width() == 90
        env["COLUMNS"] = "60"
        assert probe.width() == 60


class TestRender:
    def test_wide(self) -> None:
        line = ProgressIndicator.render(5, 10, "files", 100)
        assert line == "[" + "█" * 10 + "░" * 10 + "]  50% | files: 5 / 10 "

    def test_narrow(self) -> None:
        line = ProgressIndicator.render(1234, 2000, "files", 50)
        assert line.endswith(" 61% (1,234/2,000)")
        assert line.count("█") + line.count("░") == 20

    def test_very_narrow_uses_short_bar(self) -> None:
        line = ProgressIndicator.render(10, 10, "x", 30)
        assert line == "[" + "█" * 10 + "] 100% (10/10)"


class TestProgressIndicator:
    """Tests for show()."""

    def test_draws_on_terminal(self, progress: ProgressIndicator, tty_console: Console) -> None:
        assert progress.show(1, 3, "files")
        assert written(tty_console).startswith(CLEAR_LINE + "[")

    def test_completion_ends_line(self, progress: ProgressIndicator, tty_console: Console) -> None:
        progress.show(3, 3)
        assert written(tty_console).endswith("\n")

    def test_sampled(self, progress: ProgressIndicator) -> None:
        drawn = [i for i in range(1, 101) if progress.show(i, 100)]
        assert len(drawn) == 11
        assert progress.renders == 11

    def test_not_a_terminal(self, config: ConfigRegistry, console: Console) -> None:
        log = LogEngine(config, console=console)
        indicator = ProgressIndicator(config, log, TerminalProbe(console, environ={}))
        assert not indicator.show(1, 1)
        assert written(console) == ""

    def test_only_at_info_verbosity(self, progress: ProgressIndicator, config: ConfigRegistry) -> None:
        config.verbosity = 3
        assert not progress.show(1, 1)
        config.verbosity = 1
        assert not progress.show(1, 1)

    def test_toggle(self, progress: ProgressIndicator, config: ConfigRegistry, tty_console: Console) -> None:
        assert progress.toggle() is False
        assert not config.show_progress
        assert not progress.show(1, 1)
        assert "Progress bars disabled" in written(tty_console)
        assert progress.toggle() is True

    @pytest.mark.parametrize(("current", "total"), [(0, 0), (5, 3), (-1, 3), (1, -2)])
    def test_invalid_range(self, progress: ProgressIndicator, current: int, total: int) -> None:
        assert not progress.show(current, total)

    def test_non_integers(self, progress: ProgressIndicator) -> None:
        assert not progress.show("1", 3)  # type: ignore[arg-type]
        assert not progress.show(1, True)

    def test_clear(self, progress: ProgressIndicator, tty_console: Console) -> None:
        progress.clear()
        assert written(tty_console) == CLEAR_LINE
