"""Pytest configuration and fixtures for shellcore tests."""

from __future__ import annotations

import io
import os
import stat
import tempfile
from collections.abc import AsyncGenerator, Callable, Generator
from pathlib import Path

import pytest
import pytest_asyncio
from rich.console import Console

from shellcore import ConfigRegistry, LocalSandbox, ShellRuntime
from shellcore.log import LogEngine


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory(prefix="shellcore_test_") as tmp:
        yield Path(tmp).resolve()


@pytest.fixture
def config() -> ConfigRegistry:
    """A registry with defaults, independent of the test environment."""
    return ConfigRegistry()


@pytest.fixture
def console() -> Console:
    """A non-terminal console writing into memory."""
    return Console(file=io.StringIO(), force_terminal=False, width=80)


@pytest.fixture
def tty_console() -> Console:
    """A console that claims to be a terminal, writing into memory."""
    return Console(file=io.StringIO(), force_terminal=True, width=100, color_system=None)


@pytest.fixture
def log(config: ConfigRegistry, console: Console) -> LogEngine:
    return LogEngine(config, console=console)


@pytest.fixture
def environ(temp_dir: Path) -> dict[str, str]:
    """A private copy of the environment with HOME pointing at a temp dir."""
    env = dict(os.environ)
    env["HOME"] = str(temp_dir)
    env.pop("COLUMNS", None)
    return env


@pytest.fixture
def runtime(config: ConfigRegistry, console: Console, environ: dict[str, str]) -> ShellRuntime:
    """A runtime wired to in-memory output and a private environment."""
    return ShellRuntime(config=config, console=console, environ=environ)


@pytest_asyncio.fixture
async def sandbox(temp_dir: Path) -> AsyncGenerator[LocalSandbox, None]:
    """Create a LocalSandbox for testing."""
    (temp_dir / "test.txt").write_text("hello world")

    sandbox = LocalSandbox(cwd=temp_dir)
    try:
        yield sandbox
    finally:
        await sandbox.close()


@pytest.fixture
def make_tool(temp_dir: Path) -> Callable[[str, str], Path]:
    """
    Create an executable script in a temp bin directory.

    Returns a function taking (name, body) and returning the bin directory.
    """
    bin_dir = temp_dir / "bin"
    bin_dir.mkdir(exist_ok=True)

    def _make(name: str, body: str) -> Path:
        script = bin_dir / name
        script.write_text(f"#!/bin/sh\n{body}\n")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return bin_dir

    return _make
