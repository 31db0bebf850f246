"""Tests for LocalSandbox."""

from __future__ import annotations

from pathlib import Path

import pytest

from shellcore import ExecutionError, LocalSandbox
from shellcore.sandbox import find_timeout_command

requires_timeout = pytest.mark.skipif(
    find_timeout_command() is None, reason="no timeout/gtimeout on PATH"
)


class TestLocalSandboxExecution:
    """Tests for command execution."""

    async def test_execute_simple_command(self, sandbox: LocalSandbox) -> None:
        """Should execute simple commands and return output."""
        result = await sandbox.execute("echo 'hello world'", capture_output=True)
        assert result.exit_code == 0
        assert "hello world" in result.stdout

    async def test_execute_returns_exit_code(self, sandbox: LocalSandbox) -> None:
        """Should return correct exit code for failed commands."""
        result = await sandbox.execute("exit 42")
        assert result.exit_code == 42
        assert not result.success

    async def test_execute_returns_stderr(self, sandbox: LocalSandbox) -> None:
        """Should capture stderr."""
        result = await sandbox.execute("echo 'error' >&2", capture_output=True)
        assert "error" in result.stderr

    async def test_output_not_captured_by_default(self, sandbox: LocalSandbox) -> None:
        result = await sandbox.execute("true")
        assert result.stdout == ""
        assert result.success

    async def test_pipefail(self, sandbox: LocalSandbox) -> None:
        """A failing pipeline stage should fail the whole pipeline."""
        result = await sandbox.execute("false | cat")
        assert result.exit_code != 0

    async def test_execute_in_cwd(self, sandbox: LocalSandbox, temp_dir: Path) -> None:
        """Should execute commands in the working directory."""
        result = await sandbox.execute("pwd", capture_output=True)
        assert str(temp_dir) in result.stdout

    async def test_execute_can_read_files(self, sandbox: LocalSandbox) -> None:
        result = await sandbox.execute("cat test.txt", capture_output=True)
        assert result.exit_code == 0
        assert "hello world" in result.stdout

    async def test_env_is_used(self, temp_dir: Path) -> None:
        sandbox = LocalSandbox(cwd=temp_dir, env={"PATH": "/usr/bin:/bin", "GREETING": "hi"})
        result = await sandbox.execute('echo "$GREETING"', capture_output=True)
        assert result.stdout.strip() == "hi"

    async def test_output_truncated(self, temp_dir: Path) -> None:
        sandbox = LocalSandbox(cwd=temp_dir, max_output_bytes=10)
        result = await sandbox.execute("printf 'x%.0s' $(seq 1 50)", capture_output=True)
        assert result.truncated
        assert "[Truncated: 40 characters removed]" in result.stdout

    async def test_missing_shell_raises(self, temp_dir: Path) -> None:
        sandbox = LocalSandbox(cwd=temp_dir, shell="/nonexistent/shell", timeout_command=None)
        with pytest.raises(ExecutionError):
            await sandbox.execute("true")


class TestLocalSandboxTimeout:
    """Tests for timeout enforcement."""

    @requires_timeout
    async def test_wrapper_timeout(self, sandbox: LocalSandbox) -> None:
        """The wrapper's exit code 124 should be reported as a timeout."""
        assert sandbox.has_timeout_wrapper
        result = await sandbox.execute("sleep 10", timeout=0.5)
        assert result.timed_out
        assert result.exit_code == 124

    async def test_backstop_timeout_without_wrapper(self, temp_dir: Path) -> None:
        """Without a wrapper the asyncio deadline kills the child."""
        sandbox = LocalSandbox(cwd=temp_dir, timeout_command=None)
        assert not sandbox.has_timeout_wrapper
        result = await sandbox.execute("sleep 10", timeout=0.5)
        assert result.timed_out
        assert result.exit_code == 124
        assert "timed out" in result.stderr.lower()

    async def test_custom_timeout_exit_code(self, temp_dir: Path) -> None:
        sandbox = LocalSandbox(cwd=temp_dir, timeout_command=None, timeout_exit_code=99)
        result = await sandbox.execute("sleep 10", timeout=0.3)
        assert result.exit_code == 99

    def test_build_argv(self, temp_dir: Path) -> None:
        sandbox = LocalSandbox(cwd=temp_dir, timeout_command="/usr/bin/timeout")
        assert sandbox.build_argv("echo hi", 2.5) == [
            "/usr/bin/timeout",
            "2.5",
            "bash",
            "-o",
            "pipefail",
            "-c",
            "echo hi",
        ]

    def test_build_argv_without_wrapper(self, temp_dir: Path) -> None:
        sandbox = LocalSandbox(cwd=temp_dir, timeout_command=None)
        assert sandbox.build_argv("echo hi", 30) == ["bash", "-o", "pipefail", "-c", "echo hi"]


class TestLocalSandboxLifecycle:
    """Tests for sandbox lifecycle management."""

    async def test_close_is_idempotent(self, sandbox: LocalSandbox) -> None:
        """Closing multiple times should not raise."""
        await sandbox.close()
        await sandbox.close()

    async def test_execute_after_close_raises(self, sandbox: LocalSandbox) -> None:
        """Should raise after sandbox is closed."""
        await sandbox.close()
        with pytest.raises(RuntimeError, match="closed"):
            await sandbox.execute("echo 'test'")

    async def test_context_manager(self, temp_dir: Path) -> None:
        """Should work as async context manager."""
        async with LocalSandbox(cwd=temp_dir) as sandbox:
            result = await sandbox.execute("echo 'context'", capture_output=True)
            assert "context" in result.stdout
        with pytest.raises(RuntimeError):
            await sandbox.execute("echo 'after'")
