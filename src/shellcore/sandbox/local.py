"""
Local subprocess-based sandbox.

Commands run in a fresh ``bash -o pipefail -c`` child, wrapped in the system
``timeout`` (GNU coreutils) or ``gtimeout`` (coreutils on macOS) when one is
installed. An asyncio deadline backs the wrapper up.
"""

from __future__ import annotations

import asyncio
import shutil
from collections.abc import Mapping
from pathlib import Path

from shellcore._types import CommandResult
from shellcore.errors import ExecutionError
from shellcore.sandbox._base import Sandbox

TIMEOUT_COMMANDS = ("timeout", "gtimeout")
EXIT_TIMEOUT = 124

# Extra time the wrapper gets to kill its child before we kill the wrapper
BACKSTOP_GRACE = 5.0


def find_timeout_command() -> str | None:
    """Return the first available timeout wrapper on PATH, or None."""
    for name in TIMEOUT_COMMANDS:
        path = shutil.which(name)
        if path:
            return path
    return None


class LocalSandbox(Sandbox):
    """
    Subprocess-based sandbox for shell text.

    Security features:
    - Timeout enforcement through the system wrapper plus an asyncio backstop
    - pipefail, so a failing stage fails the whole pipeline
    - Output truncation to prevent memory exhaustion when capturing

    Example:
        >>> sandbox = LocalSandbox()
        >>> result = await sandbox.execute("echo hi", capture_output=True)
        >>> print(result.stdout)
    """

    _UNSET = object()

    def __init__(
        self,
        *,
        cwd: Path | str | None = None,
        env: Mapping[str, str] | None = None,
        shell: str = "bash",
        timeout_command: str | None | object = _UNSET,
        timeout_exit_code: int = EXIT_TIMEOUT,
        max_output_bytes: int = 30_000,
    ) -> None:
        """
        Initialize a local sandbox.

        Args:
            cwd: Working directory for children. Defaults to the current one.
            env: Environment for children; read at every call.
            shell: Shell binary used for ``-c``.
            timeout_command: Wrapper path; auto-detected when omitted, None disables it.
            timeout_exit_code: Exit code reported for a timeout.
            max_output_bytes: Maximum characters for stdout/stderr before truncation.
        """
        self._cwd = Path(cwd).resolve() if cwd is not None else None
        self._env = env
        self._shell = shell
        if timeout_command is LocalSandbox._UNSET:
            timeout_command = find_timeout_command()
        self._timeout_command: str | None = timeout_command  # type: ignore[assignment]
        self._timeout_exit_code = timeout_exit_code
        self._max_output_bytes = max_output_bytes
        self._closed = False

    @property
    def has_timeout_wrapper(self) -> bool:
        return self._timeout_command is not None

    @property
    def timeout_command(self) -> str | None:
        return self._timeout_command

    def build_argv(self, command: str, timeout: float) -> list[str]:
        """Return the argv for running command under the wrapper, if any."""
        argv = [self._shell, "-o", "pipefail", "-c", command]
        if self._timeout_command:
            argv = [self._timeout_command, f"{timeout:g}", *argv]
        return argv

    async def execute(
        self,
        command: str,
        *,
        timeout: float = 30.0,
        capture_output: bool = False,
    ) -> CommandResult:
        """
        Execute shell text in a child process.

        Args:
            command: The shell text to execute.
            timeout: Maximum seconds to wait before killing the process.
            capture_output: Collect stdout/stderr instead of inheriting them.

        Returns:
            CommandResult; a timeout has timed_out=True and the timeout exit code.

        Raises:
            ExecutionError: If the child cannot be started.
        """
        if self._closed:
            raise RuntimeError("Sandbox has been closed")

        pipe = asyncio.subprocess.PIPE if capture_output else None
        env = dict(self._env) if self._env is not None else None

        try:
            proc = await asyncio.create_subprocess_exec(
                *self.build_argv(command, timeout),
                cwd=self._cwd,
                env=env,
                stdout=pipe,
                stderr=pipe,
            )
        except OSError as e:
            raise ExecutionError(f"Failed to start {self._shell}: {e}") from e

        deadline = timeout + BACKSTOP_GRACE if self._timeout_command else timeout
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=deadline)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()  # Ensure process is reaped
            return CommandResult(
                stdout="",
                stderr=f"Command timed out after {timeout:g}s",
                exit_code=self._timeout_exit_code,
                timed_out=True,
            )

        stdout, stdout_truncated = self._decode_and_truncate(stdout_bytes)
        stderr, stderr_truncated = self._decode_and_truncate(stderr_bytes)
        exit_code = proc.returncode or 0
        timed_out = bool(self._timeout_command) and exit_code == EXIT_TIMEOUT
        if timed_out:
            exit_code = self._timeout_exit_code

        return CommandResult(
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            timed_out=timed_out,
            truncated=stdout_truncated or stderr_truncated,
        )

    def _decode_and_truncate(self, data: bytes | None) -> tuple[str, bool]:
        """Decode bytes and truncate if too large."""
        if not data:
            return "", False
        text = data.decode("utf-8", errors="replace")
        if len(text) > self._max_output_bytes:
            truncated_count = len(text) - self._max_output_bytes
            text = text[: self._max_output_bytes]
            text += f"\n\n[Truncated: {truncated_count} characters removed]"
            return text, True
        return text, False

    async def close(self) -> None:
        """
        Mark the sandbox closed.

        Safe to call multiple times.
        """
        self._closed = True
