"""
Safe Execution Layer.

Every request passes through the same pipeline::

    classify -> resolve -> scan -> interrupt check -> execute -> report

Isolated requests run in the sandbox under a timeout. Inline requests are
executed in the ShellState namespace of this process and are only used for
forced evaluation and for code generated by allow-listed shell-init tools.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import TYPE_CHECKING

from shellcore._types import CommandResult, ExecMode, ExecutionRequest, PreparedRequest, Trust
from shellcore.errors import ExecutionError, FatalError
from shellcore.security.allowlist import is_package_install

if TYPE_CHECKING:
    from shellcore.config import ConfigRegistry
    from shellcore.interrupts import InterruptMonitor
    from shellcore.log import LogEngine
    from shellcore.sandbox._base import Sandbox
    from shellcore.security.policy import SecurityScanner
    from shellcore.state import ShellState

# Chaining, backgrounding and subshells
_METACHARS = re.compile(r"[;&()]")


class SafeExecutor:
    """
    Runs commands and evaluates code under the scanner and a timeout.

    Results are always returned, never raised: blocked, refused, timed-out
    and failed requests all come back as a CommandResult with a nonzero
    exit code.
    """

    def __init__(
        self,
        sandbox: Sandbox,
        scanner: SecurityScanner,
        state: ShellState,
        config: ConfigRegistry,
        log: LogEngine,
        interrupts: InterruptMonitor,
        *,
        propagate_fatal: Callable[[], bool] = lambda: False,
    ) -> None:
        self._sandbox = sandbox
        self._scanner = scanner
        self._state = state
        self._config = config
        self._log = log
        self._interrupts = interrupts
        self._propagate_fatal = propagate_fatal

    @property
    def sandbox(self) -> Sandbox:
        return self._sandbox

    def failure(self, message: str = "", *, blocked: str | None = None) -> CommandResult:
        return CommandResult(
            stdout="",
            stderr=message,
            exit_code=int(self._config["exit_general_error"]),
            blocked=blocked,
        )

    def _timeout(self, timeout: float | None) -> float:
        if timeout is None or timeout <= 0:
            return float(self._config["timeout_default"])
        return float(timeout)

    def classify(self, command: str) -> Trust:
        """Return SHELL_INIT for allow-listed init invocations, else UNTRUSTED."""
        if self._scanner.allowlist.is_init_command(command):
            return Trust.SHELL_INIT
        return Trust.UNTRUSTED

    def run_request(
        self,
        command: str,
        timeout: float | None = None,
        *,
        high_risk: bool = False,
        capture_output: bool = False,
    ) -> ExecutionRequest | CommandResult:
        """
        Build the request for run(), or the failure that rejects it.

        Untrusted input must be a single pipeline: ``;``, ``&``, ``(`` and
        ``)`` are refused before the scanner sees the text.
        """
        if not command or command.isspace():
            self._log.error("Empty input for run")
            return self.failure("empty input")

        trust = self.classify(command)
        if trust is not Trust.SHELL_INIT and _METACHARS.search(command):
            self._log.error("Rejected dangerous metacharacters in input")
            return self.failure("shell metacharacters", blocked="shell metacharacters")

        return ExecutionRequest(
            command=command,
            timeout=self._timeout(timeout),
            mode=ExecMode.RUN_ISOLATED,
            trust=trust,
            high_risk=high_risk,
            capture_output=capture_output,
        )

    def eval_request(
        self,
        code: str,
        timeout: float | None = None,
        force_current_shell: bool = False,
        *,
        high_risk: bool = True,
        capture_output: bool = False,
    ) -> ExecutionRequest | CommandResult:
        """Build the request for eval(), or the failure that rejects it."""
        if not code or code.isspace():
            self._log.error("Empty input for eval")
            return self.failure("empty input")

        if force_current_shell:
            self._log.debug("Forcing eval in current shell")

        return ExecutionRequest(
            command=code,
            timeout=self._timeout(timeout),
            mode=ExecMode.EVAL_INLINE if force_current_shell else ExecMode.RUN_ISOLATED,
            trust=self.classify(code),
            high_risk=high_risk and not is_package_install(code),
            capture_output=capture_output,
        )

    async def run(
        self,
        command: str,
        timeout: float | None = None,
        *,
        high_risk: bool = False,
        capture_output: bool = False,
    ) -> CommandResult:
        """
        Run shell text in an isolated child process.

        Args:
            command: Shell text.
            timeout: Seconds; defaults to ``timeout_default``.
            high_risk: Scan even in performance mode.
            capture_output: Collect stdout/stderr into the result.
        """
        request = self.run_request(
            command, timeout, high_risk=high_risk, capture_output=capture_output
        )
        if isinstance(request, CommandResult):
            return request
        return await self.submit(request)

    async def eval(
        self,
        code: str,
        timeout: float | None = None,
        force_current_shell: bool = False,
        *,
        high_risk: bool = True,
        capture_output: bool = False,
    ) -> CommandResult:
        """
        Evaluate code, inline when forced, otherwise in an isolated child.

        Evaluation is high-risk by default, so it is scanned even in
        performance mode; package installs are the exception.
        """
        request = self.eval_request(
            code, timeout, force_current_shell, high_risk=high_risk, capture_output=capture_output
        )
        if isinstance(request, CommandResult):
            return request
        return await self.submit(request)

    async def submit(self, request: ExecutionRequest) -> CommandResult:
        """Drive one request through the pipeline."""
        prepared = await self.prepare(request)
        if prepared.outcome is not None:
            return prepared.outcome
        if prepared.inline:
            return self.exec_inline(prepared)
        return await self.exec_isolated(prepared)

    async def prepare(self, request: ExecutionRequest) -> PreparedRequest:
        """
        Resolve, scan and check for interrupts without executing anything.

        Inline code must be executed by the caller once no event loop is
        running, so that it can call back into the runtime.
        """
        code = request.command
        trust = request.trust
        generated = False

        # Resolve: run the init tool first, then treat its output as the code.
        # Inline requests always need the generated code.
        if trust is Trust.SHELL_INIT and (
            not self._config.performance_mode or request.mode is ExecMode.EVAL_INLINE
        ):
            self._log.debug(f"Detected shell init command (running in subshell): {code}")
            resolved = await self.generate(code, request.timeout)
            if not resolved.success:
                return PreparedRequest(request, code, outcome=resolved)
            code = resolved.stdout
            generated = True

        # Generated code is scanned as untrusted text
        decision = self._scanner.scan(
            code,
            trust=Trust.UNTRUSTED if generated else trust,
            high_risk=request.high_risk,
        )
        if not decision.allowed:
            blocked = self.failure(decision.describe(), blocked=decision.describe())
            return PreparedRequest(request, code, outcome=blocked)

        interrupted = self._interrupts.check()
        if interrupted:
            stopped = CommandResult(stdout="", stderr="interrupted", exit_code=interrupted)
            return PreparedRequest(request, code, outcome=stopped)

        inline = request.mode is ExecMode.EVAL_INLINE or generated
        if not inline and not self._sandbox.has_timeout_wrapper and trust is not Trust.SHELL_INIT:
            self._log.error("No timeout facility available; refusing to run untrusted code")
            refused = self.failure("no timeout facility", blocked="no timeout facility")
            return PreparedRequest(request, code, outcome=refused)

        return PreparedRequest(request, code, inline=inline)

    async def generate(self, command: str, timeout: float | None = None) -> CommandResult:
        """
        Run a shell-init command in the sandbox and capture the code it prints.

        The command's stderr is logged at debug and kept apart from the code.
        A failing command or empty output is a failed result.
        """
        try:
            result = await self._sandbox.execute(
                command, timeout=self._timeout(timeout), capture_output=True
            )
        except ExecutionError as e:
            self._log.warn(f"Failed to start shell init command: {e}")
            return self.failure(str(e))

        if result.stderr.strip():
            self._log.debug(f"Shell init stderr: {result.stderr.strip()}")
        if not result.success:
            self._log.warn(f"Shell init command failed with exit code {result.exit_code}")
            return result
        if not result.stdout.strip():
            self._log.warn("Shell init command produced no code")
            return self.failure("no init code generated")
        return result

    async def exec_isolated(self, prepared: PreparedRequest) -> CommandResult:
        request = prepared.request
        try:
            result = await self._sandbox.execute(
                prepared.code, timeout=request.timeout, capture_output=request.capture_output
            )
        except ExecutionError as e:
            self._log.warn(str(e))
            result = self.failure(str(e))
        return self._report(result, request)

    def exec_inline(self, prepared: PreparedRequest) -> CommandResult:
        """
        Execute prepared code in the ShellState namespace.

        A FatalError propagates while a file is being sourced, so the sourcer
        can turn it into that file's exit code; otherwise it becomes the
        result's exit code.
        """
        try:
            exec(compile(prepared.code, "<shellcore-eval>", "exec"), self._state.namespace)
        except SystemExit as e:
            exit_code = e.code if isinstance(e.code, int) else (0 if e.code is None else 1)
            result = CommandResult(stdout="", stderr="", exit_code=exit_code)
        except FatalError as e:
            if self._propagate_fatal():
                raise
            result = CommandResult(stdout="", stderr=str(e), exit_code=e.exit_code)
        except Exception as e:
            result = CommandResult(
                stdout="",
                stderr=f"{type(e).__name__}: {e}",
                exit_code=int(self._config["exit_general_error"]),
            )
        else:
            result = CommandResult(stdout="", stderr="", exit_code=0)
        return self._report(result, prepared.request)

    def _report(self, result: CommandResult, request: ExecutionRequest) -> CommandResult:
        if result.timed_out:
            self._log.warn(f"Command timed out after {request.timeout:g}s")
        elif result.exit_code != 0:
            where = "Eval" if request.mode is ExecMode.EVAL_INLINE else "Command"
            detail = f": {result.stderr.strip()}" if request.mode is ExecMode.EVAL_INLINE and result.stderr else ""
            self._log.warn(f"{where} failed with exit code {result.exit_code}{detail}")
        return result
