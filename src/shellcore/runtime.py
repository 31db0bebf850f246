"""
ShellRuntime: the handle a startup script holds.

One runtime owns one ConfigRegistry, one set of caches and one ShellState;
every component receives those through its constructor. Methods here never
raise for operational problems (except die()): they log and return a status.
"""

from __future__ import annotations

import asyncio
import os
import shlex
from collections.abc import Callable, Coroutine, MutableMapping
from typing import Any, NoReturn, TypeVar

from rich.console import Console

from shellcore._types import (
    CallResult,
    CommandResult,
    ExecutionRequest,
    LogStatus,
    PlatformInfo,
    UnsetKind,
    UnsetResult,
)
from shellcore.cache import DualExistenceCache, which_probe
from shellcore.config import ConfigRegistry
from shellcore.errors import ConfigurationError, FatalError, PathResolutionError
from shellcore.execution import SafeExecutor
from shellcore.interrupts import InterruptMonitor
from shellcore.log import LogEngine, make_stderr_console
from shellcore.paths import DEFAULT_MAX_SYMLINKS, PathResolver, SafeSourcer
from shellcore.platforms import PlatformDetector
from shellcore.sandbox._base import Sandbox
from shellcore.sandbox.local import LocalSandbox
from shellcore.security.allowlist import ShellInitAllowlist
from shellcore.security.policy import SecurityScanner
from shellcore.state import ShellState, StateManager
from shellcore.ui.progress import ProgressIndicator
from shellcore.ui.terminal import TerminalProbe

T = TypeVar("T")

PATH_POSITIONS = ("prepend", "append")


class ShellRuntime:
    """
    Safe primitives for shell startup code.

    Example:
        >>> rt = ShellRuntime()
        >>> rt.run("echo hello").exit_code
        0
        >>> rt.unset("MY_VAR")
        <UnsetResult.NOT_FOUND: 'not_found'>
    """

    def __init__(
        self,
        *,
        config: ConfigRegistry | None = None,
        console: Console | None = None,
        environ: MutableMapping[str, str] | None = None,
        sandbox: Sandbox | None = None,
        allowlist: ShellInitAllowlist | None = None,
        platform_detector: PlatformDetector | None = None,
        max_symlinks: int = DEFAULT_MAX_SYMLINKS,
        retain_ratio: float = 0.5,
    ) -> None:
        self.config = config if config is not None else ConfigRegistry.from_env(environ)
        self.environ: MutableMapping[str, str] = os.environ if environ is None else environ
        self.console = console or make_stderr_console()

        self.log = LogEngine(self.config, console=self.console)
        self.terminal = TerminalProbe(self.console, environ=self.environ)
        self.progress = ProgressIndicator(self.config, self.log, self.terminal)
        self.interrupts = InterruptMonitor(self.config, self.log, on_interrupt=self.progress.clear)

        self.state = ShellState({"runtime": self})
        self.cache = DualExistenceCache(
            self.state.has_function,
            self.config,
            command_probe=lambda name: which_probe(name, self.environ.get("PATH")),
            retain_ratio=retain_ratio,
            log=self.log,
        )
        self.state_manager = StateManager(self.state, self.cache, self.log)

        self.resolver = PathResolver(max_symlinks=max_symlinks, environ=self.environ)
        self.sourcer = SafeSourcer(self.state, self.resolver, self.config, self.log, self.interrupts)

        self.scanner = SecurityScanner(
            config=self.config,
            allowlist=allowlist or ShellInitAllowlist.defaults(),
            log=self.log,
        )
        if sandbox is None:
            sandbox = LocalSandbox(
                env=None if self.environ is os.environ else self.environ,
                timeout_exit_code=int(self.config["exit_timeout"]),
            )
        self.executor = SafeExecutor(
            sandbox,
            self.scanner,
            self.state,
            self.config,
            self.log,
            self.interrupts,
            propagate_fatal=lambda: self.sourcer.depth > 0,
        )

        self.platform = platform_detector or PlatformDetector(environ=self.environ, log=self.log)

    # --- Logging ---

    def log_error(self, *parts: object) -> LogStatus:
        return self.log.error(*parts)

    def log_warn(self, *parts: object) -> LogStatus:
        return self.log.warn(*parts)

    def log_info(self, *parts: object) -> LogStatus:
        return self.log.info(*parts)

    def log_debug(self, *parts: object) -> LogStatus:
        return self.log.debug(*parts)

    def get_verbosity(self) -> str:
        return self.log.get_level()

    def enable_debug(self) -> None:
        self.log.enable_debug()

    def toggle_progress(self) -> bool:
        return self.progress.toggle()

    def set_config(self, key: str, value: object) -> bool:
        """Update a setting; logs and returns False instead of raising."""
        try:
            stored = self.config.set(key, value)
        except ConfigurationError as e:
            self.log.error(f"set_config: {e}")
            return False
        self.log.debug(f"Configuration updated: {key} = {stored}")
        return True

    # --- Execution ---

    def _await(self, coro: Coroutine[Any, Any, T]) -> T:
        return asyncio.run(coro)

    def _submit(self, request: ExecutionRequest | CommandResult) -> CommandResult:
        """
        Drive a request through the executor from synchronous code.

        Only resolve, scan and isolated execution run inside the event loop.
        Inline code runs after the loop has finished, so it may call back
        into run() and eval().
        """
        if isinstance(request, CommandResult):
            return request
        prepared = self._await(self.executor.prepare(request))
        if prepared.outcome is not None:
            result = prepared.outcome
        elif prepared.inline:
            result = self.executor.exec_inline(prepared)
        else:
            result = self._await(self.executor.exec_isolated(prepared))
        self._sync_function_cache()
        return result

    def run(
        self,
        command: str,
        timeout: float | None = None,
        *,
        high_risk: bool = False,
        capture_output: bool = False,
    ) -> CommandResult:
        """Run shell text in an isolated child under the scanner and a timeout."""
        return self._submit(
            self.executor.run_request(
                command, timeout, high_risk=high_risk, capture_output=capture_output
            )
        )

    def eval(
        self,
        code: str,
        timeout: float | None = None,
        force_current_shell: bool = False,
        *,
        high_risk: bool = True,
        capture_output: bool = False,
    ) -> CommandResult:
        """Evaluate code; inline in the runtime namespace when forced."""
        return self._submit(
            self.executor.eval_request(
                code,
                timeout,
                force_current_shell,
                high_risk=high_risk,
                capture_output=capture_output,
            )
        )

    def from_hook(
        self,
        tool: str,
        subcommand: str = "init",
        shell: str = "xonsh",
        timeout: float | None = None,
    ) -> int:
        """
        Initialise a tool by evaluating the hook code it prints.

        A missing tool is not a failure. Returns 0 on success, else 1 or
        the interrupted exit code.
        """
        code = self.interrupts.check()
        if code:
            return code

        if not self.command_exists(tool):
            self.log.debug(f"{tool} not found, skipping")
            return 0

        generated = self._await(
            self.executor.generate(shlex.join([tool, subcommand, shell]), timeout)
        )
        if not generated.success:
            self.log.warn(f"Failed to get hook/init code from {tool}")
            return int(self.config["exit_general_error"])

        result = self.eval(generated.stdout, timeout, True, high_risk=False)
        if not result.success:
            self.log.warn(f"Failed to initialize {tool} from its hook")
            return result.exit_code
        self.log.debug(f"{tool} initialized successfully via hook")
        return 0

    def call(self, name: str, *args: Any, **kwargs: Any) -> CallResult:
        """
        Call a function from the runtime namespace if it exists.

        The return value maps to an exit code: None -> 0, bool -> 0/1,
        int -> itself. Exceptions are logged and reported as 1.
        """
        general_error = int(self.config["exit_general_error"])
        if not name:
            self.log.error("Empty function name for call")
            return CallResult(found=False, exit_code=general_error)

        if not self.function_exists(name):
            if name.startswith("_"):
                self.log.debug(f"Function '{name}' not found")
            else:
                self.log.warn(f"Function '{name}' not found")
            return CallResult(found=False, exit_code=general_error)

        code = self.interrupts.check()
        if code:
            return CallResult(found=True, exit_code=code)

        func = self.state.get_function(name)
        if func is None:
            # Removed behind the cache's back
            self.cache.functions.invalidate(name)
            self.log.warn(f"Function '{name}' not found")
            return CallResult(found=False, exit_code=general_error)

        try:
            value = func(*args, **kwargs)
        except FatalError:
            raise
        except Exception as e:
            self.log.warn(f"Function '{name}' raised {type(e).__name__}: {e}")
            return CallResult(found=True, exit_code=general_error)

        if value is None:
            exit_code = 0
        elif isinstance(value, bool):
            exit_code = 0 if value else general_error
        elif isinstance(value, int):
            exit_code = value
        else:
            exit_code = 0
        if exit_code != 0:
            self.log.warn(f"Function '{name}' failed with code {exit_code}")
        return CallResult(found=True, exit_code=exit_code, value=value)

    # --- Caching & state ---

    def function_exists(self, name: str) -> bool:
        return self.cache.function_exists(name)

    def command_exists(self, name: str) -> bool:
        return self.cache.command_exists(name)

    def define_function(self, name: str, func: Callable[..., Any]) -> None:
        self.state.define_function(name, func)
        self.cache.functions.invalidate(name)

    def set_variable(self, name: str, value: Any, *, readonly: bool = False) -> bool:
        try:
            self.state.set_variable(name, value, readonly=readonly)
        except PermissionError as e:
            self.log.error(str(e))
            return False
        return True

    def unset(self, name: str, kind: UnsetKind | str = UnsetKind.AUTO) -> UnsetResult:
        return self.state_manager.unset(name, kind)

    def unset_var(self, name: str) -> UnsetResult:
        return self.state_manager.unset_var(name)

    def unset_func(self, name: str) -> UnsetResult:
        return self.state_manager.unset_func(name)

    def _sync_function_cache(self) -> None:
        """Drop cached answers that inline code has made stale."""
        for name in self.cache.functions.keys():
            if self.cache.functions.peek(name) != self.state.has_function(name):
                self.cache.functions.invalidate(name)

    # --- Filesystem ---

    def resolve_path(self, path: str, base: str | None = None) -> str | None:
        """Resolve path, logging and returning None on failure."""
        try:
            return self.resolver.resolve(path, base)
        except PathResolutionError as e:
            self.log.error(f"{e}: {path!r}")
            return None

    def source_safely(self, path: str, *args: str) -> int:
        exit_code = self.sourcer.source(path, *args)
        self._sync_function_cache()
        return exit_code

    def add_to_path(self, directory: str, position: str = "append") -> int:
        """
        Add a directory to PATH once.

        Missing directories and duplicates are skipped with success.
        """
        general_error = int(self.config["exit_general_error"])
        if not directory:
            self.log.error("Empty directory provided to add_to_path")
            return general_error
        if position not in PATH_POSITIONS:
            self.log.error(f"Invalid position for add_to_path: {position} (use prepend or append)")
            return general_error

        resolved = self.resolve_path(directory)
        if resolved is None:
            self.log.debug(f"Failed to resolve directory path for PATH: {directory}")
            return general_error
        if not os.path.isdir(resolved):
            self.log.debug(f"Directory does not exist, not adding to PATH: {resolved}")
            return 0

        current = self.environ.get("PATH", "")
        entries = current.split(os.pathsep) if current else []
        if resolved in entries:
            self.log.debug(f"Directory already in PATH: {resolved}")
            return 0

        entries = [resolved, *entries] if position == "prepend" else [*entries, resolved]
        self.environ["PATH"] = os.pathsep.join(entries)
        self.cache.commands.clear()
        self.log.debug(f"Added to PATH ({position}): {resolved}")
        return 0

    # --- UI ---

    def show_progress(self, current: int, total: int, label: str = "items") -> bool:
        return self.progress.show(current, total, label)

    def clear_progress(self) -> None:
        self.progress.clear()

    def terminal_width(self) -> int:
        return self.terminal.width()

    # --- Platform & lifecycle ---

    def detect_platform(self) -> PlatformInfo:
        return self.platform.detect()

    def install_interrupt_handlers(self) -> bool:
        return self.interrupts.install()

    def check_interrupted(self) -> int:
        return self.interrupts.check()

    def die(self, message: str, exit_code: int | None = None) -> NoReturn:
        """
        Abort with a fatal error.

        Inside a sourced file this raises FatalError, which safe sourcing
        turns into that file's exit code; at top level it exits the process.
        """
        code = int(self.config["exit_general_error"]) if exit_code is None else exit_code
        self.progress.clear()
        self.log.error(f"FATAL: {message}")
        if self.sourcer.depth > 0:
            raise FatalError(message, code)
        raise SystemExit(code)
