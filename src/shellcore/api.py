"""
Main entry point: create_runtime factory function.

This is the primary API for startup scripts.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping, MutableMapping
from typing import TYPE_CHECKING, Literal

from shellcore.config import ConfigRegistry
from shellcore.runtime import ShellRuntime
from shellcore.sandbox.local import LocalSandbox
from shellcore.security.allowlist import ShellInitAllowlist

if TYPE_CHECKING:
    from rich.console import Console

    from shellcore.sandbox._base import Sandbox


def create_runtime(
    *,
    config: ConfigRegistry | Mapping[str, object] | None = None,
    sandbox: Sandbox | Literal["local"] = "local",
    environ: MutableMapping[str, str] | None = None,
    init_tools: Iterable[str] = (),
    console: Console | None = None,
    install_signal_handlers: bool = False,
    max_output_bytes: int = 30_000,
) -> ShellRuntime:
    """
    Create a ShellRuntime with every component wired to one configuration.

    Args:
        config: A registry, or overrides applied on top of the environment.
                Defaults to settings read from SHELLCORE_* variables.
        sandbox: Isolated execution backend. Currently only "local" is supported.
                 Pass a Sandbox instance for custom implementations.
        environ: Environment to read and modify. Defaults to os.environ.
        init_tools: Extra shell-init tools to trust besides the defaults.
        console: Console for diagnostics. Defaults to a stderr console.
        install_signal_handlers: Register SIGINT/SIGTERM handlers right away.
        max_output_bytes: Maximum characters of captured output per stream.

    Returns:
        A ready-to-use ShellRuntime.

    Example:
        >>> rt = create_runtime(config={"performance_mode": True})
        >>> rt.from_hook("zoxide")
        0
    """
    # Resolve configuration
    registry: ConfigRegistry
    if config is None:
        registry = ConfigRegistry.from_env(environ)
    elif isinstance(config, ConfigRegistry):
        registry = config
    else:
        registry = ConfigRegistry.from_env(environ)
        for key, value in config.items():
            registry.set(key, value)

    # Create sandbox backend
    sandbox_instance: Sandbox
    if isinstance(sandbox, str):
        if sandbox == "local":
            sandbox_instance = LocalSandbox(
                env=None if environ is None or environ is os.environ else environ,
                timeout_exit_code=int(registry["exit_timeout"]),
                max_output_bytes=max_output_bytes,
            )
        else:
            raise ValueError(
                f"Unknown sandbox type: {sandbox}. Use 'local' or provide a Sandbox instance."
            )
    else:
        sandbox_instance = sandbox

    allowlist = ShellInitAllowlist.defaults().add(*init_tools)

    runtime = ShellRuntime(
        config=registry,
        console=console,
        environ=environ,
        sandbox=sandbox_instance,
        allowlist=allowlist,
    )
    if install_signal_handlers:
        runtime.install_interrupt_handlers()
    return runtime
