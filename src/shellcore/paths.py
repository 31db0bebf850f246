"""
Path resolution with bounded symlink following, and safe sourcing.
"""

from __future__ import annotations

import os
from collections import deque
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING

from shellcore.errors import FatalError, PathResolutionError

if TYPE_CHECKING:
    from shellcore.config import ConfigRegistry
    from shellcore.interrupts import InterruptMonitor
    from shellcore.log import LogEngine
    from shellcore.state import ShellState

# Linux MAXSYMLINKS
DEFAULT_MAX_SYMLINKS = 40


def expand_tilde(path: str, environ: Mapping[str, str] | None = None) -> str:
    """
    Expand ``~``, ``~/x``, ``~+`` (cwd) and ``~-`` (previous cwd).

    Other forms such as ``~user`` are returned unchanged.
    """
    env = os.environ if environ is None else environ
    if path == "~" or path.startswith("~/"):
        home = env.get("HOME") or os.path.expanduser("~")
        return home + path[1:]
    if path == "~+" or path.startswith("~+/"):
        return os.getcwd() + path[2:]
    if path == "~-" or path.startswith("~-/"):
        return (env.get("OLDPWD") or os.getcwd()) + path[2:]
    return path


class PathResolver:
    """
    Turns any user-supplied path into an absolute, dereferenced one.

    Resolution first tries the native ``os.path.realpath``; when that has to
    follow symlinks (or fails), a manual walk takes over so the number of
    symlink hops is bounded by ``max_symlinks`` on every platform.
    """

    def __init__(
        self,
        *,
        max_symlinks: int = DEFAULT_MAX_SYMLINKS,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        if max_symlinks < 1:
            raise ValueError("max_symlinks must be at least 1")
        self.max_symlinks = max_symlinks
        self.environ = environ

    def absolute(self, path: str, base: str | os.PathLike[str] | None = None) -> str:
        """Expand the tilde and anchor path at base (or cwd), normalised but not dereferenced."""
        expanded = expand_tilde(os.fspath(path), self.environ)
        if not os.path.isabs(expanded):
            anchor = os.fspath(base) if base is not None else os.getcwd()
            expanded = os.path.join(anchor, expanded)
        return os.path.normpath(expanded)

    def resolve(self, path: str | os.PathLike[str], base: str | os.PathLike[str] | None = None) -> str:
        """
        Resolve path to an absolute, symlink-free string.

        Args:
            path: Path to resolve; may start with a tilde or be relative.
            base: Directory for relative paths. Defaults to the current directory.

        Returns:
            The resolved path. Components that do not exist are kept as-is.

        Raises:
            PathResolutionError: For empty input or too many symlink hops.
        """
        raw = os.fspath(path)
        if not raw or raw.isspace():
            raise PathResolutionError("Empty or whitespace path", raw)

        candidate = self.absolute(raw, base)

        try:
            native = os.path.realpath(candidate, strict=True)
        except (OSError, RuntimeError):
            native = None
        if native == candidate:
            return native

        return self._walk(candidate, raw)

    def _walk(self, candidate: str, original: str) -> str:
        pending = deque(part for part in candidate.split(os.sep) if part)
        resolved = os.sep
        hops = 0

        while pending:
            name = pending.popleft()
            if name == ".":
                continue
            if name == "..":
                resolved = os.path.dirname(resolved) or os.sep
                continue

            current = os.path.join(resolved, name)
            if not os.path.islink(current):
                resolved = current
                continue

            hops += 1
            if hops >= self.max_symlinks:
                raise PathResolutionError(
                    f"Symlink resolution exceeded maximum depth ({self.max_symlinks})",
                    original,
                )
            try:
                target = os.readlink(current)
            except OSError as e:
                raise PathResolutionError(f"Cannot read symlink {current}: {e}", original) from e

            if os.path.isabs(target):
                resolved = os.sep
            pending.extendleft(reversed([part for part in target.split(os.sep) if part]))

        return resolved


class SafeSourcer:
    """
    Loads a startup file into the ShellState namespace.

    ``depth`` is greater than zero while a file is being sourced; the runtime
    uses it to decide whether a fatal error returns to the sourcing caller or
    exits the process.
    """

    def __init__(
        self,
        state: ShellState,
        resolver: PathResolver,
        config: ConfigRegistry,
        log: LogEngine,
        interrupts: InterruptMonitor,
    ) -> None:
        self._state = state
        self._resolver = resolver
        self._config = config
        self._log = log
        self._interrupts = interrupts
        self.depth = 0

    def source(self, path: str | os.PathLike[str], *args: str) -> int:
        """
        Execute a file in the current namespace, forwarding args as ``argv``.

        Returns:
            0 on success, the file's SystemExit/FatalError code, 1 for a
            missing or failing file, or the interrupted exit code.
        """
        raw = os.fspath(path)
        if not raw:
            self._log.error("Empty file path for source")
            return int(self._config["exit_general_error"])

        resolved = expand_tilde(raw, self._resolver.environ)
        if not self._config.performance_mode:
            try:
                resolved = self._resolver.resolve(resolved)
            except PathResolutionError as e:
                self._log.error(f"Failed to resolve path: {raw} ({e})")
                return int(self._config["exit_general_error"])

        if not os.path.isfile(resolved) or not os.access(resolved, os.R_OK):
            self._log.warn(f"File not found or not readable: {resolved}")
            return int(self._config["exit_general_error"])

        code = self._interrupts.check()
        if code:
            return code

        try:
            source = Path(resolved).read_text(encoding="utf-8")
            compiled = compile(source, resolved, "exec")
        except (OSError, UnicodeDecodeError, SyntaxError) as e:
            self._log.warn(f"Failed to source {resolved}: {e}")
            return int(self._config["exit_general_error"])

        namespace = self._state.namespace
        saved_argv = namespace.get("argv")
        namespace["argv"] = [resolved, *args]
        self.depth += 1
        try:
            exec(compiled, namespace)
            exit_code = 0
        except SystemExit as e:
            exit_code = e.code if isinstance(e.code, int) else (0 if e.code is None else 1)
        except FatalError as e:
            exit_code = e.exit_code
        except Exception as e:
            self._log.warn(f"Error while sourcing {resolved}: {type(e).__name__}: {e}")
            exit_code = int(self._config["exit_general_error"])
        finally:
            self.depth -= 1
            if saved_argv is None:
                namespace.pop("argv", None)
            else:
                namespace["argv"] = saved_argv

        if exit_code != 0:
            self._log.warn(f"Failed to source {resolved} (code: {exit_code})")
        return exit_code
