"""
Shell state and the safe-unset State Manager.

The ShellState namespace is the "current shell" of a runtime: sourced files
and inline evaluations execute in it. Callable bindings are functions,
everything else is a variable.
"""

from __future__ import annotations

import types
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from shellcore._types import UnsetKind, UnsetResult

if TYPE_CHECKING:
    from shellcore.cache import DualExistenceCache
    from shellcore.log import LogEngine


def _is_function(value: Any) -> bool:
    return callable(value) and not isinstance(value, (type, types.ModuleType))


class ShellState:
    """Namespace of variables and functions plus the set of read-only names."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self.namespace: dict[str, Any] = {"__name__": "__shellcore__"}
        self.readonly: set[str] = set()
        if initial:
            self.namespace.update(initial)

    def has_variable(self, name: str) -> bool:
        return name in self.namespace and not _is_function(self.namespace[name])

    def has_function(self, name: str) -> bool:
        return _is_function(self.namespace.get(name))

    def get_function(self, name: str) -> Callable[..., Any] | None:
        value = self.namespace.get(name)
        return value if _is_function(value) else None

    def set_variable(self, name: str, value: Any, *, readonly: bool = False) -> None:
        if name in self.readonly:
            raise PermissionError(f"read-only variable: {name}")
        self.namespace[name] = value
        if readonly:
            self.readonly.add(name)

    def define_function(self, name: str, func: Callable[..., Any]) -> None:
        if not callable(func):
            raise TypeError(f"{name!r} is not callable")
        self.namespace[name] = func

    def remove(self, name: str) -> None:
        del self.namespace[name]

    def variables(self) -> dict[str, Any]:
        """Public non-callable bindings."""
        return {
            k: v
            for k, v in self.namespace.items()
            if not k.startswith("__") and not _is_function(v) and not isinstance(v, types.ModuleType)
        }


class StateManager:
    """
    Removes variables and functions while keeping the function cache coherent.

    Cache entries are invalidated only after the binding has actually been
    removed, so there is no window where the cache reports a deleted
    function as present.
    """

    def __init__(self, state: ShellState, cache: DualExistenceCache, log: LogEngine) -> None:
        self._state = state
        self._cache = cache
        self._log = log

    def unset(self, name: str, kind: UnsetKind | str = UnsetKind.AUTO) -> UnsetResult:
        """
        Remove a binding.

        Args:
            name: Variable or function name.
            kind: VAR, FUNC or AUTO (either).

        Returns:
            REMOVED, NOT_FOUND, READ_ONLY_BLOCKED, or INVALID for bad arguments.
        """
        if not name:
            self._log.error("Empty target for unset")
            return UnsetResult.INVALID
        try:
            kind = UnsetKind(kind)
        except ValueError:
            self._log.error(f"Invalid unset type: {kind}")
            return UnsetResult.INVALID

        found = False

        if kind in (UnsetKind.VAR, UnsetKind.AUTO) and self._state.has_variable(name):
            found = True
            if name in self._state.readonly:
                self._log.debug(f"Cannot unset readonly var: {name}")
            else:
                self._state.remove(name)
                self._log.debug(f"Unset: {name}")
                return UnsetResult.REMOVED

        if kind in (UnsetKind.FUNC, UnsetKind.AUTO) and self._state.has_function(name):
            found = True
            if name in self._state.readonly:
                self._log.debug(f"Cannot unset readonly function: {name}")
            else:
                self._state.remove(name)
                self._cache.functions.invalidate(name)
                self._log.debug(f"Unset: {name}")
                return UnsetResult.REMOVED

        if not found:
            self._log.debug(f"Target not found for unset: {name}")
            return UnsetResult.NOT_FOUND

        self._log.error(f"Refusing to unset read-only binding: {name}")
        return UnsetResult.READ_ONLY_BLOCKED

    def unset_var(self, name: str) -> UnsetResult:
        return self.unset(name, UnsetKind.VAR)

    def unset_func(self, name: str) -> UnsetResult:
        return self.unset(name, UnsetKind.FUNC)
