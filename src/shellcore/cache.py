"""
Dual Existence Cache: bounded LRU maps for function and command lookups.

Both caches share one algorithm. A hit moves the key to the most recently
used position. A miss runs the (expensive) probe and stores the answer. When
an insertion pushes the size past ``cache_max_size``, the oldest entries are
dropped in a single batch so that only the ``retain_ratio`` most recently used
share of the limit remains.
"""

from __future__ import annotations

import shutil
from collections import OrderedDict
from collections.abc import Callable
from typing import TYPE_CHECKING

from shellcore.config import ConfigRegistry

if TYPE_CHECKING:
    from shellcore.log import LogEngine

Probe = Callable[[str], bool]


class ExistenceCache:
    """
    LRU map of name -> exists, with batch eviction.

    Example:
        >>> cache = ExistenceCache("command", lambda n: n == "ls", ConfigRegistry())
        >>> cache.lookup("ls")
        True
    """

    def __init__(
        self,
        kind: str,
        probe: Probe,
        config: ConfigRegistry,
        *,
        retain_ratio: float = 0.5,
        log: LogEngine | None = None,
    ) -> None:
        if not 0 < retain_ratio < 1:
            raise ValueError("retain_ratio must be between 0 and 1")
        self.kind = kind
        self._probe = probe
        self._config = config
        self._retain_ratio = retain_ratio
        self._log = log
        self._entries: OrderedDict[str, bool] = OrderedDict()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    @property
    def max_size(self) -> int:
        return max(1, int(self._config["cache_max_size"]))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def peek(self, name: str) -> bool | None:
        """Return the cached answer without probing or touching recency."""
        return self._entries.get(name)

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        return list(self._entries)

    def lookup(self, name: str) -> bool:
        """Return the cached answer for name, probing on a miss."""
        if not name:
            return False

        if name in self._entries:
            self.hits += 1
            self._entries.move_to_end(name)
            return self._entries[name]

        self.misses += 1
        result = bool(self._probe(name))
        self.store(name, result)
        return result

    def store(self, name: str, exists: bool) -> None:
        """Insert or refresh an entry, evicting a batch on overflow."""
        self._entries[name] = exists
        self._entries.move_to_end(name)
        if len(self._entries) > self.max_size:
            self._evict()

    def invalidate(self, name: str) -> bool:
        """Drop name from the cache; returns True if it was present."""
        return self._entries.pop(name, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def _evict(self) -> None:
        keep = max(1, int(self.max_size * self._retain_ratio))
        removed = 0
        while len(self._entries) > keep:
            self._entries.popitem(last=False)
            removed += 1
        self.evictions += 1
        if self._log is not None:
            self._log.debug(
                f"Cleaned {self.kind} cache: removed {removed} entries, new size: {len(self._entries)}"
            )


class DualExistenceCache:
    """
    The function-exists and command-exists caches of one runtime.

    ``function_exists`` refuses to recurse: if its probe calls back into it,
    the nested call answers False instead of recursing further.
    """

    def __init__(
        self,
        function_probe: Probe,
        config: ConfigRegistry,
        *,
        command_probe: Probe | None = None,
        retain_ratio: float = 0.5,
        log: LogEngine | None = None,
    ) -> None:
        self.functions = ExistenceCache(
            "function", function_probe, config, retain_ratio=retain_ratio, log=log
        )
        self.commands = ExistenceCache(
            "command",
            command_probe or which_probe,
            config,
            retain_ratio=retain_ratio,
            log=log,
        )
        self._in_function_lookup = False

    def function_exists(self, name: str) -> bool:
        if self._in_function_lookup:
            return False
        self._in_function_lookup = True
        try:
            return self.functions.lookup(name)
        finally:
            self._in_function_lookup = False

    def command_exists(self, name: str) -> bool:
        return self.commands.lookup(name)


def which_probe(name: str, path: str | None = None) -> bool:
    """Return True when name is an executable on path (default: PATH)."""
    return shutil.which(name, path=path) is not None
