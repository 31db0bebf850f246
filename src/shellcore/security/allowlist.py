"""
Allow-list of shell-init tools whose generated code is trusted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

DEFAULT_INIT_TOOLS: frozenset[str] = frozenset(
    {
        "starship",
        "mise",
        "direnv",
        "zoxide",
        "atuin",
        "mcfly",
        "fzf",
        "oh-my-posh",
    }
)

# Package installs are routine startup work, not arbitrary code evaluation.
PACKAGE_INSTALL_RE = re.compile(
    r"(?:^|\s)(?:npm|yarn|pip|pip3|cargo|brew|apt|yum|dnf|pacman)\s+(?:add|install)(?:\s|$)"
)


@dataclass
class ShellInitAllowlist:
    """
    Tool names recognised as shell-init commands (``<tool> init ...``).

    The set is deployment data: extend it with add() rather than editing
    the defaults.
    """

    tools: set[str] = field(default_factory=set)
    _pattern: re.Pattern[str] | None = field(default=None, init=False, repr=False)

    def add(self, *tools: str) -> ShellInitAllowlist:
        """Add tool names to the allow-list."""
        for tool in tools:
            name = tool.strip()
            if name:
                self.tools.add(name)
        self._pattern = None
        return self

    def remove(self, tool: str) -> ShellInitAllowlist:
        self.tools.discard(tool)
        self._pattern = None
        return self

    @property
    def pattern(self) -> re.Pattern[str]:
        if self._pattern is None:
            names = "|".join(re.escape(t) for t in sorted(self.tools, key=len, reverse=True))
            # (?!) never matches, for an empty allow-list
            self._pattern = re.compile(rf"(?:^|[\s\"'(/])(?:{names or '(?!)'})\s+init(?:\s|$|[\"')])")
        return self._pattern

    def is_init_command(self, command: str) -> bool:
        """
        Return True if command invokes an allow-listed tool's init.

        Matches direct use, env-wrapped use and ``eval "$(tool init zsh)"`` forms.
        """
        return bool(command) and self.pattern.search(command) is not None

    def matches(self, tool: str) -> bool:
        return tool in self.tools

    @classmethod
    def defaults(cls) -> ShellInitAllowlist:
        """The well-known prompt, directory-jump and environment tools."""
        return cls(set(DEFAULT_INIT_TOOLS))

    def __or__(self, other: ShellInitAllowlist) -> ShellInitAllowlist:
        return ShellInitAllowlist(self.tools | other.tools)


def is_package_install(command: str) -> bool:
    return PACKAGE_INSTALL_RE.search(command) is not None
