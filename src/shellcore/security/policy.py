"""
Security scanner with pattern-based command blocking.

This is the layer that keeps startup code from running known-destructive
idioms. Patterns are data: adding a category means adding rows to
THREAT_PATTERNS, not new control flow.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from shellcore._types import Trust
from shellcore.config import ConfigRegistry
from shellcore.errors import ShellCoreError
from shellcore.security.allowlist import ShellInitAllowlist

if TYPE_CHECKING:
    from shellcore.log import LogEngine


class SecurityViolation(ShellCoreError):
    """
    Raised when a command violates the security policy.

    Attributes:
        command: The command that was blocked.
        reason: Why the command was blocked.
    """

    def __init__(self, reason: str, command: str = "") -> None:
        self.command = command
        self.reason = reason
        super().__init__(f"Security violation: {reason}")


class ThreatCategory(Enum):
    """Families of destructive idioms, in evaluation order."""

    FILESYSTEM_DESTRUCTION = "filesystem destruction"
    DEVICE_MANIPULATION = "device manipulation"
    NETWORK_TO_SHELL = "network-to-shell execution"
    PROCESS_MANIPULATION = "process manipulation"
    PERMISSION_ESCALATION = "permission escalation"
    ACCOUNT_DESTRUCTION = "account destruction"


@dataclass(frozen=True)
class ThreatPattern:
    category: ThreatCategory
    pattern: re.Pattern[str]
    reason: str


def _p(category: ThreatCategory, regex: str, reason: str) -> ThreatPattern:
    return ThreatPattern(category, re.compile(regex), reason)


# rm with both -r and -f, in one flag cluster or separately, long or short
_RM_RF = (
    r"\brm\s+(?:-{1,2}[\w-]*\s+)*"
    r"(?:-[a-zA-Z]*[rR][a-zA-Z]*f[a-zA-Z]*|-[a-zA-Z]*f[a-zA-Z]*[rR][a-zA-Z]*"
    r"|-[a-zA-Z]*[rR][a-zA-Z]*\s+-[a-zA-Z]*f[a-zA-Z]*|-[a-zA-Z]*f[a-zA-Z]*\s+-[a-zA-Z]*[rR][a-zA-Z]*"
    r"|--recursive\s+--force|--force\s+--recursive)"
    r"(?:\s+-{1,2}[\w-]+)*"
)
# Any further arguments, then the start of one target
_RM_ARG = r"(?:\s+[^\s;&|]+)*?\s+[\"']?"
_SHELLS = r"(?:ba|z|k|da)?sh|python[0-9.]*|perl|ruby"
_DISKS = r"(?:sd[a-z]|hd[a-z]|nvme\d|disk\d|rdisk\d|mmcblk\d|vd[a-z]|xvd[a-z])"

THREAT_PATTERNS: list[ThreatPattern] = [
    # Filesystem destruction
    _p(ThreatCategory.FILESYSTEM_DESTRUCTION, _RM_RF + _RM_ARG + r"/(?:\*|\s|$|[\"'])",
       "Recursive delete of root directory"),
    _p(ThreatCategory.FILESYSTEM_DESTRUCTION, _RM_RF + _RM_ARG + r"(?:~|\$HOME|\$\{HOME\})(?:/|\s|$|[\"'])",
       "Recursive delete in home directory"),
    _p(ThreatCategory.FILESYSTEM_DESTRUCTION, _RM_RF + _RM_ARG + r"/",
       "Recursive delete of an absolute path"),
    _p(ThreatCategory.FILESYSTEM_DESTRUCTION, r"\b(?:sudo|doas)\s+(?:-\S+\s+)*rm\s+-[a-zA-Z]*[rR]",
       "Recursive delete as root"),
    _p(ThreatCategory.FILESYSTEM_DESTRUCTION, r"--no-preserve-root",
       "Delete with root protection disabled"),
    # Device manipulation
    _p(ThreatCategory.DEVICE_MANIPULATION, r">\s*/dev/" + _DISKS,
       "Direct disk write"),
    _p(ThreatCategory.DEVICE_MANIPULATION, r"\bdd\b.*\bof=/dev/" + _DISKS,
       "Direct disk write via dd"),
    _p(ThreatCategory.DEVICE_MANIPULATION, r"\bmkfs(?:\.\w+)?\b",
       "Filesystem creation/destruction"),
    _p(ThreatCategory.DEVICE_MANIPULATION, r"\b(?:wipefs|shred)\b.*\s/dev/",
       "Device wipe"),
    # Network-to-shell exploitation
    _p(ThreatCategory.NETWORK_TO_SHELL, r"\b(?:curl|wget|fetch)\b[^|]*\|\s*(?:sudo\s+)?(?:env\s+)?(?:\S*/)?(?:" + _SHELLS + r")\b",
       "Remote code execution via download piped to an interpreter"),
    _p(ThreatCategory.NETWORK_TO_SHELL, r"\b(?:ba|z|k|da)?sh\s+(?:-c\s+)?[\"']?\$\(\s*(?:curl|wget)\b",
       "Remote code execution via downloaded script"),
    # Process manipulation
    _p(ThreatCategory.PROCESS_MANIPULATION, r":\s*\(\s*\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:",
       "Fork bomb pattern"),
    _p(ThreatCategory.PROCESS_MANIPULATION, r"\b(?:killall|pkill)\b.*\s-(?:9|KILL|SIGKILL)\b",
       "Forceful mass process termination"),
    _p(ThreatCategory.PROCESS_MANIPULATION, r"\bkill\s+-(?:9|KILL|SIGKILL)\s+-1\b",
       "Signal to every process"),
    # Permission escalation
    _p(ThreatCategory.PERMISSION_ESCALATION, r"\bchmod\s+(?:-\S+\s+)*0?777\s+/(?:\s|$)",
       "Dangerous chmod 777 on /"),
    _p(ThreatCategory.PERMISSION_ESCALATION, r"\bchmod\s+-[a-zA-Z]*R[a-zA-Z]*\s+(?:0?777|a\+rwx)\s+/",
       "Recursive world-writable permissions"),
    _p(ThreatCategory.PERMISSION_ESCALATION, r"\bchown\s+-[a-zA-Z]*R[a-zA-Z]*\s+\S+\s+/(?:\s|$)",
       "Recursive ownership change on root"),
    # Account destruction
    _p(ThreatCategory.ACCOUNT_DESTRUCTION, r"\buserdel\s+(?:\S+\s+)*-r\b",
       "Dangerous userdel -r"),
    _p(ThreatCategory.ACCOUNT_DESTRUCTION, r"\bgroupdel\b",
       "Dangerous groupdel detected"),
]


@dataclass(frozen=True, slots=True)
class ScanDecision:
    """Allow or block, with the matching category when blocked."""

    allowed: bool
    category: ThreatCategory | None = None
    reason: str = ""
    command: str = ""
    skipped: bool = False

    def raise_for_status(self) -> None:
        """Raise SecurityViolation if the command was blocked."""
        if not self.allowed:
            raise SecurityViolation(self.reason, self.command)

    def describe(self) -> str:
        if self.allowed:
            return "allowed"
        category = self.category.value if self.category else "blocked"
        return f"{category}: {self.reason}"


@dataclass
class SecurityScanner:
    """
    Pattern scanner for command text.

    Scanning is skipped for shell-init trusted commands on the allow-list and,
    in performance mode, for everything not marked high-risk.
    """

    config: ConfigRegistry = field(default_factory=ConfigRegistry)
    allowlist: ShellInitAllowlist = field(default_factory=ShellInitAllowlist.defaults)
    patterns: list[ThreatPattern] = field(default_factory=lambda: list(THREAT_PATTERNS))
    log: LogEngine | None = None

    def scan(
        self,
        command: str,
        *,
        trust: Trust = Trust.UNTRUSTED,
        high_risk: bool = False,
    ) -> ScanDecision:
        """
        Decide whether command may run.

        Args:
            command: The literal command text.
            trust: SHELL_INIT skips scanning when the command is an allow-listed init.
            high_risk: Scan even in performance mode.

        Returns:
            A ScanDecision; scanning itself never raises.
        """
        if trust is Trust.SHELL_INIT and self.allowlist.is_init_command(command):
            return ScanDecision(allowed=True, command=command, skipped=True)

        if self.config.performance_mode and not high_risk:
            return ScanDecision(allowed=True, command=command, skipped=True)

        for threat in self.patterns:
            if threat.pattern.search(command):
                decision = ScanDecision(
                    allowed=False,
                    category=threat.category,
                    reason=threat.reason,
                    command=command,
                )
                if self.log is not None:
                    self.log.error(f"Dangerous pattern ({decision.describe()})")
                return decision

        return ScanDecision(allowed=True, command=command)

    def check_command(self, command: str) -> str:
        """
        Validate command, raising instead of returning a decision.

        Returns:
            The unmodified command.

        Raises:
            SecurityViolation: If the command is blocked.
        """
        self.scan(command, high_risk=True).raise_for_status()
        return command

    def add_pattern(self, category: ThreatCategory, pattern: str, reason: str) -> None:
        """
        Add a custom blocked pattern.

        Args:
            category: Category reported when it matches.
            pattern: Regex pattern string.
            reason: Human-readable reason for blocking.
        """
        self.patterns.append(_p(category, pattern, reason))
