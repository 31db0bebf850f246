"""Security module for shellcore."""

from shellcore.security.allowlist import DEFAULT_INIT_TOOLS, ShellInitAllowlist, is_package_install
from shellcore.security.policy import (
    THREAT_PATTERNS,
    ScanDecision,
    SecurityScanner,
    SecurityViolation,
    ThreatCategory,
)

__all__ = [
    "DEFAULT_INIT_TOOLS",
    "THREAT_PATTERNS",
    "ScanDecision",
    "SecurityScanner",
    "SecurityViolation",
    "ShellInitAllowlist",
    "ThreatCategory",
    "is_package_install",
]
