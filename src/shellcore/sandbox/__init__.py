"""
Isolated execution backends.
"""

from shellcore.sandbox._base import Sandbox
from shellcore.sandbox.local import LocalSandbox, find_timeout_command

__all__ = [
    "Sandbox",
    "LocalSandbox",
    "find_timeout_command",
]
