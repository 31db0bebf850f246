"""
One-shot OS/environment classification.
"""

from __future__ import annotations

import os
import platform
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING

from shellcore._types import PlatformInfo

if TYPE_CHECKING:
    from shellcore.log import LogEngine

WSL_INTEROP_PATH = "/proc/sys/fs/binfmt_misc/WSLInterop"
PROC_VERSION_PATH = "/proc/version"
TERMUX_PREFIX = "/data/data/com.termux/files/usr"

_UNAME_TO_OSTYPE: dict[str, str] = {
    "darwin": "darwin",
    "linux": "linux",
    "freebsd": "bsd",
    "openbsd": "bsd",
    "netbsd": "bsd",
    "dragonfly": "bsd",
}


def _ostype_from_uname(system: str) -> str:
    name = system.lower()
    if name.startswith(("cygwin", "msys", "mingw")):
        return "cygwin"
    return _UNAME_TO_OSTYPE.get(name, "unknown")


def classify(ostype: str) -> dict[str, bool]:
    """Map an OSTYPE-style string to the primary platform flags."""
    value = ostype.lower()
    flags = {"is_macos": False, "is_linux": False, "is_bsd": False, "is_cygwin": False}
    if value.startswith("darwin"):
        flags["is_macos"] = True
    elif value.startswith("linux"):
        flags["is_linux"] = True
    elif "bsd" in value or value.startswith("dragonfly"):
        flags["is_bsd"] = True
    elif value.startswith(("cygwin", "msys", "mingw")):
        flags["is_cygwin"] = True
    return flags


class PlatformDetector:
    """
    Detects the platform once; later calls return the cached PlatformInfo.

    The probes are injectable so tests can simulate any host.
    """

    def __init__(
        self,
        *,
        environ: Mapping[str, str] | None = None,
        uname: Callable[[], str] = platform.system,
        wsl_interop_path: str = WSL_INTEROP_PATH,
        proc_version_path: str = PROC_VERSION_PATH,
        termux_prefix: str = TERMUX_PREFIX,
        log: LogEngine | None = None,
    ) -> None:
        self._environ = os.environ if environ is None else environ
        self._uname = uname
        self._wsl_interop_path = Path(wsl_interop_path)
        self._proc_version_path = Path(proc_version_path)
        self._termux_prefix = Path(termux_prefix)
        self._log = log
        self._info: PlatformInfo | None = None
        self.detections = 0

    @property
    def detected(self) -> bool:
        return self._info is not None

    def detect(self) -> PlatformInfo:
        """Classify the host on first call; return the same record afterwards."""
        if self._info is not None:
            return self._info

        self.detections += 1
        ostype = self._environ.get("OSTYPE", "")
        if not ostype:
            ostype = _ostype_from_uname(self._uname() or "")

        flags = classify(ostype)
        is_linux = flags["is_linux"]
        is_wsl = is_linux and self._is_wsl()
        is_termux = is_linux and self._termux_prefix.is_dir()
        is_unknown = not any(flags.values())

        self._info = PlatformInfo(
            ostype=ostype,
            is_wsl=is_wsl,
            is_termux=is_termux,
            is_unknown=is_unknown,
            **flags,
        )

        if self._log is not None:
            if is_unknown:
                self._log.warn(f"Unknown platform: {ostype}")
            self._log.debug(
                "Platform:",
                " ".join(f"{k}={int(v)}" for k, v in self._info.flags().items()),
            )
        return self._info

    def _is_wsl(self) -> bool:
        if self._environ.get("WSL_DISTRO_NAME") or self._environ.get("WSLENV"):
            return True
        if self._wsl_interop_path.exists():
            return True
        try:
            version = self._proc_version_path.read_text(errors="replace").lower()
        except OSError:
            return False
        return "microsoft" in version or "wsl" in version
