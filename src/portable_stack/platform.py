"""Platform detection.

Download keys and executable maps use ``{os}/{arch}`` names such as
``linux/amd64`` or ``darwin/arm64``.
"""

from __future__ import annotations

import platform as _platform
import sys
from dataclasses import dataclass

OS_WINDOWS = "windows"
OS_LINUX = "linux"
OS_DARWIN = "darwin"

# platform.machine() spellings -> catalog arch names
_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "x64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv8l": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv7l": "arm",
    "armv6l": "arm",
}


@dataclass(frozen=True)
class PlatformInfo:
    """Operating system and CPU architecture of a host."""

    os: str
    arch: str

    @property
    def key(self) -> str:
        """Download-map key, e.g. ``linux/amd64``."""
        return f"{self.os}/{self.arch}"

    @property
    def is_windows(self) -> bool:
        return self.os == OS_WINDOWS

    @property
    def exe_suffix(self) -> str:
        return ".exe" if self.is_windows else ""

    def to_dict(self) -> dict:
        return {"os": self.os, "arch": self.arch, "key": self.key}


def normalize_os(name: str) -> str:
    name = name.lower()
    if name.startswith("win") or name == "cygwin":
        return OS_WINDOWS
    if name.startswith("linux"):
        return OS_LINUX
    if name == "darwin" or name.startswith("mac"):
        return OS_DARWIN
    return name


def normalize_arch(machine: str) -> str:
    machine = machine.lower()
    return _ARCH_ALIASES.get(machine, machine)


def detect_platform() -> PlatformInfo:
    """Detect the platform of the running interpreter."""
    return PlatformInfo(
        os=normalize_os(sys.platform),
        arch=normalize_arch(_platform.machine()),
    )
