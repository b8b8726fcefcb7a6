"""Platform detection for the kubescape binary.

Kubescape publishes one release asset per OS/architecture pair. The detected
platform picks that asset, the binary file name, and the shell syntax the
command builder emits.
"""

from __future__ import annotations

import platform
from dataclasses import dataclass
from typing import Optional

from kubescape_api.errors import InstallError

# platform.system() value -> (normalized OS, OS part of the release asset name)
_OS_TABLE = {
    "darwin": ("darwin", "macos"),
    "linux": ("linux", "ubuntu"),
    "windows": ("windows", "windows"),
}

# platform.machine() value -> normalized architecture
_ARCH_MAP = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "arm64": "arm64",
    "aarch64": "arm64",
}

SUPPORTED_OS = frozenset(os_name for os_name, _ in _OS_TABLE.values())
SUPPORTED_ARCH = frozenset(_ARCH_MAP.values())


def normalize_arch(machine: str) -> Optional[str]:
    """Map a raw ``platform.machine()`` string to amd64/arm64, or None."""
    return _ARCH_MAP.get(machine.lower())


def detect_os() -> str:
    """Lowercase name of the host OS (darwin, linux or windows).

    Raises:
        InstallError: If kubescape ships no release for this OS.
    """
    system = platform.system()
    entry = _OS_TABLE.get(system.lower())
    if entry is None:
        raise InstallError(
            f"Unsupported operating system: {system}. "
            f"kubescape releases exist for {', '.join(sorted(SUPPORTED_OS))}"
        )
    return entry[0]


def detect_arch() -> str:
    """Normalized host architecture.

    Raises:
        InstallError: If kubescape ships no release for this architecture.
    """
    machine = platform.machine()
    arch = normalize_arch(machine)
    if arch is None:
        raise InstallError(
            f"Unsupported architecture: {machine}. "
            f"kubescape releases exist for {', '.join(sorted(SUPPORTED_ARCH))}"
        )
    return arch


@dataclass(frozen=True)
class PlatformInfo:
    """Information about a platform.

    Attributes:
        os: Operating system (darwin, linux, windows).
        arch: CPU architecture (amd64, arm64).
    """

    os: str
    arch: str = "amd64"

    @property
    def name(self) -> str:
        """Return the platform identifier, e.g. "darwin-arm64"."""
        return f"{self.os}-{self.arch}"

    @property
    def is_windows(self) -> bool:
        return self.os == "windows"

    @property
    def binary_name(self) -> str:
        return "kubescape.exe" if self.is_windows else "kubescape"

    @property
    def release_asset(self) -> str:
        """Name of the kubescape release asset for this platform.

        Example: "kubescape-ubuntu-latest", "kubescape-arm64-macos-latest"
        """
        os_name = _OS_TABLE[self.os][1]
        if self.arch == "arm64":
            return f"kubescape-arm64-{os_name}-latest"
        return f"kubescape-{os_name}-latest"

    def is_supported(self) -> bool:
        """Check if this platform is supported."""
        return self.os in SUPPORTED_OS and self.arch in SUPPORTED_ARCH


def get_platform_info() -> PlatformInfo:
    """Detect the host platform.

    Raises:
        InstallError: If kubescape ships no release for this platform.
    """
    return PlatformInfo(os=detect_os(), arch=detect_arch())
