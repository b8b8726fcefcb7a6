"""Path management for the kubescape installation.

The binary, its install record and the framework bundles live in the
directories named by the install configuration::

    <base_directory>/
        kubescape            - scanner binary (kubescape.exe on Windows)
        kubescape.json       - install record (version, platform)
    <frameworks_directory>/
        nsa.json             - one file per downloaded framework
        mitre.json
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from kubescape_api.bootstrap.platform import PlatformInfo

# Default directory name under user home
DEFAULT_HOME_DIR_NAME = ".kubescape-api"

# Environment variable to override home directory
KUBESCAPE_API_HOME_ENV = "KUBESCAPE_API_HOME"


def get_kubescape_api_home() -> Path:
    """Get the default installation home.

    Resolution order:
    1. KUBESCAPE_API_HOME environment variable (if set)
    2. ~/.kubescape-api (default)
    """
    env_home = os.environ.get(KUBESCAPE_API_HOME_ENV)
    if env_home:
        return Path(env_home)
    return Path.home() / DEFAULT_HOME_DIR_NAME


@dataclass(frozen=True)
class KubescapePaths:
    """Resolves file locations inside the configured directories."""

    base_directory: Path
    frameworks_directory: Path

    _RECORD_NAME: ClassVar[str] = "kubescape.json"
    _FRAMEWORK_SUFFIX: ClassVar[str] = ".json"

    def binary_path(self, platform_info: PlatformInfo) -> Path:
        return self.base_directory / platform_info.binary_name

    @property
    def record_path(self) -> Path:
        return self.base_directory / self._RECORD_NAME

    def framework_path(self, name: str) -> Path:
        return self.frameworks_directory / f"{name.lower()}{self._FRAMEWORK_SUFFIX}"

    def present_frameworks(self) -> frozenset:
        """Names of framework bundles currently on disk."""
        if not self.frameworks_directory.is_dir():
            return frozenset()
        return frozenset(
            entry.stem.lower()
            for entry in self.frameworks_directory.iterdir()
            if entry.is_file() and entry.suffix == self._FRAMEWORK_SUFFIX
        )

    def ensure_directories(self) -> None:
        """Create both directories if they don't exist."""
        for directory in (self.base_directory, self.frameworks_directory):
            directory.mkdir(parents=True, exist_ok=True)

    def is_writable(self) -> bool:
        return all(
            os.access(directory, os.W_OK)
            for directory in (self.base_directory, self.frameworks_directory)
        )
