"""Where kubescape binaries and framework bundles come from.

The installer only talks to an ``ArtifactSource``; ``ReleaseSource`` is the
default implementation backed by GitHub releases and the kubescape binary's
own ``download framework`` subcommand.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.error import HTTPError, URLError

from kubescape_api.bootstrap.download import download_bytes, fetch_json
from kubescape_api.bootstrap.platform import PlatformInfo
from kubescape_api.command import build_command, download_framework_args
from kubescape_api.core import subprocess_runner
from kubescape_api.core.cancellation import CancellationToken
from kubescape_api.core.logging import get_logger
from kubescape_api.errors import ExecutionError, InstallError, ResolutionError

LOGGER = get_logger(__name__)

RELEASES_API_URL = "https://api.github.com/repos/kubescape/kubescape/releases/latest"
RELEASES_DOWNLOAD_URL = "https://github.com/kubescape/kubescape/releases/download"


class ArtifactSource(ABC):
    """Opaque fetch operations used by the installer."""

    @abstractmethod
    def latest_version(self) -> str:
        """Return the newest released tag, e.g. ``v3.0.1``.

        Raises:
            ResolutionError: If the latest release cannot be determined.
        """

    @abstractmethod
    def fetch_binary(
        self,
        version: str,
        platform_info: PlatformInfo,
        cancel: Optional[CancellationToken] = None,
    ) -> bytes:
        """Return the binary contents for ``version`` on ``platform_info``.

        Raises:
            InstallError: If the download fails.
            CancelledError: If ``cancel`` fires during the download.
        """

    @abstractmethod
    def fetch_framework(
        self,
        name: str,
        destination: Path,
        binary_path: Path,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        """Write the framework bundle ``name`` to ``destination``.

        Raises:
            InstallError: If the framework cannot be fetched.
            CancelledError: If ``cancel`` fires during the fetch.
        """


class ReleaseSource(ArtifactSource):
    """Fetches kubescape from its GitHub releases."""

    def __init__(self, platform_info: Optional[PlatformInfo] = None) -> None:
        self._platform_info = platform_info

    def latest_version(self) -> str:
        try:
            data = fetch_json(RELEASES_API_URL)
        except (HTTPError, URLError, OSError, ValueError) as e:
            raise ResolutionError(f"Could not query latest kubescape release: {e}") from e

        tag = data.get("tag_name") if isinstance(data, dict) else None
        if not tag:
            raise ResolutionError("Latest kubescape release has no tag_name")
        return tag

    def binary_url(self, version: str, platform_info: PlatformInfo) -> str:
        return f"{RELEASES_DOWNLOAD_URL}/{version}/{platform_info.release_asset}"

    def fetch_binary(
        self,
        version: str,
        platform_info: PlatformInfo,
        cancel: Optional[CancellationToken] = None,
    ) -> bytes:
        url = self.binary_url(version, platform_info)
        LOGGER.info(f"Downloading kubescape {version} from {url}")
        try:
            return download_bytes(url, cancel=cancel)
        except HTTPError as e:
            raise InstallError(
                f"Failed to download kubescape {version}: HTTP {e.code} - {e.reason}"
            ) from e
        except URLError as e:
            raise InstallError(
                f"Failed to download kubescape {version}: {e.reason}. "
                "Check your network connection."
            ) from e
        except (OSError, ValueError) as e:
            raise InstallError(f"Failed to download kubescape {version}: {e}") from e

    def fetch_framework(
        self,
        name: str,
        destination: Path,
        binary_path: Path,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        command = build_command(
            binary_path,
            download_framework_args(name, destination),
            platform=self._platform_info,
        )
        try:
            subprocess_runner.run(None, command, cancel)
        except ExecutionError as e:
            raise InstallError(f"Failed to download framework '{name}': {e}") from e

        if not destination.is_file():
            raise InstallError(f"Framework '{name}' was not written to {destination}")
