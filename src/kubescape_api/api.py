"""Public entry point: install kubescape once, then scan manifests with it."""

from __future__ import annotations

import threading
from functools import lru_cache
from pathlib import Path
from typing import FrozenSet, List, Optional, Union

from kubescape_api.bootstrap.installer import INSTALL_HELP_URL, ArtifactInstaller
from kubescape_api.bootstrap.platform import PlatformInfo, get_platform_info
from kubescape_api.bootstrap.source import ArtifactSource, ReleaseSource
from kubescape_api.bootstrap.versions import accepts_format_version
from kubescape_api.command import FORMAT_VERSION_V1, build_command, scan_args
from kubescape_api.config.models import InstallConfig
from kubescape_api.core import subprocess_runner
from kubescape_api.core.cancellation import CancellationToken
from kubescape_api.core.logging import get_logger
from kubescape_api.core.models import InstalledState, ScanResult
from kubescape_api.errors import CancelledError, KubescapeError, NotInstalledError
from kubescape_api.parser import parse_scan_output
from kubescape_api.ui import KubescapeUi

LOGGER = get_logger(__name__)


class KubescapeApi:
    """Owns one kubescape installation and runs scans against it.

    ``setup`` must succeed before ``scan_yaml`` is used. Scans may run
    concurrently from several threads; each spawns its own process and only
    reads the installed state.
    """

    def __init__(
        self,
        source: Optional[ArtifactSource] = None,
        platform_info: Optional[PlatformInfo] = None,
    ) -> None:
        self._platform_info = platform_info
        self._source = source
        self._installer: Optional[ArtifactInstaller] = None
        self._state = InstalledState.empty()
        self._config: Optional[InstallConfig] = None
        self._lock = threading.Lock()

    # Installed state accessors

    @property
    def installed_state(self) -> InstalledState:
        return self._state

    @property
    def is_installed(self) -> bool:
        return self._state.is_installed

    @property
    def version(self) -> str:
        return self._state.version

    @property
    def is_latest_version(self) -> bool:
        return self._state.is_latest

    @property
    def frameworks_names(self) -> FrozenSet[str]:
        return self._state.frameworks

    @property
    def path(self) -> Optional[Path]:
        return self._state.path

    @property
    def platform_info(self) -> PlatformInfo:
        """Target platform, detected on first use.

        Raises:
            InstallError: If kubescape ships no release for the host platform.
        """
        if self._platform_info is None:
            self._platform_info = get_platform_info()
        return self._platform_info

    def _get_installer(self) -> ArtifactInstaller:
        with self._lock:
            if self._installer is None:
                platform_info = self.platform_info
                source = self._source or ReleaseSource(platform_info)
                self._installer = ArtifactInstaller(source, platform_info)
            return self._installer

    def setup(
        self,
        ui: KubescapeUi,
        config: InstallConfig,
        cancel: Optional[CancellationToken] = None,
    ) -> bool:
        """Install or update kubescape and the configured frameworks.

        Returns:
            True when a usable installation is in place. Failures are
            reported through ``ui.error``; cancellation returns False quietly.
        """
        try:
            state = self._get_installer().ensure_installed(ui, config, cancel)
        except CancelledError:
            LOGGER.info("kubescape setup cancelled")
            return False
        except KubescapeError as e:
            LOGGER.error(f"kubescape setup failed: {e}")
            ui.error(f"Failed to set up kubescape: {e}")
            ui.show_help("Kubescape can also be installed manually.", INSTALL_HELP_URL)
            return False
        except Exception as e:
            LOGGER.exception("Unexpected error during kubescape setup")
            ui.error(f"Failed to set up kubescape: {e}")
            return False

        with self._lock:
            self._state = state
            self._config = config

        ui.debug(f"kubescape {state.version} ready at {state.path}")
        if not state.is_latest:
            ui.info(f"kubescape {state.version} is installed; a newer version is available")
        return True

    def build_command(
        self, args: str, kubeconfig_path: Optional[Union[str, Path]] = None
    ) -> str:
        """Command string for ``args`` against the installed binary."""
        if self._state.path is None:
            raise NotInstalledError("kubescape is not installed; call setup() first")
        return build_command(self._state.path, args, kubeconfig_path, self.platform_info)

    def scan_yaml(
        self,
        ui: KubescapeUi,
        file_path: Union[str, Path],
        cancel: Optional[CancellationToken] = None,
        kubeconfig_path: Optional[Union[str, Path]] = None,
    ) -> List[ScanResult]:
        """Scan one manifest against the configured scan frameworks.

        Raises:
            NotInstalledError: ``setup`` has not succeeded.
            ExecutionError: kubescape exited with an error.
            CancelledError: ``cancel`` fired before the scan finished.
            ParseError: kubescape's output could not be parsed.
        """
        with self._lock:
            state = self._state
            config = self._config

        if not state.is_installed or config is None:
            raise NotInstalledError("kubescape is not installed; call setup() first")

        frameworks = [f for f in config.scan_frameworks if f in state.frameworks]
        if not frameworks:
            raise NotInstalledError(
                f"None of the scan frameworks {list(config.scan_frameworks)} are installed"
            )
        command = build_command(
            state.path,
            scan_args(
                file_path,
                frameworks,
                state.frameworks_directory,
                FORMAT_VERSION_V1 if accepts_format_version(state.version) else None,
            ),
            kubeconfig_path,
            self.platform_info,
        )

        stdout = ui.progress(
            f"Scanning {Path(file_path).name}",
            cancel,
            lambda report: subprocess_runner.run(ui, command, cancel, report),
        )
        results = parse_scan_output(stdout)
        LOGGER.debug(f"Scan of {file_path} returned {len(results)} framework result(s)")
        return results


@lru_cache(maxsize=1)
def get_instance() -> KubescapeApi:
    """Process-wide KubescapeApi, created on first use."""
    return KubescapeApi()
