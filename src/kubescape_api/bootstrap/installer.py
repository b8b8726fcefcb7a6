"""Installs and updates the kubescape binary and framework bundles.

The installer reconciles what is on disk with the install configuration:

- the binary is replaced when missing, not executable, built for another
  platform, or at a different version than the resolved target;
- every framework in ``required_frameworks ∪ scan_frameworks`` is fetched
  when its bundle file is missing.

Files are always written to a temporary path in the destination directory
and moved into place with ``os.replace``, so a reader never sees a partially
written binary or bundle. A new binary stays staged until every required
framework is present; only then does it replace the old binary and record.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from kubescape_api.bootstrap.paths import KubescapePaths
from kubescape_api.bootstrap.platform import PlatformInfo
from kubescape_api.bootstrap.source import ArtifactSource
from kubescape_api.bootstrap.validation import ToolStatus, validate_binary
from kubescape_api.bootstrap.versions import parse_version_output, resolve_version
from kubescape_api.command import build_command, version_args
from kubescape_api.core import subprocess_runner
from kubescape_api.core.cancellation import CancellationToken
from kubescape_api.core.logging import get_logger
from kubescape_api.core.models import InstalledState
from kubescape_api.errors import CancelledError, ExecutionError, InstallError, KubescapeError

if TYPE_CHECKING:
    from kubescape_api.config.models import InstallConfig
    from kubescape_api.ui import KubescapeUi

LOGGER = get_logger(__name__)

INSTALL_HELP_URL = "https://kubescape.io/docs/install-cli/"


@dataclass
class InstallRecord:
    """What was installed, stored as kubescape.json next to the binary."""

    version: str = ""
    platform: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"version": self.version, "platform": self.platform}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstallRecord":
        """Create from dictionary (e.g., from JSON)."""
        return cls(
            version=data.get("version", ""),
            platform=data.get("platform", ""),
        )


def read_record(paths: KubescapePaths) -> Optional[InstallRecord]:
    """Read kubescape.json if it exists.

    Returns:
        InstallRecord if the file exists and parses, None otherwise.
    """
    if not paths.record_path.is_file():
        return None
    try:
        data = json.loads(paths.record_path.read_text(encoding="utf-8"))
        return InstallRecord.from_dict(data)
    except (json.JSONDecodeError, AttributeError, OSError) as e:
        LOGGER.warning(f"Failed to parse {paths.record_path}: {e}")
        return None


def _atomic_write(destination: Path, data: bytes) -> None:
    """Write ``data`` next to ``destination`` and move it over the target."""
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{destination.name}.", suffix=".tmp", dir=destination.parent
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, destination)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def write_record(paths: KubescapePaths, record: InstallRecord) -> None:
    _atomic_write(
        paths.record_path,
        (json.dumps(record.to_dict(), indent=2) + "\n").encode("utf-8"),
    )


class ArtifactInstaller:
    """Makes the configured kubescape version and frameworks available locally."""

    def __init__(self, source: ArtifactSource, platform_info: PlatformInfo) -> None:
        self._source = source
        self._platform_info = platform_info

    def installed_version(
        self,
        paths: KubescapePaths,
        cancel: Optional[CancellationToken] = None,
    ) -> Optional[str]:
        """Version of the binary on disk, or None when nothing usable is installed.

        Prefers the install record; falls back to asking the binary itself.
        """
        binary = paths.binary_path(self._platform_info)
        if validate_binary(binary) != ToolStatus.PRESENT:
            return None

        record = read_record(paths)
        if record is not None and record.version:
            if record.platform and record.platform != self._platform_info.name:
                LOGGER.info(
                    f"Installed kubescape was built for {record.platform}, "
                    f"need {self._platform_info.name}"
                )
                return None
            return record.version

        command = build_command(binary, version_args(), platform=self._platform_info)
        try:
            output = subprocess_runner.run(None, command, cancel)
        except ExecutionError as e:
            LOGGER.warning(f"Could not query installed kubescape version: {e}")
            return None
        return parse_version_output(output)

    def ensure_installed(
        self,
        ui: "KubescapeUi",
        config: "InstallConfig",
        cancel: Optional[CancellationToken] = None,
    ) -> InstalledState:
        """Bring the installation in line with ``config``.

        Returns:
            The new InstalledState, built only after every mandatory artifact
            is on disk.

        Raises:
            ResolutionError: No version could be resolved and nothing is installed.
            InstallError: A fetch or a disk write failed.
            CancelledError: ``cancel`` fired during the install.
        """
        paths = config.paths
        try:
            paths.ensure_directories()
        except OSError as e:
            raise InstallError(f"Cannot create install directories: {e}") from e
        if not paths.is_writable():
            raise InstallError(
                f"No write permission for {paths.base_directory} or {paths.frameworks_directory}"
            )

        current_version = self.installed_version(paths, cancel)
        resolved = resolve_version(config, self._source, current_version)
        LOGGER.debug(
            f"kubescape installed={current_version} target={resolved.version} "
            f"latest={resolved.is_latest}"
        )
        if cancel is not None:
            cancel.raise_if_cancelled()

        binary = paths.binary_path(self._platform_info)
        if current_version == resolved.version:
            LOGGER.debug(f"kubescape {current_version} already installed at {binary}")
            frameworks = self._install_frameworks(ui, config, binary, cancel)
        else:
            staged = ui.slow(
                f"Installing kubescape {resolved.version}",
                lambda: self._stage_binary(paths, resolved.version, cancel),
            )
            try:
                # Frameworks are fetched with the new binary before it replaces the old one
                frameworks = self._install_frameworks(ui, config, staged, cancel)
                if cancel is not None:
                    cancel.raise_if_cancelled()
                self._commit_binary(ui, paths, staged, resolved.version)
            finally:
                staged.unlink(missing_ok=True)

        return InstalledState(
            path=binary,
            version=resolved.version,
            is_latest=resolved.is_latest,
            frameworks=frozenset(frameworks),
            frameworks_directory=paths.frameworks_directory,
        )

    def _stage_binary(
        self,
        paths: KubescapePaths,
        version: str,
        cancel: Optional[CancellationToken],
    ) -> Path:
        """Download ``version`` to a temporary executable next to the binary."""
        binary = paths.binary_path(self._platform_info)
        data = self._source.fetch_binary(version, self._platform_info, cancel)
        if cancel is not None:
            cancel.raise_if_cancelled()
        if not data:
            raise InstallError(f"Downloaded kubescape {version} is empty")

        # Same suffix as the binary so Windows still runs it as an .exe
        fd, tmp_name = tempfile.mkstemp(
            prefix=".kubescape-staged-", suffix=binary.suffix, dir=binary.parent
        )
        staged = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            if os.name != "nt":
                staged.chmod(0o755)
        except OSError as e:
            staged.unlink(missing_ok=True)
            raise InstallError(f"Failed to write kubescape binary to {binary.parent}: {e}") from e
        LOGGER.debug(f"kubescape {version} staged at {staged}")
        return staged

    def _commit_binary(
        self, ui: "KubescapeUi", paths: KubescapePaths, staged: Path, version: str
    ) -> None:
        binary = paths.binary_path(self._platform_info)
        try:
            # Without a record the version is read from the binary itself
            paths.record_path.unlink(missing_ok=True)
            os.replace(staged, binary)
            write_record(paths, InstallRecord(version=version, platform=self._platform_info.name))
        except OSError as e:
            raise InstallError(f"Failed to write kubescape binary to {binary}: {e}") from e
        ui.info(f"Installed kubescape {version}")
        LOGGER.info(f"kubescape {version} installed to {binary}")

    def _install_frameworks(
        self,
        ui: "KubescapeUi",
        config: "InstallConfig",
        binary: Path,
        cancel: Optional[CancellationToken],
    ) -> List[str]:
        paths = config.paths
        present = paths.present_frameworks()
        missing = [name for name in config.all_frameworks if name not in present]
        installed = [name for name in config.all_frameworks if name in present]

        if not missing:
            return installed

        def work(report) -> List[str]:
            total = len(missing)
            report(0.0)
            for done, name in enumerate(missing, 1):
                if self._install_framework(ui, config, paths, binary, name, cancel):
                    installed.append(name)
                report(done / total)
            return installed

        return ui.progress("Downloading kubescape frameworks", cancel, work)

    def _install_framework(
        self,
        ui: "KubescapeUi",
        config: "InstallConfig",
        paths: KubescapePaths,
        binary: Path,
        name: str,
        cancel: Optional[CancellationToken],
    ) -> bool:
        """Fetch one framework; False if a scan-only framework could not be fetched."""
        destination = paths.framework_path(name)
        tmp_path = destination.with_name(f".{destination.name}.download")
        try:
            self._source.fetch_framework(name, tmp_path, binary, cancel)
            os.replace(tmp_path, destination)
        except CancelledError:
            tmp_path.unlink(missing_ok=True)
            raise
        except (KubescapeError, OSError) as e:
            tmp_path.unlink(missing_ok=True)
            if name in config.required_frameworks:
                raise InstallError(f"Required framework '{name}' could not be installed: {e}") from e
            ui.info(f"Skipping framework '{name}': {e}")
            LOGGER.warning(f"Optional framework '{name}' not installed: {e}")
            return False
        LOGGER.info(f"Framework '{name}' installed to {destination}")
        return True
