"""Tests for the KubescapeApi facade."""

from __future__ import annotations

import shutil
import sys
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from kubescape_api.api import KubescapeApi, get_instance
from kubescape_api.bootstrap.installer import read_record
from kubescape_api.bootstrap.platform import PlatformInfo
from kubescape_api.config.models import InstallConfig
from kubescape_api.core.cancellation import CancellationToken
from kubescape_api.core.models import InstalledState
from kubescape_api.errors import (
    CancelledError,
    ExecutionError,
    InstallError,
    NotInstalledError,
    ParseError,
)

DEFAULT_KUBESCAPE_VERSION = "v2.3.1"

FIXTURES = Path(__file__).parent.parent / "fixtures"

posix_only = pytest.mark.skipif(
    sys.platform == "win32", reason="fake kubescape binary is a shell script"
)


@pytest.fixture
def api(fake_source, linux_platform) -> KubescapeApi:
    return KubescapeApi(source=fake_source, platform_info=linux_platform)


def _manifest(tmp_path: Path, name: str = "priv1.yaml") -> Path:
    target = tmp_path / name
    shutil.copy(FIXTURES / "priv1.yaml", target)
    return target


class TestBeforeSetup:
    def test_empty_state(self, api) -> None:
        assert not api.is_installed
        assert api.version == ""
        assert api.path is None
        assert api.frameworks_names == frozenset()

    def test_scan_requires_setup(self, api, ui, tmp_path: Path) -> None:
        with pytest.raises(NotInstalledError):
            api.scan_yaml(ui, _manifest(tmp_path))

    def test_build_command_requires_setup(self, api) -> None:
        with pytest.raises(NotInstalledError):
            api.build_command("version")


@posix_only
class TestSetup:
    def test_pinned_version(self, api, ui, install_config) -> None:
        assert api.setup(ui, install_config) is True

        assert api.is_installed
        assert api.version == DEFAULT_KUBESCAPE_VERSION
        assert api.is_latest_version is False
        assert "nsa" in api.frameworks_names
        assert api.path == install_config.base_directory / "kubescape"
        assert ui.messages["error"] == []
        assert any("newer version" in msg for msg in ui.messages["info"])

    def test_latest_version(self, make_source, linux_platform, ui, tmp_path: Path) -> None:
        source = make_source(latest="v3.0.3")
        api = KubescapeApi(source=source, platform_info=linux_platform)
        config = InstallConfig(
            base_directory=tmp_path / "ks",
            frameworks_directory=tmp_path / "ks" / "frameworks",
            required_frameworks=("nsa",),
            scan_frameworks=("nsa",),
        )

        assert api.setup(ui, config)
        assert api.version == "v3.0.3"
        assert api.is_latest_version is True

    def test_second_setup_downloads_nothing(self, api, fake_source, ui, install_config) -> None:
        assert api.setup(ui, install_config)
        binary_fetches = list(fake_source.binary_fetches)
        framework_fetches = list(fake_source.framework_fetches)

        assert api.setup(ui, install_config)
        assert fake_source.binary_fetches == binary_fetches
        assert fake_source.framework_fetches == framework_fetches

    def test_failure_reports_error(self, make_source, linux_platform, ui, install_config) -> None:
        source = make_source(available_frameworks=())
        api = KubescapeApi(source=source, platform_info=linux_platform)

        assert api.setup(ui, install_config) is False
        assert not api.is_installed
        assert ui.messages["error"]
        assert ui.help

    def test_cancelled_setup_is_quiet(self, api, ui, install_config) -> None:
        cancel = CancellationToken()
        cancel.cancel()

        assert api.setup(ui, install_config, cancel) is False
        assert ui.messages["error"] == []
        assert not api.is_installed

    def test_failed_setup_keeps_previous_state(
        self, api, fake_source, ui, install_config, tmp_path: Path
    ) -> None:
        assert api.setup(ui, install_config)
        previous = api.installed_state

        broken = InstallConfig(
            version=DEFAULT_KUBESCAPE_VERSION,
            base_directory=install_config.base_directory,
            frameworks_directory=install_config.frameworks_directory,
            required_frameworks=("doesnotexist",),
            scan_frameworks=("nsa",),
        )
        assert api.setup(ui, broken) is False
        assert api.installed_state == previous

    def test_failed_upgrade_keeps_state_and_disk_in_step(
        self, api, ui, install_config
    ) -> None:
        assert api.setup(ui, install_config)
        upgrade = InstallConfig(
            version="v3.0.3",
            base_directory=install_config.base_directory,
            frameworks_directory=install_config.frameworks_directory,
            required_frameworks=("doesnotexist",),
            scan_frameworks=("nsa",),
        )

        assert api.setup(ui, upgrade) is False
        assert api.version == DEFAULT_KUBESCAPE_VERSION
        assert read_record(install_config.paths).version == DEFAULT_KUBESCAPE_VERSION


@posix_only
class TestScanYaml:
    @pytest.fixture
    def ready_api(self, api, ui, tmp_path: Path) -> KubescapeApi:
        config = InstallConfig(
            version=DEFAULT_KUBESCAPE_VERSION,
            base_directory=tmp_path / "ks",
            frameworks_directory=tmp_path / "ks" / "frameworks",
            required_frameworks=("nsa",),
            scan_frameworks=("nsa", "mitre"),
        )
        assert api.setup(ui, config)
        return api

    def test_results_match_scan_frameworks(self, ready_api, ui, tmp_path: Path) -> None:
        results = ready_api.scan_yaml(ui, _manifest(tmp_path))

        assert sorted(r.name.lower() for r in results) == ["mitre", "nsa"]
        for result in results:
            assert result.failed == 1
            assert result.findings[0]["controlID"] == "C-0016"
        assert ui.progress_titles[-1] == "Scanning priv1.yaml"
        assert ui.fractions[0] == 0.0
        assert ui.fractions[-1] == 1.0

    def test_current_release_report_format(
        self, make_source, linux_platform, ui, tmp_path: Path
    ) -> None:
        api = KubescapeApi(source=make_source(latest="v3.0.3"), platform_info=linux_platform)
        config = InstallConfig(
            base_directory=tmp_path / "ks",
            frameworks_directory=tmp_path / "ks" / "frameworks",
            required_frameworks=("nsa",),
            scan_frameworks=("nsa", "mitre"),
        )
        assert api.setup(ui, config)
        assert api.version == "v3.0.3"

        results = api.scan_yaml(ui, _manifest(tmp_path))
        assert sorted(r.name.lower() for r in results) == ["mitre", "nsa"]

    def test_only_installed_frameworks_are_scanned(
        self, make_source, linux_platform, ui, tmp_path: Path
    ) -> None:
        source = make_source(available_frameworks=("nsa",))
        api = KubescapeApi(source=source, platform_info=linux_platform)
        config = InstallConfig(
            version=DEFAULT_KUBESCAPE_VERSION,
            base_directory=tmp_path / "ks",
            frameworks_directory=tmp_path / "ks" / "frameworks",
            required_frameworks=("nsa",),
            scan_frameworks=("nsa", "mitre"),
        )
        assert api.setup(ui, config)

        results = api.scan_yaml(ui, _manifest(tmp_path))
        assert [r.name.lower() for r in results] == ["nsa"]

    def test_concurrent_scans(self, ready_api, ui, tmp_path: Path) -> None:
        manifests = [_manifest(tmp_path, f"pod{i}.yaml") for i in range(3)]
        results = {}

        def scan(path: Path) -> None:
            results[path.name] = ready_api.scan_yaml(ui, path)

        threads = [threading.Thread(target=scan, args=(m,)) for m in manifests]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert set(results) == {"pod0.yaml", "pod1.yaml", "pod2.yaml"}
        assert all(len(r) == 2 for r in results.values())

    def test_unparseable_output(self, ready_api, ui, tmp_path: Path) -> None:
        with pytest.raises(ParseError):
            ready_api.scan_yaml(ui, _manifest(tmp_path, "broken.yaml"))

    def test_scanner_failure(self, ready_api, ui, tmp_path: Path) -> None:
        with pytest.raises(ExecutionError) as exc_info:
            ready_api.scan_yaml(ui, _manifest(tmp_path, "crash.yaml"))

        assert exc_info.value.exit_code == 2
        assert "failed to load manifest" in str(exc_info.value)

    def test_cancelled_scan(self, ready_api, ui, tmp_path: Path) -> None:
        cancel = CancellationToken()
        timer = threading.Timer(0.5, cancel.cancel)
        timer.start()
        try:
            with pytest.raises(CancelledError):
                ready_api.scan_yaml(ui, _manifest(tmp_path, "slow.yaml"), cancel)
        finally:
            timer.cancel()
        assert ui.fractions[-1] != 1.0


class TestBuildCommand:
    def test_unix_forms(self, api, install_config) -> None:
        binary = install_config.base_directory / "kubescape"
        _force_installed(api, binary)

        assert api.build_command("version") == f'"{binary}" version'
        assert (
            api.build_command("version", "/home/me/.kube/config")
            == f'KUBECONFIG="/home/me/.kube/config" "{binary}" version'
        )

    def test_windows_form(self, fake_source, tmp_path: Path) -> None:
        api = KubescapeApi(source=fake_source, platform_info=PlatformInfo(os="windows"))
        binary = tmp_path / "kubescape.exe"
        _force_installed(api, binary)

        assert (
            api.build_command("version", "C:\\kube\\config")
            == f'set "KUBECONFIG=C:\\kube\\config" & "{binary}" version'
        )


def _force_installed(api: KubescapeApi, binary: Path) -> None:
    api._state = InstalledState(
        path=binary,
        version=DEFAULT_KUBESCAPE_VERSION,
        is_latest=False,
        frameworks=frozenset({"nsa"}),
        frameworks_directory=binary.parent / "frameworks",
    )


class TestUnsupportedPlatform:
    def test_construction_does_not_detect_platform(self) -> None:
        with patch(
            "kubescape_api.api.get_platform_info",
            side_effect=InstallError("Unsupported operating system: Plan9"),
        ) as mock_detect:
            KubescapeApi()
        mock_detect.assert_not_called()

    def test_setup_reports_failure(self, ui, install_config) -> None:
        api = KubescapeApi()
        with patch(
            "kubescape_api.api.get_platform_info",
            side_effect=InstallError("Unsupported operating system: Plan9"),
        ):
            assert api.setup(ui, install_config) is False

        assert any("Plan9" in msg for msg in ui.messages["error"])
        assert not api.is_installed


class TestGetInstance:
    def test_returns_same_instance(self) -> None:
        get_instance.cache_clear()
        try:
            first = get_instance()
            assert first is get_instance()
            assert isinstance(first, KubescapeApi)
        finally:
            get_instance.cache_clear()

    def test_independent_instances(self, make_source, linux_platform) -> None:
        a = KubescapeApi(source=make_source(), platform_info=linux_platform)
        b = KubescapeApi(source=make_source(), platform_info=linux_platform)
        assert a is not b
        assert a.installed_state == b.installed_state
