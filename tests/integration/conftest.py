"""Pytest configuration and fixtures for integration tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from kubescape_api.config.models import InstallConfig


@pytest.fixture(scope="module")
def install_dir(tmp_path_factory) -> Path:
    return tmp_path_factory.mktemp("kubescape-real")


@pytest.fixture
def real_config(install_dir: Path) -> InstallConfig:
    return InstallConfig(
        version="v2.3.1",
        base_directory=install_dir,
        frameworks_directory=install_dir / "frameworks",
        required_frameworks=("nsa",),
        scan_frameworks=("nsa", "mitre"),
    )
