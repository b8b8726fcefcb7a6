"""Shared fixtures: a scripted kubescape stand-in and a recording UI."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from kubescape_api.bootstrap.platform import PlatformInfo
from kubescape_api.bootstrap.source import ArtifactSource
from kubescape_api.config.models import InstallConfig
from kubescape_api.core.cancellation import CancellationToken
from kubescape_api.errors import InstallError, ResolutionError
from kubescape_api.ui import KubescapeUi

DEFAULT_KUBESCAPE_VERSION = "v2.3.1"
LATEST_KUBESCAPE_VERSION = "v3.0.3"

# Behaves like `kubescape version` and `kubescape scan framework <names> <file>`.
# Framework names are echoed back upper-cased, as a JSON array with
# `--format-version v1` and as a report object otherwise.
FAKE_KUBESCAPE_SCRIPT = """#!/bin/sh
case "$1" in
  version)
    echo "Your current version is: v2.3.1 [git enabled in build: true]"
    ;;
  scan)
    case "$4" in
      *slow*) sleep 30 ;;
      *broken*) echo "this is not json"; exit 0 ;;
      *crash*) echo "failed to load manifest" >&2; exit 2 ;;
    esac
    out="["
    sep=""
    for name in $(echo "$3" | tr ',' ' '); do
      upper=$(echo "$name" | tr 'a-z' 'A-Z')
      out="$out$sep{\\"name\\": \\"$upper\\", \\"controls\\": [{\\"controlID\\": \\"C-0016\\", \\"status\\": \\"failed\\"}]}"
      sep=", "
    done
    case "$*" in
      *"--format-version v1"*) echo "$out]" ;;
      *) echo "{\\"summaryDetails\\": {\\"frameworks\\": $out]}}" ;;
    esac
    ;;
  *)
    echo "unknown command $1" >&2
    exit 1
    ;;
esac
"""


class FakeSource(ArtifactSource):
    """In-memory artifact source that counts every fetch."""

    def __init__(
        self,
        latest: Optional[str] = LATEST_KUBESCAPE_VERSION,
        available_frameworks: Tuple[str, ...] = ("nsa", "mitre", "allcontrols"),
        binary: bytes = FAKE_KUBESCAPE_SCRIPT.encode("utf-8"),
    ) -> None:
        self.latest = latest
        self.available_frameworks = available_frameworks
        self.binary = binary
        self.binary_fetches: List[Tuple[str, str]] = []
        self.framework_fetches: List[str] = []
        self.before_framework_fetch: Optional[Callable[[str], None]] = None
        self.before_binary_fetch: Optional[Callable[[str], None]] = None

    def latest_version(self) -> str:
        if self.latest is None:
            raise ResolutionError("offline")
        return self.latest

    def fetch_binary(
        self,
        version: str,
        platform_info: PlatformInfo,
        cancel: Optional[CancellationToken] = None,
    ) -> bytes:
        if self.before_binary_fetch is not None:
            self.before_binary_fetch(version)
        self.binary_fetches.append((version, platform_info.name))
        return self.binary

    def fetch_framework(
        self,
        name: str,
        destination: Path,
        binary_path: Path,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        if self.before_framework_fetch is not None:
            self.before_framework_fetch(name)
        if cancel is not None:
            cancel.raise_if_cancelled()
        self.framework_fetches.append(name)
        if name not in self.available_frameworks:
            raise InstallError(f"framework {name} not found")
        destination.write_text(json.dumps({"name": name, "controls": []}))


class RecordingUi(KubescapeUi):
    """UI double that records every call."""

    def __init__(self) -> None:
        self.messages: Dict[str, List[str]] = {"info": [], "error": [], "debug": []}
        self.help: List[Tuple[str, str]] = []
        self.slow_titles: List[str] = []
        self.progress_titles: List[str] = []
        self.fractions: List[float] = []

    def info(self, msg: str) -> None:
        self.messages["info"].append(msg)

    def error(self, msg: str) -> None:
        self.messages["error"].append(msg)

    def debug(self, msg: str) -> None:
        self.messages["debug"].append(msg)

    def show_help(self, message: str, url: str) -> None:
        self.help.append((message, url))

    def slow(self, title, work):
        self.slow_titles.append(title)
        return work()

    def progress(self, title, cancel, work):
        self.progress_titles.append(title)
        return work(self.fractions.append)


@pytest.fixture
def linux_platform() -> PlatformInfo:
    return PlatformInfo(os="linux", arch="amd64")


@pytest.fixture
def fake_source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def ui() -> RecordingUi:
    return RecordingUi()


@pytest.fixture
def install_config(tmp_path: Path) -> InstallConfig:
    return InstallConfig(
        version=DEFAULT_KUBESCAPE_VERSION,
        base_directory=tmp_path / "kubescape",
        frameworks_directory=tmp_path / "kubescape" / "frameworks",
        required_frameworks=("nsa",),
        scan_frameworks=("nsa",),
    )


@pytest.fixture
def make_source() -> Callable[..., FakeSource]:
    return FakeSource
