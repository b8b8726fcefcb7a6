"""Version resolution for the kubescape binary.

Decides which release should be installed and whether it is the newest one.
A configured version is either the literal ``latest`` or an explicit tag such
as ``v2.3.1``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from kubescape_api.core.logging import get_logger
from kubescape_api.errors import ResolutionError

LOGGER = get_logger(__name__)

LATEST = "latest"

# Matches v2.3.1 in "Your current version is: v2.3.1 [git enabled in build: true]"
_VERSION_PATTERN = re.compile(r"v?(\d+)\.(\d+)\.(\d+)")


@dataclass(frozen=True)
class ResolvedVersion:
    """Target release tag and whether it is the newest available."""

    version: str
    is_latest: bool


def is_latest_request(version: Optional[str]) -> bool:
    """True when the configuration asks for whatever is newest."""
    return not version or version.strip().lower() == LATEST


def normalize_tag(version: str) -> str:
    """Return a release tag with a leading ``v`` (``2.3.1`` -> ``v2.3.1``)."""
    version = version.strip()
    if version[:1].isdigit():
        return f"v{version}"
    return version


def parse_version_output(output: str) -> Optional[str]:
    """Extract the version tag from ``kubescape version`` output."""
    match = _VERSION_PATTERN.search(output)
    if match is None:
        return None
    return "v" + ".".join(match.groups())


def version_key(version: str) -> Tuple[int, ...]:
    """Sort key for version tags; unparseable tags sort first."""
    match = _VERSION_PATTERN.search(version)
    if match is None:
        return ()
    return tuple(int(part) for part in match.groups())


def _is_at_least(version: str, latest: str) -> bool:
    version_parts, latest_parts = version_key(version), version_key(latest)
    if version_parts and latest_parts:
        return version_parts >= latest_parts
    return version == latest


def accepts_format_version(version: str) -> bool:
    """True for releases before v3, which still take ``--format-version``.

    Unparseable tags are treated as current releases.
    """
    parts = version_key(version)
    return bool(parts) and parts[0] < 3


def resolve_version(config, source, installed_version: Optional[str] = None) -> ResolvedVersion:
    """Work out which kubescape release to install.

    Args:
        config: InstallConfig with the requested version.
        source: ArtifactSource used to look up the latest release.
        installed_version: Version currently on disk, if any.

    Returns:
        ResolvedVersion with the target tag and latest flag.

    Raises:
        ResolutionError: If "latest" was requested, the lookup failed and
            nothing is installed locally.
    """
    if not is_latest_request(config.version):
        target = normalize_tag(config.version)
        try:
            latest = normalize_tag(source.latest_version())
        except Exception as e:
            LOGGER.debug(f"Latest version check failed, assuming {target} is not latest: {e}")
            return ResolvedVersion(version=target, is_latest=False)
        return ResolvedVersion(version=target, is_latest=_is_at_least(target, latest))

    try:
        latest = normalize_tag(source.latest_version())
    except Exception as e:
        if installed_version:
            LOGGER.warning(
                f"Could not determine latest kubescape version, keeping {installed_version}: {e}"
            )
            return ResolvedVersion(version=installed_version, is_latest=False)
        raise ResolutionError(
            f"Could not determine the latest kubescape version and none is installed: {e}"
        ) from e

    return ResolvedVersion(version=latest, is_latest=True)
