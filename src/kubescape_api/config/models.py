"""Install configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from difflib import get_close_matches
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Tuple

from kubescape_api.bootstrap.paths import KubescapePaths, get_kubescape_api_home
from kubescape_api.bootstrap.versions import LATEST
from kubescape_api.core.logging import get_logger
from kubescape_api.errors import ConfigError

LOGGER = get_logger(__name__)

DEFAULT_FRAMEWORKS = ("nsa", "mitre")

# Host-facing camelCase keys mapped to field names
_KEY_ALIASES: Dict[str, str] = {
    "version": "version",
    "baseDirectory": "base_directory",
    "base_directory": "base_directory",
    "frameworksDirectory": "frameworks_directory",
    "frameworks_directory": "frameworks_directory",
    "requiredFrameworks": "required_frameworks",
    "required_frameworks": "required_frameworks",
    "scanFrameworks": "scan_frameworks",
    "scan_frameworks": "scan_frameworks",
}


def _normalize_names(names: Iterable[str], key: str) -> Tuple[str, ...]:
    if isinstance(names, str):
        names = [names]
    normalized = []
    for name in names:
        if not isinstance(name, str) or not name.strip():
            raise ConfigError(f"'{key}' entries must be non-empty strings, got {name!r}")
        lowered = name.strip().lower()
        if lowered not in normalized:
            normalized.append(lowered)
    if not normalized:
        raise ConfigError(f"'{key}' must name at least one framework")
    return tuple(normalized)


@dataclass(frozen=True)
class InstallConfig:
    """Where kubescape lives and which version and frameworks it needs.

    Attributes:
        version: "latest" or an explicit release tag such as "v2.3.1".
        base_directory: Directory holding the kubescape binary.
        frameworks_directory: Directory holding framework bundles.
        required_frameworks: Frameworks that must be present before use.
        scan_frameworks: Frameworks evaluated by each scan.
    """

    version: str = LATEST
    base_directory: Path = field(default_factory=get_kubescape_api_home)
    frameworks_directory: Path = field(
        default_factory=lambda: get_kubescape_api_home() / "frameworks"
    )
    required_frameworks: Tuple[str, ...] = DEFAULT_FRAMEWORKS
    scan_frameworks: Tuple[str, ...] = DEFAULT_FRAMEWORKS

    def __post_init__(self) -> None:
        if not isinstance(self.version, str) or not self.version.strip():
            raise ConfigError("'version' must be 'latest' or a release tag")
        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "version", self.version.strip())
        object.__setattr__(self, "base_directory", Path(self.base_directory))
        object.__setattr__(self, "frameworks_directory", Path(self.frameworks_directory))
        object.__setattr__(
            self,
            "required_frameworks",
            _normalize_names(self.required_frameworks, "required_frameworks"),
        )
        object.__setattr__(
            self,
            "scan_frameworks",
            _normalize_names(self.scan_frameworks, "scan_frameworks"),
        )

    @property
    def all_frameworks(self) -> Tuple[str, ...]:
        """Required frameworks followed by scan-only ones, without duplicates."""
        extra = tuple(f for f in self.scan_frameworks if f not in self.required_frameworks)
        return self.required_frameworks + extra

    @property
    def paths(self) -> KubescapePaths:
        return KubescapePaths(self.base_directory, self.frameworks_directory)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InstallConfig":
        """Create from a mapping using either camelCase or snake_case keys.

        Unknown keys are ignored with a warning.
        """
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            field_name = _KEY_ALIASES.get(key)
            if field_name is None:
                suggestions = get_close_matches(key, list(_KEY_ALIASES), n=1)
                hint = f" (did you mean '{suggestions[0]}'?)" if suggestions else ""
                LOGGER.warning(f"Ignoring unknown config key '{key}'{hint}")
                continue
            if value is None:
                continue
            kwargs[field_name] = value
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the host-facing camelCase form."""
        return {
            "version": self.version,
            "baseDirectory": str(self.base_directory),
            "frameworksDirectory": str(self.frameworks_directory),
            "requiredFrameworks": list(self.required_frameworks),
            "scanFrameworks": list(self.scan_frameworks),
        }
