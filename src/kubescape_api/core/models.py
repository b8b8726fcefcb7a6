"""Data models shared by the installer, the facade and the parser."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple


@dataclass(frozen=True)
class InstalledState:
    """Snapshot of what is installed on disk.

    Owned by the facade and replaced wholesale after a successful setup, so
    readers never see a mix of old and new fields.
    """

    path: Optional[Path] = None
    version: str = ""
    is_latest: bool = False
    frameworks: FrozenSet[str] = frozenset()
    frameworks_directory: Optional[Path] = None

    @classmethod
    def empty(cls) -> "InstalledState":
        return cls()

    @property
    def is_installed(self) -> bool:
        return self.path is not None and bool(self.version)


@dataclass
class ScanResult:
    """Result of evaluating one framework against a manifest.

    Attributes:
        name: Framework name exactly as reported by kubescape.
        findings: Per-control entries, kept as the raw mappings.
        passed: Number of passed controls, if reported or derivable.
        failed: Number of failed controls, if reported or derivable.
        skipped: Number of skipped controls, if reported or derivable.
        raw: The complete framework object from the scanner output.
    """

    name: str
    findings: Tuple[Mapping[str, Any], ...] = ()
    passed: Optional[int] = None
    failed: Optional[int] = None
    skipped: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    def matches(self, framework: str) -> bool:
        """Case-insensitive comparison against a framework name."""
        return self.name.lower() == framework.lower()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "findings": [dict(finding) for finding in self.findings],
        }
