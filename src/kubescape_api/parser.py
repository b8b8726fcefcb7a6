"""Parse kubescape JSON scan output into ScanResult objects.

With ``--format-version v1`` the scanner prints a JSON array with one object
per evaluated framework. Newer releases print a single report object whose
``summaryDetails.frameworks`` list holds the same per-framework objects.
Only the ``name`` key is required; everything else is kept as-is so newer
kubescape releases with extra fields still parse.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from kubescape_api.core.logging import get_logger
from kubescape_api.core.models import ScanResult
from kubescape_api.errors import ParseError

LOGGER = get_logger(__name__)

# Keys that may hold per-control findings, in lookup order
_FINDINGS_KEYS = ("controlReports", "controls", "results")

# Summary keys that may hold counts, in lookup order
_SUMMARY_KEYS = ("summaryDetails", "summary", "ResourceCounters", "resourceCounters")

_COUNT_ALIASES = {
    "passed": ("passed", "passedResources", "PassedResources"),
    "failed": ("failed", "failedResources", "FailedResources"),
    "skipped": ("skipped", "skippedResources", "SkippedResources"),
}


def parse_scan_output(stdout: str) -> List[ScanResult]:
    """Parse the scanner's stdout.

    Args:
        stdout: Raw JSON output of ``kubescape scan ... --format json``.

    Returns:
        One ScanResult per framework, in output order. May be empty.

    Raises:
        ParseError: If the output is blank, not JSON, or holds no list of
            framework objects that each carry a name.
    """
    if not stdout or not stdout.strip():
        raise ParseError("kubescape produced no output")

    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise ParseError(f"Failed to parse kubescape JSON: {e}") from e

    entries = _framework_entries(data)

    results: List[ScanResult] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ParseError(f"Framework result #{index} is not an object")
        name = entry.get("name")
        if not isinstance(name, str) or not name:
            raise ParseError(f"Framework result #{index} has no name")
        results.append(_to_scan_result(name, entry))

    if not results:
        LOGGER.debug("kubescape evaluated no frameworks")
    else:
        LOGGER.debug(f"Parsed results for {len(results)} framework(s)")
    return results


def _framework_entries(data: Any) -> List[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        summary = data.get("summaryDetails")
        frameworks = summary.get("frameworks") if isinstance(summary, dict) else None
        if isinstance(frameworks, list):
            return frameworks
    raise ParseError(
        "Expected a JSON array of framework results or a report with "
        f"summaryDetails.frameworks, got {type(data).__name__}"
    )


def _to_scan_result(name: str, entry: Dict[str, Any]) -> ScanResult:
    findings = _extract_findings(entry)
    passed, failed, skipped = _extract_counts(entry, findings)
    return ScanResult(
        name=name,
        findings=findings,
        passed=passed,
        failed=failed,
        skipped=skipped,
        raw=entry,
    )


def _extract_findings(entry: Mapping[str, Any]) -> Tuple[Mapping[str, Any], ...]:
    for key in _FINDINGS_KEYS:
        value = entry.get(key)
        if isinstance(value, list):
            return tuple(item for item in value if isinstance(item, Mapping))
        if isinstance(value, Mapping):
            # Keyed by control ID
            return tuple(
                {"controlID": control_id, **item} if "controlID" not in item else item
                for control_id, item in value.items()
                if isinstance(item, Mapping)
            )
    return ()


def _count(source: Mapping[str, Any], field: str) -> Optional[int]:
    for alias in _COUNT_ALIASES[field]:
        value = source.get(alias)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def _extract_counts(
    entry: Mapping[str, Any], findings: Tuple[Mapping[str, Any], ...]
) -> Tuple[Optional[int], Optional[int], Optional[int]]:
    sources = [entry]
    for key in _SUMMARY_KEYS:
        summary = entry.get(key)
        if isinstance(summary, Mapping):
            sources.insert(0, summary)

    counts = {}
    for field in _COUNT_ALIASES:
        counts[field] = next(
            (value for value in (_count(s, field) for s in sources) if value is not None),
            None,
        )

    if all(value is None for value in counts.values()):
        statuses = [_status_of(finding) for finding in findings]
        if any(status is not None for status in statuses):
            counts = {
                field: sum(1 for status in statuses if status == field)
                for field in _COUNT_ALIASES
            }

    return counts["passed"], counts["failed"], counts["skipped"]


def _status_of(finding: Mapping[str, Any]) -> Optional[str]:
    status = finding.get("status")
    if status is None:
        status = finding.get("statusInfo")
    if isinstance(status, Mapping):
        status = status.get("status")
    if not isinstance(status, str):
        return None
    status = status.lower()
    if status in ("passed", "failed", "skipped"):
        return status
    return None


def framework_names(results: Iterable[ScanResult]) -> Set[str]:
    """Lower-cased names of all frameworks in ``results``."""
    return {result.name.lower() for result in results}


def find_result(results: Iterable[ScanResult], name: str) -> Optional[ScanResult]:
    """Case-insensitive lookup of a framework's result."""
    for result in results:
        if result.matches(name):
            return result
    return None
