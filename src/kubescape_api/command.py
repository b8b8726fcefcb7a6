"""Builds kubescape command lines.

Commands are single shell strings because the credential form relies on
shell syntax (an inline ``KUBECONFIG=`` assignment on POSIX, ``set ... &`` on
Windows). Only the binary path is quoted; arguments and the kubeconfig path
are passed through untouched and must come from a trusted caller.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Optional, Union

from kubescape_api.bootstrap.platform import get_platform_info

PathLike = Union[str, Path]

# kubescape 2.x prints one JSON object per framework with this format version
FORMAT_VERSION_V1 = "v1"


def _quote(value: PathLike) -> str:
    return f'"{value}"'


def build_command(
    binary_path: PathLike,
    args: str,
    kubeconfig_path: Optional[PathLike] = None,
    platform: Optional[Any] = None,
) -> str:
    """Build the full command string for one kubescape invocation.

    Args:
        binary_path: Path to the kubescape binary.
        args: Subcommand and arguments, e.g. ``scan framework nsa ...``.
        kubeconfig_path: Optional kubeconfig file exported as KUBECONFIG.
        platform: Object with an ``is_windows`` attribute; defaults to the
            host platform.

    Returns:
        ``"<binary>" <args>``, prefixed with the KUBECONFIG assignment in the
        syntax of the target shell when a kubeconfig is given.
    """
    command = f"{_quote(binary_path)} {args}"
    if not kubeconfig_path:
        return command

    if platform is None:
        platform = get_platform_info()

    if platform.is_windows:
        return f'set "KUBECONFIG={kubeconfig_path}" & {command}'
    return f"KUBECONFIG={_quote(kubeconfig_path)} {command}"


def version_args() -> str:
    return "version"


def download_framework_args(name: str, output: PathLike) -> str:
    return f"download framework {name} --output {_quote(output)}"


def scan_args(
    file_path: PathLike,
    frameworks: Iterable[str],
    frameworks_directory: Optional[PathLike] = None,
    format_version: Optional[str] = FORMAT_VERSION_V1,
) -> str:
    """Arguments for scanning one manifest against the given frameworks.

    When ``frameworks_directory`` is given, each framework is loaded from its
    local bundle with ``--use-from`` so the scan works offline.
    ``format_version`` selects the JSON layout; pass None for releases that
    no longer accept ``--format-version``.
    """
    names = [name.lower() for name in frameworks]
    parts = ["scan", "framework", ",".join(names), _quote(file_path)]
    if frameworks_directory is not None:
        for name in names:
            parts.extend(["--use-from", _quote(Path(frameworks_directory) / f"{name}.json")])
    parts.extend(["--format", "json"])
    if format_version:
        parts.extend(["--format-version", format_version])
    return " ".join(parts)
