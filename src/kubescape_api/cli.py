from __future__ import annotations

import argparse
import json
import sys
from concurrent.futures import ThreadPoolExecutor
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional

from kubescape_api.api import KubescapeApi
from kubescape_api.bootstrap.installer import ArtifactInstaller
from kubescape_api.bootstrap.source import ReleaseSource
from kubescape_api.bootstrap.validation import ToolStatus, validate_binary
from kubescape_api.config.loader import load_config
from kubescape_api.config.models import InstallConfig
from kubescape_api.core.cancellation import CancellationToken
from kubescape_api.core.logging import configure_logging, get_logger
from kubescape_api.errors import CancelledError, ConfigError, KubescapeError
from kubescape_api.ui import LoggingUi

LOGGER = get_logger(__name__)

EXIT_SUCCESS = 0
EXIT_SCAN_FAILURE = 1
EXIT_SETUP_FAILURE = 2
EXIT_INVALID_USAGE = 3
EXIT_INTERRUPTED = 130


def _get_version() -> str:
    try:
        return version("kubescape-api")
    except PackageNotFoundError:
        # Fallback for editable installs that have not yet built metadata.
        from kubescape_api import __version__

        return __version__


def _add_install_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to a kubescape.yml config file.",
    )
    parser.add_argument(
        "--kubescape-version",
        dest="kubescape_version",
        help="Kubescape release to install ('latest' or a tag such as v2.3.1).",
    )
    parser.add_argument(
        "--base-dir",
        dest="base_directory",
        help="Directory for the kubescape binary.",
    )
    parser.add_argument(
        "--frameworks-dir",
        dest="frameworks_directory",
        help="Directory for framework bundles.",
    )
    parser.add_argument(
        "--framework",
        dest="required_frameworks",
        action="append",
        help="Framework that must be installed (repeatable).",
    )
    parser.add_argument(
        "--scan-framework",
        dest="scan_frameworks",
        action="append",
        help="Framework evaluated by scans (repeatable).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kubescape-api",
        description="Install kubescape and scan Kubernetes manifests with it.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show kubescape-api version and exit.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (info-level) logging.",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Reduce logging output to errors only.",
    )

    subparsers = parser.add_subparsers(dest="command")

    setup_parser = subparsers.add_parser(
        "setup",
        help="Install or update kubescape and its frameworks.",
    )
    _add_install_options(setup_parser)

    scan_parser = subparsers.add_parser(
        "scan",
        help="Scan a YAML manifest and print the results as JSON.",
    )
    scan_parser.add_argument("file", type=Path, help="Manifest to scan.")
    scan_parser.add_argument(
        "--kubeconfig",
        help="Kubeconfig file exported to kubescape as KUBECONFIG.",
    )
    _add_install_options(scan_parser)

    status_parser = subparsers.add_parser(
        "status",
        help="Show the installed kubescape version and frameworks.",
    )
    _add_install_options(status_parser)

    return parser


def _config_from_args(args: argparse.Namespace) -> InstallConfig:
    overrides: Dict[str, Any] = {
        "version": args.kubescape_version,
        "baseDirectory": args.base_directory,
        "frameworksDirectory": args.frameworks_directory,
        "requiredFrameworks": args.required_frameworks,
        "scanFrameworks": args.scan_frameworks,
    }
    return load_config(config_path=args.config, overrides=overrides)


def _run_cancellable(work: Callable[[CancellationToken], Any]) -> Any:
    """Run ``work`` on a worker thread so Ctrl-C can cancel it."""
    cancel = CancellationToken()
    with ThreadPoolExecutor(max_workers=1) as executor:
        future = executor.submit(work, cancel)
        try:
            return future.result()
        except KeyboardInterrupt:
            cancel.cancel()
            future.exception()
            raise CancelledError("Interrupted")


def _handle_setup(api: KubescapeApi, config: InstallConfig) -> int:
    ui = LoggingUi()
    if not _run_cancellable(lambda cancel: api.setup(ui, config, cancel)):
        return EXIT_SETUP_FAILURE
    print(f"kubescape {api.version} installed at {api.path}")
    print(f"Frameworks: {', '.join(sorted(api.frameworks_names))}")
    if not api.is_latest_version:
        print("A newer kubescape release is available.")
    return EXIT_SUCCESS


def _handle_scan(api: KubescapeApi, config: InstallConfig, args: argparse.Namespace) -> int:
    if not args.file.is_file():
        print(f"File not found: {args.file}", file=sys.stderr)
        return EXIT_INVALID_USAGE

    ui = LoggingUi()

    def work(cancel: CancellationToken):
        if not api.setup(ui, config, cancel):
            return None
        return api.scan_yaml(ui, args.file, cancel, args.kubeconfig)

    try:
        results = _run_cancellable(work)
    except CancelledError:
        raise
    except KubescapeError as e:
        LOGGER.error(f"Scan failed: {e}")
        print(f"Scan failed: {e}", file=sys.stderr)
        return EXIT_SCAN_FAILURE

    if results is None:
        return EXIT_SETUP_FAILURE

    print(json.dumps([result.to_dict() for result in results], indent=2))
    return EXIT_SUCCESS


def _handle_status(api: KubescapeApi, config: InstallConfig) -> int:
    platform_info = api.platform_info
    paths = config.paths
    binary = paths.binary_path(platform_info)
    installer = ArtifactInstaller(ReleaseSource(platform_info), platform_info)

    print(f"kubescape-api version: {_get_version()}")
    print(f"Platform: {platform_info.name}")
    print(f"Binary: {binary}")

    status = validate_binary(binary)
    if status == ToolStatus.PRESENT:
        installed = installer.installed_version(paths) or "unknown version"
        print(f"kubescape: {installed}")
    elif status == ToolStatus.MISSING:
        print("kubescape: not installed (run 'kubescape-api setup')")
    else:
        print("kubescape: not executable")

    present = paths.present_frameworks()
    for name in config.all_frameworks:
        marker = "installed" if name in present else "missing"
        print(f"  {name}: {marker}")
    return EXIT_SUCCESS


def main(argv: Optional[Iterable[str]] = None) -> int:
    """CLI entrypoint.

    Returns an exit code suitable for use as a console script.
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    # Configure logging as early as possible.
    configure_logging(debug=args.debug, verbose=args.verbose, quiet=args.quiet)

    if args.version:
        print(_get_version())
        return EXIT_SUCCESS

    if args.command is None:
        parser.print_help()
        return EXIT_INVALID_USAGE

    try:
        config = _config_from_args(args)
    except ConfigError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return EXIT_INVALID_USAGE

    api = KubescapeApi()

    try:
        if args.command == "setup":
            return _handle_setup(api, config)
        if args.command == "scan":
            return _handle_scan(api, config, args)
        return _handle_status(api, config)
    except CancelledError:
        print("Interrupted", file=sys.stderr)
        return EXIT_INTERRUPTED
    except KubescapeError as e:
        print(f"kubescape is unavailable: {e}", file=sys.stderr)
        return EXIT_SETUP_FAILURE


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    raise SystemExit(main())
