"""
Bootstrap module for kubescape binary management.

This module handles:
- Platform detection (OS + architecture)
- Install directory layout
- Version resolution against the latest release
- Downloading and replacing the binary and framework bundles
"""

from kubescape_api.bootstrap.platform import get_platform_info, PlatformInfo
from kubescape_api.bootstrap.paths import get_kubescape_api_home, KubescapePaths
from kubescape_api.bootstrap.validation import validate_binary, ToolStatus

__all__ = [
    "get_platform_info",
    "PlatformInfo",
    "get_kubescape_api_home",
    "KubescapePaths",
    "validate_binary",
    "ToolStatus",
]
