"""Validates that the installed kubescape binary is usable."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path

from kubescape_api.core.logging import get_logger

LOGGER = get_logger(__name__)


class ToolStatus(str, Enum):
    """Status of a tool binary."""

    PRESENT = "present"
    MISSING = "missing"
    NOT_EXECUTABLE = "not_executable"


def validate_binary(path: Path) -> ToolStatus:
    """Validate a single tool binary.

    Args:
        path: Path to the tool binary.

    Returns:
        ToolStatus indicating whether the tool is present and executable.
    """
    if not path.is_file():
        return ToolStatus.MISSING

    if not os.access(path, os.X_OK):
        LOGGER.debug(f"{path} exists but is not executable")
        return ToolStatus.NOT_EXECUTABLE

    return ToolStatus.PRESENT
