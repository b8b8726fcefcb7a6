from __future__ import annotations

import logging
import os
from typing import Optional

# Fallback level when no CLI flag is given
LOG_LEVEL_ENV = "KUBESCAPE_API_LOG_LEVEL"


def configure_logging(*, debug: bool = False, verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logging level based on CLI flags.

    Precedence:
    - quiet → ERROR
    - debug → DEBUG
    - verbose → INFO
    - KUBESCAPE_API_LOG_LEVEL → that level
    - default → WARNING
    """

    if quiet:
        level = logging.ERROR
    elif debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        env_level = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
        level = getattr(logging, env_level, logging.WARNING)

    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module-level logger."""

    return logging.getLogger(name if name is not None else "kubescape_api")
