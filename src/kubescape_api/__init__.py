"""Install, update and run the Kubescape scanner binary.

Typical use from a host application::

    from kubescape_api import InstallConfig, LoggingUi, get_instance

    api = get_instance()
    if api.setup(LoggingUi(), InstallConfig.from_dict(settings)):
        results = api.scan_yaml(LoggingUi(), "deployment.yaml")
"""

from kubescape_api.api import KubescapeApi, get_instance
from kubescape_api.config.models import InstallConfig
from kubescape_api.core.cancellation import CancellationToken
from kubescape_api.core.models import InstalledState, ScanResult
from kubescape_api.errors import (
    CancelledError,
    ConfigError,
    ExecutionError,
    InstallError,
    KubescapeError,
    NotInstalledError,
    ParseError,
    ResolutionError,
)
from kubescape_api.ui import KubescapeUi, LoggingUi

__version__ = "0.1.0"

__all__ = [
    "KubescapeApi",
    "get_instance",
    "InstallConfig",
    "CancellationToken",
    "InstalledState",
    "ScanResult",
    "KubescapeError",
    "ResolutionError",
    "InstallError",
    "NotInstalledError",
    "ExecutionError",
    "CancelledError",
    "ConfigError",
    "ParseError",
    "KubescapeUi",
    "LoggingUi",
    "__version__",
]
