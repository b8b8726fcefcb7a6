"""Configuration for kubescape_api."""

from kubescape_api.config.loader import load_config
from kubescape_api.config.models import InstallConfig

__all__ = ["InstallConfig", "load_config"]
