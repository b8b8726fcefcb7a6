"""Configuration file loading.

Handles loading the install configuration from YAML files with:
- Project config (kubescape.yml in the working directory)
- Global config ($KUBESCAPE_API_HOME/config.yml)
- Environment variable expansion (${VAR})
- Overrides from the command line
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from kubescape_api.bootstrap.paths import get_kubescape_api_home
from kubescape_api.config.models import InstallConfig
from kubescape_api.core.logging import get_logger
from kubescape_api.errors import ConfigError

LOGGER = get_logger(__name__)

# Config file names
PROJECT_CONFIG_NAMES = ["kubescape.yml", "kubescape.yaml", ".kubescape.yml", ".kubescape.yaml"]
GLOBAL_CONFIG_NAME = "config.yml"

# Environment variable pattern: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

__all__ = [
    "ConfigError",
    "load_config",
    "find_project_config",
    "find_global_config",
    "load_yaml_file",
    "expand_env_vars",
]


def load_config(
    project_root: Optional[Path] = None,
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> InstallConfig:
    """Load the install configuration with proper precedence.

    Precedence (highest to lowest):
    1. overrides
    2. config_path OR project config (kubescape.yml)
    3. Global config ($KUBESCAPE_API_HOME/config.yml)
    4. Built-in defaults

    Raises:
        ConfigError: If an explicit config file is missing, unparseable or invalid.
    """
    sources: List[str] = []
    merged: Dict[str, Any] = {}

    global_path = find_global_config()
    if global_path is not None:
        try:
            merged.update(load_yaml_file(global_path))
            sources.append(f"global:{global_path}")
        except (ConfigError, yaml.YAMLError) as e:
            LOGGER.warning(f"Failed to load global config: {e}")

    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        merged.update(_load_or_raise(config_path))
        sources.append(f"custom:{config_path}")
    else:
        project_path = find_project_config(project_root or Path.cwd())
        if project_path is not None:
            merged.update(_load_or_raise(project_path))
            sources.append(f"project:{project_path}")

    if overrides:
        merged.update({k: v for k, v in overrides.items() if v is not None})
        sources.append("cli")

    LOGGER.debug(f"Config loaded from sources: {sources}")
    return InstallConfig.from_dict(merged)


def _load_or_raise(path: Path) -> Dict[str, Any]:
    try:
        return load_yaml_file(path)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e


def find_project_config(project_root: Path) -> Optional[Path]:
    """Return the first kubescape config file found in ``project_root``."""
    for name in PROJECT_CONFIG_NAMES:
        candidate = project_root / name
        if candidate.is_file():
            return candidate
    return None


def find_global_config() -> Optional[Path]:
    """Return $KUBESCAPE_API_HOME/config.yml if it exists."""
    candidate = get_kubescape_api_home() / GLOBAL_CONFIG_NAME
    if candidate.is_file():
        return candidate
    return None


def load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML config file, expanding environment variables.

    Raises:
        yaml.YAMLError: If YAML parsing fails.
        ConfigError: If the document is not a mapping.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a YAML mapping, got {type(data).__name__}")

    return expand_env_vars(data)


def expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR} and ${VAR:-default} in string values."""
    if isinstance(data, dict):
        return {k: expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        return ENV_VAR_PATTERN.sub(_env_var_replacer, data)
    else:
        return data


def _env_var_replacer(match: re.Match) -> str:
    var_name = match.group(1)
    default_value = match.group(2)

    value = os.environ.get(var_name)
    if value is not None:
        return value
    if default_value is not None:
        return default_value

    LOGGER.warning(f"Environment variable ${var_name} is not set and has no default")
    return ""
