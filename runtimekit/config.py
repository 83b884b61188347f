"""
Installer configuration.

Settings are resolved in three layers, later layers winning:

1. Built-in defaults (agent tool directory or ``~/.runtimekit``)
2. YAML file (``runtimekit.yaml`` in the working directory, or ``--config``)
3. Environment variables (``RUNTIMEKIT_*``)

Example ``runtimekit.yaml``::

    tool_cache_dir: /opt/hostedtoolcache
    download_timeout: 60
    emit_pipeline_commands: false
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from runtimekit.core.exceptions import ConfigurationError
from runtimekit.core.platform import default_probe_path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "runtimekit.yaml"
DEFAULT_RELEASE_INDEX_URL = (
    "https://dotnetcli.blob.core.windows.net/dotnet/release-metadata/"
    "releases-index.json"
)
DEFAULT_DOWNLOAD_BASE_URL = "https://dotnetcli.azureedge.net/dotnet"

# field name -> environment variable
ENV_OVERRIDES = {
    "tool_cache_dir": "RUNTIMEKIT_TOOL_CACHE",
    "temp_dir": "RUNTIMEKIT_TEMP_DIR",
    "probe_path": "RUNTIMEKIT_PLATFORM_PROBE",
    "release_index_url": "RUNTIMEKIT_RELEASE_INDEX_URL",
    "download_base_url": "RUNTIMEKIT_DOWNLOAD_BASE_URL",
    "download_timeout": "RUNTIMEKIT_DOWNLOAD_TIMEOUT",
    "emit_pipeline_commands": "RUNTIMEKIT_PIPELINE_COMMANDS",
}

_PATH_FIELDS = {"tool_cache_dir", "temp_dir", "probe_path"}


def get_home_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Get the platform-specific RuntimeKit home directory.

    Returns:
        Path: ``%USERPROFILE%\\.runtimekit`` on Windows, ``~/.runtimekit``
        elsewhere

    Raises:
        ConfigurationError: If USERPROFILE is not set on Windows
    """
    environ = os.environ if environ is None else environ
    if os.name == "nt":
        user_profile = environ.get("USERPROFILE")
        if not user_profile:
            raise ConfigurationError(
                "USERPROFILE environment variable is not set. "
                "Cannot determine RuntimeKit home directory."
            )
        return Path(user_profile) / ".runtimekit"
    return Path.home() / ".runtimekit"


def _default_tool_cache_dir() -> Path:
    agent_tools = os.environ.get("AGENT_TOOLSDIRECTORY")
    if agent_tools:
        return Path(agent_tools)
    return get_home_dir() / "tools"


def _default_temp_dir() -> Path:
    agent_temp = os.environ.get("AGENT_TEMPDIRECTORY")
    if agent_temp:
        return Path(agent_temp)
    return get_home_dir() / "tmp"


@dataclass
class InstallerConfig:
    """Resolved installer settings."""

    tool_cache_dir: Path = field(default_factory=_default_tool_cache_dir)
    """Root of the shared tool cache"""

    temp_dir: Path = field(default_factory=_default_temp_dir)
    """Scratch space for downloads and extraction"""

    probe_path: Path = field(default_factory=default_probe_path)
    """Platform probe executable for OS families without a fixed convention"""

    release_index_url: str = DEFAULT_RELEASE_INDEX_URL
    """Release metadata index"""

    download_base_url: str = DEFAULT_DOWNLOAD_BASE_URL
    """Base of the canonical download URLs"""

    download_timeout: int = 30
    """Per-request timeout in seconds"""

    root_variable: str = "DOTNET_ROOT"
    """Variable exported with the installed path"""

    emit_pipeline_commands: bool = True
    """Write agent logging commands for PATH and variable changes"""


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in ("0", "false", "no", "off", "")


def _coerce(name: str, value: Any) -> Any:
    """Convert a raw YAML/environment value to the field's type."""
    if name in _PATH_FIELDS:
        return Path(os.path.expanduser(str(value)))
    if name == "download_timeout":
        try:
            timeout = int(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"download_timeout must be an integer, got {value!r}",
                context={"field": name, "value": value},
                cause=e,
            ) from e
        if timeout <= 0:
            raise ConfigurationError(
                f"download_timeout must be positive, got {timeout}",
                context={"field": name, "value": value},
            )
        return timeout
    if name == "emit_pipeline_commands":
        return _parse_bool(value)
    return str(value)


def load_yaml_config(config_file: Path, required: bool = False) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Args:
        config_file: Path to YAML configuration file
        required: If True, raise error if file doesn't exist

    Returns:
        Configuration dictionary (empty dict if file doesn't exist and not required)

    Raises:
        ConfigurationError: If the file is required but missing, is not
            valid YAML, or is not a mapping
    """
    if not config_file.exists():
        if required:
            raise ConfigurationError(
                f"Configuration file not found: {config_file}",
                context={"path": str(config_file)},
            )
        logger.debug(f"Config file not found (optional): {config_file}")
        return {}

    logger.debug(f"Loading configuration from {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML in {config_file}: {e}",
            context={"path": str(config_file)},
            cause=e,
        ) from e

    config = config or {}
    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Configuration in {config_file} must be a mapping",
            context={"path": str(config_file)},
        )
    return config


def load_config(
    config_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> InstallerConfig:
    """
    Build the installer configuration.

    Args:
        config_file: Explicit YAML file (must exist). If None, an optional
            ``runtimekit.yaml`` in the working directory is used.
        environ: Environment mapping (default: os.environ)

    Returns:
        InstallerConfig

    Raises:
        ConfigurationError: If the file or an override is invalid
    """
    environ = os.environ if environ is None else environ

    if config_file is not None:
        values = load_yaml_config(Path(config_file), required=True)
    else:
        values = load_yaml_config(Path.cwd() / DEFAULT_CONFIG_FILE)

    known = {f.name for f in fields(InstallerConfig)}
    settings: Dict[str, Any] = {}

    for key, value in values.items():
        if key not in known:
            logger.debug(f"Ignoring unknown configuration key: {key}")
            continue
        settings[key] = _coerce(key, value)

    for name, variable in ENV_OVERRIDES.items():
        if variable in environ and environ[variable] != "":
            settings[name] = _coerce(name, environ[variable])

    return InstallerConfig(**settings)


__all__ = [
    "InstallerConfig",
    "load_config",
    "load_yaml_config",
    "get_home_dir",
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_RELEASE_INDEX_URL",
    "DEFAULT_DOWNLOAD_BASE_URL",
]
