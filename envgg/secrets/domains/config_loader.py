"""Configuration loader for envgg."""
import copy
import os
import logging
from pathlib import Path
from typing import Dict, Any, Tuple
import yaml

from .errors import EnvggError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ENVGG_CONFIG"

DEFAULT_SERVICE = "envgg"
DEFAULT_MAX_CONCURRENT_LOOKUPS = 8
BACKENDS = ("auto", "secret-service", "macos", "windows", "memory")

DEFAULT_CONFIG: Dict[str, Any] = {
    "keyring": {
        "service": DEFAULT_SERVICE,
        "backend": "auto",
    },
    "resolution": {
        "max_concurrent_lookups": DEFAULT_MAX_CONCURRENT_LOOKUPS,
    },
}


class ConfigError(EnvggError):
    """Configuration error exception."""
    pass


def default_config_path() -> Path:
    return Path.home() / ".config" / "envgg" / "config.yml"


def get_config_path() -> Tuple[Path, str]:
    """
    Get config file path.

    Priority order:
    1. ENVGG_CONFIG environment variable
    2. Default location: ~/.config/envgg/config.yml

    Returns:
        Tuple of (path, source) where source is "env" or "default".
        The file may not exist.
    """
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser(), "env"
    return default_config_path(), "default"


def _validate(config: Dict[str, Any], config_path: Path) -> None:
    keyring_cfg = config["keyring"]
    resolution_cfg = config["resolution"]

    service = keyring_cfg.get("service")
    if not isinstance(service, str) or not service.strip():
        raise ConfigError(f"'keyring.service' must be a non-empty string in config at {config_path}")

    backend = keyring_cfg.get("backend")
    if backend not in BACKENDS:
        raise ConfigError(
            f"Unsupported keyring backend: {backend}\n"
            f"Supported backends: {', '.join(BACKENDS)}"
        )

    workers = resolution_cfg.get("max_concurrent_lookups")
    if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
        raise ConfigError(
            f"'resolution.max_concurrent_lookups' must be a positive integer in config at {config_path}"
        )


def load_config() -> Dict[str, Any]:
    """
    Load and validate configuration from YAML file.

    The config file is optional; built-in defaults are used for anything
    it does not set. The path is resolved on every call.

    Returns:
        Dict containing configuration with keys:
        - keyring: dict with service and backend
        - resolution: dict with max_concurrent_lookups

    Raises:
        ConfigError: If the config file is unreadable, not valid YAML, or has invalid values
    """
    config_path, source = get_config_path()
    config = copy.deepcopy(DEFAULT_CONFIG)

    if not config_path.exists():
        if source == "env":
            raise ConfigError(
                f"Configuration file not found at: {config_path}\n"
                f"Unset {CONFIG_ENV_VAR} or point it to an existing file."
            )
        logger.debug(f"No config file at {config_path}, using defaults")
        return config

    try:
        with open(config_path, 'r', encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML config at {config_path}: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read config file at {config_path}: {e}")

    if loaded is None:
        logger.debug(f"Config file at {config_path} is empty, using defaults")
        return config

    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file at {config_path} must contain a mapping")

    for section in ("keyring", "resolution"):
        values = loaded.get(section)
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ConfigError(f"'{section}' section in config at {config_path} must be a mapping")
        config[section].update(values)

    _validate(config, config_path)

    logger.info(f"Configuration loaded successfully from {config_path}")
    logger.debug(f"Using keyring service: {config['keyring']['service']}")
    logger.debug(f"Using keyring backend: {config['keyring']['backend']}")

    return config
