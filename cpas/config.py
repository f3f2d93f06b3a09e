"""
Configuration management for the Construction Pay Application System.

This module provides functions for loading and managing configuration
settings. Defaults are overridden, in order, by configuration files found in
standard locations and by ``CPAS_``-prefixed environment variables.
"""

import copy
import json
import logging
import logging.handlers
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)

# Default configuration
_DEFAULT_CONFIG = {
    "billing": {
        "default_retainage_rate_work": 0.10,
        "default_retainage_rate_stored": 0.10,
        "default_billing_day": 25,
        "retainage_reconciliation_per_line": 0.01
    },
    "reporting": {
        "default_format": "markdown",
        "templates_dir": None,
        "company_name": None
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        "file": None,
        "max_size": 10485760,  # 10 MB
        "backup_count": 5
    }
}

# Global configuration dictionary
_CONFIG = None


class ConfigError(Exception):
    """Exception raised for configuration errors."""
    pass


def load_config_file(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Load configuration from a JSON or YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Configuration dictionary

    Raises:
        ConfigError: If the file is missing, unreadable or not a mapping
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, 'r') as f:
            if path.suffix.lower() in ('.yml', '.yaml'):
                data = yaml.safe_load(f)
            elif path.suffix.lower() == '.json':
                data = json.load(f)
            else:
                raise ConfigError(f"Unsupported config file format: {path.suffix}")
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Error loading configuration from {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration in {path} must be a mapping")
    return data


def _config_paths():
    return [
        os.path.join(os.getcwd(), "cpas.json"),
        os.path.join(os.getcwd(), "cpas.yaml"),
        os.path.join(str(Path.home()), ".cpas", "config.json"),
        os.environ.get("CPAS_CONFIG", "")
    ]


def get_config() -> Dict[str, Any]:
    """Get the current configuration.

    Returns:
        Configuration dictionary
    """
    global _CONFIG

    if _CONFIG is None:
        config = copy.deepcopy(_DEFAULT_CONFIG)

        # Override with configuration from files
        for path in _config_paths():
            if path and os.path.exists(path):
                try:
                    _merge_configs(config, load_config_file(path))
                except ConfigError as e:
                    logger.warning(f"Ignoring configuration file: {e}")

        # Override with environment variables
        _apply_env_overrides(config)
        _CONFIG = config

    return _CONFIG


def get_section(name: str) -> Dict[str, Any]:
    """Get one section of the configuration (empty if absent)."""
    return get_config().get(name) or {}


def _merge_configs(base_config: Dict[str, Any], override_config: Dict[str, Any]) -> None:
    """Merge override configuration into base configuration.

    Args:
        base_config: Base configuration dictionary
        override_config: Override configuration dictionary
    """
    for key, value in override_config.items():
        if key in base_config and isinstance(base_config[key], dict) and isinstance(value, dict):
            _merge_configs(base_config[key], value)
        else:
            base_config[key] = value


def parse_config_value(value: str) -> Any:
    """Parse an environment variable value into bool, None, int, float or str."""
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered in ("none", "null"):
        return None

    try:
        if '.' in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def _apply_env_overrides(config: Dict[str, Any], prefix: str = "CPAS_") -> None:
    """Apply environment variable overrides to configuration.

    ``CPAS_BILLING__DEFAULT_BILLING_DAY=15`` sets ``config["billing"]["default_billing_day"]``.

    Args:
        config: Configuration dictionary
        prefix: Environment variable prefix
    """
    for env_var, env_value in os.environ.items():
        if not env_var.startswith(prefix) or env_var == "CPAS_CONFIG":
            continue

        keys = env_var[len(prefix):].lower().split("__")

        # Navigate to the correct nested dictionary
        current = config
        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = parse_config_value(env_value)


def set_config(new_config: Dict[str, Any]) -> None:
    """Set a new configuration on top of the defaults.

    Args:
        new_config: New configuration dictionary
    """
    global _CONFIG
    _CONFIG = copy.deepcopy(_DEFAULT_CONFIG)
    _merge_configs(_CONFIG, new_config)


def reset_config() -> None:
    """Reset configuration to default."""
    global _CONFIG
    _CONFIG = None


def configure_logging(config: Optional[Dict[str, Any]] = None, verbose: bool = False) -> None:
    """Configure root logging from the ``logging`` section.

    Args:
        config: Logging configuration (defaults to the global configuration)
        verbose: Force DEBUG level
    """
    if config is None:
        config = get_section("logging")

    level_name = "DEBUG" if verbose else str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    log_format = config.get("format") or _DEFAULT_CONFIG["logging"]["format"]

    handlers = [logging.StreamHandler()]
    log_file = config.get("file")
    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=int(config.get("max_size", 10485760)),
            backupCount=int(config.get("backup_count", 5))
        ))

    logging.basicConfig(level=level, format=log_format, handlers=handlers, force=True)
