"""Configuration management for electrolux2mqtt."""

import copy
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from electrolux_api.config import DEFAULT_REFRESH_INTERVAL, DEFAULT_TOKEN_FILENAME

DEFAULT_CONFIG = {
    "mqtt": {
        "host": "localhost",
        "port": 1883,
        "username": None,
        "password": None,
        "client_id": "electrolux2mqtt",
        "topic_prefix": "electrolux2mqtt",
        "retain": False,
        "qos": 0,
        "discovery_prefix": "homeassistant",
    },
    "electrolux": {
        "api_key": None,  # Required
        "username": None,  # Required
        "password": None,  # Required
        "country_code": None,  # Required, e.g. "FI"
        "refresh_interval": DEFAULT_REFRESH_INTERVAL,
        "device_refresh_interval": 3600,
        "token_file": DEFAULT_TOKEN_FILENAME,
    },
    "home_assistant": {
        "auto_discovery": True,
    },
    "logging": {
        "level": "INFO",
        "show_changes": False,
        "ignored_keys": [],
    },
}

INT_KEYS = ("port", "qos", "refresh_interval", "device_refresh_interval")


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Optional[str] = None) -> dict:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, searches default locations.

    Returns:
        Merged configuration dict
    """
    # Search paths in order
    search_paths = []
    if config_path:
        search_paths.append(Path(config_path))
    search_paths.extend([
        Path("config.yaml"),
        Path("config.yml"),
        Path("/app/config.yaml"),
        Path.home() / ".config" / "electrolux2mqtt" / "config.yaml",
        Path("/etc/electrolux2mqtt/config.yaml"),
    ])

    config = copy.deepcopy(DEFAULT_CONFIG)

    for path in search_paths:
        if path.exists():
            with open(path) as f:
                user_config = yaml.safe_load(f) or {}
            config = deep_merge(config, user_config)
            config["_config_path"] = str(path)
            break

    # Environment variable overrides
    env_mappings = {
        "MQTT_HOST": ("mqtt", "host"),
        "MQTT_PORT": ("mqtt", "port"),
        "MQTT_USERNAME": ("mqtt", "username"),
        "MQTT_PASSWORD": ("mqtt", "password"),
        "ELECTROLUX_API_KEY": ("electrolux", "api_key"),
        "ELECTROLUX_USERNAME": ("electrolux", "username"),
        "ELECTROLUX_PASSWORD": ("electrolux", "password"),
        "ELECTROLUX_COUNTRY_CODE": ("electrolux", "country_code"),
        "REFRESH_INTERVAL": ("electrolux", "refresh_interval"),
        "LOG_LEVEL": ("logging", "level"),
    }

    for env_var, (section, key) in env_mappings.items():
        value: Any = os.environ.get(env_var)
        if value is not None:
            if key in INT_KEYS:
                value = int(value)
            config[section][key] = value

    return config


def validate_config(config: dict) -> list[str]:
    """Validate configuration and return list of errors."""
    errors = []

    electrolux = config.get("electrolux", {})
    for key in ("api_key", "username", "password", "country_code"):
        if not electrolux.get(key):
            errors.append(f"electrolux.{key} is required")

    refresh_interval = electrolux.get("refresh_interval")
    if not isinstance(refresh_interval, (int, float)) or refresh_interval <= 0:
        errors.append("electrolux.refresh_interval must be a positive number of seconds")

    if not config.get("mqtt", {}).get("host"):
        errors.append("mqtt.host is required")

    if config.get("mqtt", {}).get("qos") not in (0, 1, 2):
        errors.append("mqtt.qos must be 0, 1 or 2")

    ignored_keys = config.get("logging", {}).get("ignored_keys")
    if ignored_keys is not None and not isinstance(ignored_keys, list):
        errors.append("logging.ignored_keys must be a list of dotted paths")

    return errors
