#!/usr/bin/env python3

import os
import json
import tomllib
from pathlib import Path

import logging
import sys

from .exit_codes import ConfigError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr) # Default to stderr
    ]
)
logger = logging.getLogger("bbsync")

CONFIG_FILENAMES = ['config.json', 'config.toml', 'config.yaml', 'config.yml']


def get_config_path():
    """Get the path to the configuration file.

    Checks in order:
    1. BBSYNC_CONFIG environment variable
    2. ~/.bbsync/ directory
    """
    if 'BBSYNC_CONFIG' in os.environ:
        path = Path(os.environ['BBSYNC_CONFIG'])
        if path.exists():
            return path

    bbsync_dir = Path.home() / '.bbsync'
    for filename in CONFIG_FILENAMES:
        path = bbsync_dir / filename
        if path.exists() and path.stat().st_size > 0:
            return path

    # If no file exists, return default path
    return bbsync_dir / 'config.json'


def get_default_config():
    """Get default configuration."""
    return {
        "bitbucket": {
            "page_limit": 1000,
            "timeout_seconds": 30,
            "token_env_var": "BITBUCKET_ACCESS_TOKEN",
        },
        "git": {
            "executable": "git",
            "remote": "origin",
            "timeout_seconds": 0,  # 0 = wait for the command however long it takes
        },
        "transport": {
            "clone_link_label": "ssh",
        },
        "sync": {
            "fail_on_error": False,
        },
        "logging": {
            "level": "INFO",
            "format": "%(levelname)s: %(message)s",
        },
    }


def _read_config_file(config_path):
    suffix = config_path.suffix.lower()
    if suffix == '.toml':
        with open(config_path, 'rb') as f:
            return tomllib.load(f)
    if suffix in ['.yaml', '.yml']:
        import yaml
        with open(config_path, 'r') as f:
            return yaml.safe_load(f) or {}
    with open(config_path, 'r') as f:
        return json.load(f)


def load_config():
    """Load configuration from file.

    Defaults are overlaid with the config file (if any), then with
    BBSYNC_* environment variables.

    Raises:
        ConfigError: if the config file exists but cannot be parsed
    """
    config_path = get_config_path()

    # Start with default config
    config = get_default_config()

    if config_path.exists():
        try:
            file_config = _read_config_file(config_path)
        except Exception as e:
            raise ConfigError(f"Error loading config from {config_path}: {e}") from e

        if not isinstance(file_config, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")

        logger.debug(f"Loaded config from {config_path}")
        config = merge_configs(config, file_config)

    return apply_env_overrides(config)


def configure_logging(config):
    """Apply the logging section of the config to the bbsync loggers."""
    log_config = config.get("logging", {})
    level = str(log_config.get("level", "INFO")).upper()
    fmt = log_config.get("format", "%(levelname)s: %(message)s")

    try:
        logger.setLevel(level)
    except ValueError as e:
        raise ConfigError(f"Invalid logging level {level!r}") from e

    for handler in logging.getLogger().handlers:
        handler.setFormatter(logging.Formatter(fmt))


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: BBSYNC_SECTION_KEY
    For example: BBSYNC_TRANSPORT_CLONE_LINK_LABEL=http
    """
    env_prefix = "BBSYNC_"

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix):
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        # Convert value
        if value.lower() in ('true', 'yes', 'on'):
            typed_value = True
        elif value.lower() in ('false', 'no', 'off'):
            typed_value = False
        elif value.isdigit():
            typed_value = int(value)
        else:
            typed_value = value

        current_level = config
        i = 0
        while i < len(key_parts):
            # Find the longest key in current_level that is a prefix of the remaining key_parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts = config_key.split('_')
                if key_parts[i : i + len(config_key_parts)] == config_key_parts:
                    if len(config_key_parts) > best_match_len:
                        best_match_len = len(config_key_parts)
                        matched_key = config_key

            if matched_key is None:
                break

            if i + best_match_len == len(key_parts):
                current_level[matched_key] = typed_value
                break

            if isinstance(current_level[matched_key], dict):
                current_level = current_level[matched_key]
                i += best_match_len
            else:
                # Path conflict: env var is longer than the config path
                break

    return config


def get_timeout(config, section, default=None):
    """
    Read ``<section>.timeout_seconds`` as a number of seconds.

    Env overrides arrive as strings when they are not whole numbers
    (e.g. BBSYNC_GIT_TIMEOUT_SECONDS=0.5), so the value is coerced here.
    Zero or an unset value returns ``default``.

    Raises:
        ConfigError: if the value is not a non-negative number
    """
    value = config.get(section, {}).get('timeout_seconds')
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"{section}.timeout_seconds must be a number, got {value!r}")
    try:
        seconds = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{section}.timeout_seconds must be a number, got {value!r}") from e
    if seconds < 0:
        raise ConfigError(f"{section}.timeout_seconds must not be negative, got {value!r}")
    return seconds or default
