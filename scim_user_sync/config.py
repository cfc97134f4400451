"""
Configuration loading and management for SCIM User Sync.

This module handles loading configuration from an optional YAML file,
environment variables and command-line overrides, with validation and
defaults.
"""

import os
import yaml
import logging
from typing import Dict, Any, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = 'config.yaml'

VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARN', 'WARNING', 'ERROR', 'CRITICAL')


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing required fields."""
    pass


class ConfigLoader:
    """Handles loading and validation of application configuration."""

    # Environment variable mappings, first variable set wins
    ENV_OVERRIDES = {
        'directory.endpoint': ('SCIM_ENDPOINT', 'endpoint'),
        'directory.token': ('SCIM_TOKEN', 'token'),
        'logging.level': ('LOG_LEVEL', 'log'),
        'source.file': ('SCIM_SYNC_FILE',),
        'source.bucket': ('SCIM_SYNC_BUCKET',),
    }

    def __init__(self, config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize config loader.

        Args:
            config_path: Path to config file. If None, uses CONFIG_PATH env var
                or 'config.yaml' when that file exists
            overrides: Dotted-key values (e.g. command-line options) applied
                after environment variables; None values are ignored
        """
        self.explicit_path = config_path or os.getenv('CONFIG_PATH')
        self.config_path = self.explicit_path or DEFAULT_CONFIG_PATH
        self.overrides = overrides or {}
        self.config = {}

    def load(self) -> Dict[str, Any]:
        """
        Load configuration from file and apply overrides.

        Returns:
            Parsed and validated configuration dictionary

        Raises:
            ConfigurationError: If an explicit config file is missing or
                validation fails
        """
        self.config = self._read_file()

        self._apply_env_overrides()

        for key_path, value in self.overrides.items():
            if value is not None:
                self._set_nested_value(self.config, key_path, value)

        self._apply_defaults()

        self._validate()

        logger.debug("Configuration loaded successfully")
        return self.config

    def _read_file(self) -> Dict[str, Any]:
        if not self.explicit_path and not os.path.exists(self.config_path):
            return {}

        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigurationError("Configuration file must contain a YAML mapping")
        return config

    def _apply_env_overrides(self):
        """Apply environment variable overrides."""
        for config_key, env_vars in self.ENV_OVERRIDES.items():
            for env_var in env_vars:
                env_value = os.getenv(env_var)
                if env_value:
                    self._set_nested_value(self.config, config_key, env_value)
                    logger.debug(f"Applied environment override for {config_key}")
                    break

    def _set_nested_value(self, config: Dict, key_path: str, value: Any):
        """Set a nested configuration value using dot notation."""
        keys = key_path.split('.')
        current = config
        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]
        current[keys[-1]] = value

    def _validate(self):
        """Validate required configuration fields."""
        errors = []

        directory = self.config.get('directory', {})
        endpoint = directory.get('endpoint')
        if not endpoint:
            errors.append("Missing required directory field: endpoint")
        else:
            parsed = urlparse(str(endpoint))
            if parsed.scheme not in ('http', 'https') or not parsed.netloc:
                errors.append(f"Directory endpoint must be an http(s) URL: {endpoint}")

        token = directory.get('token')
        if not token or not str(token).strip():
            errors.append("Missing required directory field: token")

        timeout = directory.get('timeout')
        if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
            errors.append(f"directory.timeout must be a positive number: {timeout}")

        max_concurrency = self.config.get('sync', {}).get('max_concurrency')
        if max_concurrency is not None:
            try:
                if int(max_concurrency) <= 0:
                    raise ValueError
            except (TypeError, ValueError):
                errors.append(f"sync.max_concurrency must be a positive integer: {max_concurrency}")

        level = str(self.config.get('logging', {}).get('level', '')).upper()
        if level not in VALID_LOG_LEVELS:
            errors.append(f"logging.level must be one of: {', '.join(VALID_LOG_LEVELS)}")

        if errors:
            raise ConfigurationError("Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in errors))

        # Normalize values that may have arrived as strings
        directory['endpoint'] = str(endpoint).rstrip('/')
        directory['token'] = str(token).strip()
        if max_concurrency is not None:
            self.config['sync']['max_concurrency'] = int(max_concurrency)
        self.config['logging']['level'] = 'WARNING' if level == 'WARN' else level

    def _apply_defaults(self):
        """Apply default values for optional configuration fields."""
        directory_defaults = {
            'timeout': 30,
            'verify_ssl': True
        }
        directory_config = self.config.setdefault('directory', {})
        for key, value in directory_defaults.items():
            directory_config.setdefault(key, value)

        sync_config = self.config.setdefault('sync', {})
        sync_config.setdefault('max_concurrency', None)

        self.config.setdefault('source', {})

        logging_defaults = {
            'level': 'INFO',
            'log_dir': None,
            'retention_days': 7,
            'console_output': True
        }
        logging_config = self.config.setdefault('logging', {})
        for key, value in logging_defaults.items():
            logging_config.setdefault(key, value)


def load_config(config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Convenience function to load configuration.

    Args:
        config_path: Path to config file
        overrides: Dotted-key overrides applied last

    Returns:
        Loaded configuration dictionary
    """
    loader = ConfigLoader(config_path, overrides)
    return loader.load()
