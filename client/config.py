"""
Configuration Management for the Grocery Store auth client.

This module handles client configuration (backend URL, request timeout, token
storage and logging) with support for configuration files and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from typing import Optional, Dict, Any
from configparser import ConfigParser
from urllib.parse import urlparse

from shared.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://grocery-app-backend-45m3.onrender.com/api/v1"


class ClientConfiguration:
    """
    Configuration manager for the auth client.

    Supports configuration from:
    1. Programmatic overrides, e.g. command line arguments (highest priority)
    2. Environment variables
    3. Configuration file
    4. Default values (lowest priority)
    """

    ENV_MAPPINGS = {
        'GROCERY_API_BASE_URL': ('server', 'url'),
        'GROCERY_API_TIMEOUT': ('server', 'timeout'),
        'GROCERY_KEYRING_SERVICE': ('auth', 'keyring_service'),
        'GROCERY_TOKEN_FILE': ('auth', 'token_file'),
        'GROCERY_CLEAR_ON_REFRESH_FAILURE': ('auth', 'clear_on_refresh_failure'),
        'GROCERY_LOG_LEVEL': ('logging', 'level'),
        'GROCERY_LOG_FORMAT': ('logging', 'format'),
        'GROCERY_LOG_FILE': ('logging', 'file'),
    }

    def __init__(self, config_file: Optional[str] = None):
        self._config_file = config_file or self._get_default_config_path()
        self._config_data: Dict[str, Dict[str, Any]] = {}
        self._overrides: Dict[str, Any] = {}

        self._load_configuration()

    def _get_default_config_path(self) -> str:
        """Get default configuration file path."""
        xdg_config = os.environ.get('XDG_CONFIG_HOME')
        if xdg_config:
            config_dir = Path(xdg_config) / 'grocery-store'
        else:
            config_dir = Path.home() / '.config' / 'grocery-store'
        return str(config_dir / 'client.conf')

    def _load_configuration(self) -> None:
        """Load configuration from file and environment variables."""
        if os.path.exists(self._config_file):
            try:
                self._load_from_file()
                logger.info(f"Configuration loaded from: {self._config_file}")
            except Exception as e:
                logger.warning(f"Failed to load configuration file: {e}")
        else:
            logger.debug(f"Configuration file not found: {self._config_file}")

        self._load_from_environment()
        self._set_defaults()

    def _load_from_file(self) -> None:
        """Load configuration from INI file."""
        config = ConfigParser()
        config.read(self._config_file)

        for section_name in config.sections():
            section_data = {}
            for key, value in config[section_name].items():
                # Try to parse as JSON for numbers and booleans
                try:
                    section_data[key] = json.loads(value)
                except (json.JSONDecodeError, ValueError):
                    section_data[key] = value

            self._config_data[section_name] = section_data

    def _load_from_environment(self) -> None:
        """Load configuration from environment variables."""
        for env_var, (section, key) in self.ENV_MAPPINGS.items():
            value = os.environ.get(env_var)
            if value is None:
                continue

            section_data = self._config_data.setdefault(section, {})
            if value.lower() in ('true', 'false'):
                section_data[key] = value.lower() == 'true'
            else:
                section_data[key] = value

    def _set_defaults(self) -> None:
        """Set default configuration values."""
        defaults = {
            'server': {
                'url': DEFAULT_BASE_URL,
                'timeout': 20.0
            },
            'auth': {
                'keyring_service': 'grocery-store-client',
                'token_file': None,
                'clear_on_refresh_failure': True
            },
            'logging': {
                'level': 'WARNING',
                'format': 'standard',
                'file': None
            }
        }

        for section, section_defaults in defaults.items():
            section_data = self._config_data.setdefault(section, {})
            for key, default_value in section_defaults.items():
                section_data.setdefault(key, default_value)

    def get_config(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key in format 'section.key'
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        if '.' not in key:
            return self._config_data.get(key, default)

        section, config_key = key.split('.', 1)
        return self._config_data.get(section, {}).get(config_key, default)

    def set_override(self, key: str, value: Any) -> None:
        """
        Set a runtime override that takes precedence over every other source.

        Args:
            key: Override name (base_url, timeout, token_file, log_level, ...)
            value: Value to use; None removes the override
        """
        if value is None:
            self._overrides.pop(key, None)
        else:
            self._overrides[key] = value

    def get_base_url(self) -> str:
        """Get backend base URL including the versioned prefix."""
        return str(self._overrides.get('base_url') or self._config_data['server']['url'])

    def get_timeout(self) -> float:
        """Get per-request timeout in seconds."""
        value = self._overrides.get('timeout', self._config_data['server']['timeout'])
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid timeout: {value!r}", setting='server.timeout')

    def get_keyring_service(self) -> str:
        return self._overrides.get('keyring_service') or self._config_data['auth']['keyring_service']

    def get_token_file(self) -> Optional[str]:
        return self._overrides.get('token_file') or self._config_data['auth'].get('token_file')

    def should_clear_on_refresh_failure(self) -> bool:
        value = self._overrides.get(
            'clear_on_refresh_failure',
            self._config_data['auth']['clear_on_refresh_failure']
        )
        if isinstance(value, str):
            return value.lower() in ('1', 'true', 'yes', 'on')
        return bool(value)

    def get_log_level(self) -> str:
        return str(self._overrides.get('log_level') or self._config_data['logging']['level']).upper()

    def get_log_format(self) -> str:
        return str(self._overrides.get('log_format') or self._config_data['logging']['format']).lower()

    def get_log_file(self) -> Optional[str]:
        return self._overrides.get('log_file') or self._config_data['logging'].get('file')

    def validate(self) -> None:
        """
        Check the settings needed to talk to the backend.

        Raises:
            ConfigurationError: If a value is unusable
        """
        parsed = urlparse(self.get_base_url())
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ConfigurationError(
                f"Base URL must be an absolute http(s) URL: {self.get_base_url()!r}",
                setting='server.url'
            )

        if self.get_timeout() <= 0:
            raise ConfigurationError("Timeout must be positive", setting='server.timeout')
