"""
load the config from config.yaml and .env
"""

import os
import yaml
from dotenv import find_dotenv, load_dotenv
from pathlib import Path
from typing import Dict, Any


class Config:
    """Configuration loader that reads from config.yaml and environment variables."""

    # Environment variable -> (nested config key, type of the value)
    ENV_MAPPINGS = {
        'FETCHER_USER_AGENT': (('fetcher', 'user_agent'), str),
        'FETCHER_TIMEOUT': (('fetcher', 'timeout'), float),
        'FETCHER_MAX_REDIRECTS': (('fetcher', 'max_redirects'), int),
        'LOG_LEVEL': (('logging', 'level'), str),
        'LOG_FORMAT': (('logging', 'renderer'), str),
    }

    def __init__(self, config_path: str = None, load_env_file: bool = True):
        """Initialize configuration loader.

        Args:
            config_path: Path to config.yaml file. If None, uses the config.yaml
                        shipped next to this module.
            load_env_file: Read a .env file into the environment before
                        applying overrides.
        """
        if config_path is None:
            config_path = Path(__file__).parent / "config.yaml"

        self.config_path = Path(config_path)
        if load_env_file:
            load_dotenv(find_dotenv(usecwd=True))
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file and override with environment variables."""
        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not isinstance(config, dict):
            raise ValueError(f"Configuration root must be a mapping: {self.config_path}")

        return self._apply_env_overrides(config)

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        for env_var, (config_path, value_type) in self.ENV_MAPPINGS.items():
            env_value = os.getenv(env_var)
            if env_value is None:
                continue

            try:
                value = value_type(env_value.strip())
            except ValueError:
                raise ValueError(
                    f"Invalid value for {env_var}: {env_value!r} is not a valid {value_type.__name__}"
                )

            current = config
            for key in config_path[:-1]:
                if not isinstance(current.get(key), dict):
                    current[key] = {}
                current = current[key]

            current[config_path[-1]] = value

        return config

    def get(self, *keys, default=None):
        """Get configuration value by nested keys.

        Args:
            *keys: Configuration keys (e.g., 'fetcher', 'timeout')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        current = self._config
        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        return current

    @property
    def fetcher(self) -> Dict[str, Any]:
        """Get HTTP fetcher configuration."""
        return self.get('fetcher', default={})

    @property
    def logging(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self.get('logging', default={})
