"""
Configuration management for the Kufar notifier.
"""

import json
import os
from typing import Any, Dict, Optional

import yaml

from ..models.config import (
    Configuration,
    LoggingConfig,
    MarketplaceConfig,
    StorageConfig,
    SyncConfig,
    TelegramConfig,
)

CONFIG_SEARCH_PATHS = [
    "config/config.yaml",
    "config/config.yml",
    "config/config.json",
    "config.yaml",
    "config.yml",
    "config.json",
]


def _section(raw_config: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = raw_config.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Configuration section '{name}' must be a mapping")
    return section


class ConfigurationManager:
    """Loads, validates and reloads system configuration."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file. If None, the
                standard locations are searched and the environment is used
                when none of them exists.
        """
        self.config_path = config_path or self._find_config_file()
        self._config: Optional[Configuration] = None
        self._last_modified: Optional[float] = None

    def _find_config_file(self) -> Optional[str]:
        """Find the configuration file in standard locations."""
        for path in CONFIG_SEARCH_PATHS:
            if os.path.exists(path):
                return path
        return None

    def load_config(self) -> Configuration:
        """
        Load configuration from file, or from the environment when there is
        no configuration file.

        Raises:
            ValueError: If configuration is invalid or cannot be read.
            FileNotFoundError: If an explicit configuration file is missing.
        """
        if self.config_path is None:
            config = self.load_from_environment()
            self._config = config
            return config

        if not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            raw_config = self._read_file(self.config_path)
            raw_config = self._expand_env_vars(raw_config)
            config = self._parse_config(raw_config)
            config.validate()
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {e}")

        self._config = config
        self._last_modified = os.path.getmtime(self.config_path)
        return config

    def _read_file(self, path: str) -> Dict[str, Any]:
        with open(path, "r", encoding="utf-8") as f:
            if path.endswith(".json"):
                raw_config = json.load(f)
            else:
                raw_config = yaml.safe_load(f)

        if not isinstance(raw_config, dict):
            raise ValueError("Configuration file must contain a mapping")
        return raw_config

    def load_from_environment(self) -> Configuration:
        """Build configuration from the deployment environment variables."""
        schedule_interval = os.getenv("SCHEDULE_INTERVAL")

        try:
            config = Configuration(
                telegram=TelegramConfig(bot_token=os.getenv("BOT_TOKEN", "")),
                storage=StorageConfig(
                    database_path=os.getenv(
                        "DATABASE_PATH", StorageConfig.database_path
                    ),
                    sessions_collection=os.getenv(
                        "SESSIONS_COLLECTION", StorageConfig.sessions_collection
                    ),
                    items_collection=os.getenv(
                        "ITEMS_COLLECTION", StorageConfig.items_collection
                    ),
                ),
                sync=SyncConfig(
                    schedule_interval=int(schedule_interval)
                    if schedule_interval
                    else None
                ),
                logging=LoggingConfig(level=os.getenv("LOG_LEVEL", "INFO")),
            )
        except ValueError as e:
            raise ValueError(f"Invalid environment configuration: {e}")

        config.validate()
        return config

    def _expand_env_vars(self, obj: Any) -> Any:
        """Recursively expand ${VAR_NAME} values."""
        if isinstance(obj, dict):
            return {key: self._expand_env_vars(value) for key, value in obj.items()}
        if isinstance(obj, list):
            return [self._expand_env_vars(item) for item in obj]
        if isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
            var_name = obj[2:-1]
            env_value = os.getenv(var_name)
            if env_value is None:
                raise ValueError(f"Environment variable '{var_name}' not found")
            return env_value
        return obj

    def _parse_config(self, raw_config: Dict[str, Any]) -> Configuration:
        """Parse raw configuration dictionary into Configuration object."""
        try:
            telegram_data = _section(raw_config, "telegram")
            storage_data = _section(raw_config, "storage")
            marketplace_data = _section(raw_config, "marketplace")
            sync_data = _section(raw_config, "sync")
            logging_data = _section(raw_config, "logging")

            return Configuration(
                telegram=TelegramConfig(
                    bot_token=str(telegram_data.get("bot_token", "")),
                    commands_enabled=telegram_data.get("commands_enabled", True),
                    api_base_url=telegram_data.get(
                        "api_base_url", TelegramConfig.api_base_url
                    ),
                    max_retries=telegram_data.get("max_retries", 2),
                    retry_delay=float(telegram_data.get("retry_delay", 1.0)),
                ),
                storage=StorageConfig(**storage_data),
                marketplace=MarketplaceConfig(**marketplace_data),
                sync=SyncConfig(**sync_data),
                logging=LoggingConfig(**logging_data),
            )

        except TypeError as e:
            raise ValueError(f"Unknown configuration key: {e}")

    def get_config(self) -> Configuration:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            return self.load_config()
        return self._config

    def reload_if_changed(self) -> bool:
        """
        Reload configuration if file has been modified.

        Returns:
            True if configuration was reloaded, False otherwise.
        """
        if self.config_path is None or not os.path.exists(self.config_path):
            return False

        current_modified = os.path.getmtime(self.config_path)
        if self._last_modified is not None and current_modified <= self._last_modified:
            return False

        try:
            self.load_config()
        except ValueError:
            # keep serving the last good configuration
            return False
        return True

    def get_config_template(self) -> Dict[str, Any]:
        """Example configuration structure."""
        return {
            "telegram": {
                "bot_token": "${BOT_TOKEN}",
                "commands_enabled": True,
            },
            "storage": {
                "database_path": "data/kufar_notifier.db",
                "sessions_collection": "sessions",
                "items_collection": "items",
            },
            "marketplace": {
                "page_size": 30,
                "request_timeout": 30,
            },
            "sync": {
                "run_on_startup": True,
                "schedule_interval": 600,
                "max_concurrent_recipients": 1,
                "timezone": "Europe/Minsk",
            },
            "logging": {"level": "INFO", "directory": "logs"},
        }
