"""
Configuration models for the system.
"""

import re
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

from dateutil import tz

DEFAULT_SEARCH_API_URL = (
    "https://cre-api.kufar.by/ads-search/v1/engine/v1/search/rendered-paginated"
)
DEFAULT_LISTINGS_REFERER = "https://www.kufar.by/listings"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _require_http_url(value: str, name: str) -> None:
    parsed_url = urlparse(value or "")
    if parsed_url.scheme not in ["http", "https"] or not parsed_url.netloc:
        raise ValueError(f"{name} must be an HTTP(S) URL: {value}")


@dataclass
class TelegramConfig:
    """Bot credential and delivery settings."""

    bot_token: str
    commands_enabled: bool = True
    api_base_url: str = "https://api.telegram.org"
    max_retries: int = 2
    retry_delay: float = 1.0

    def validate(self) -> bool:
        """Validate Telegram configuration."""
        if not self.bot_token or not self.bot_token.strip():
            raise ValueError("Telegram bot token cannot be empty")

        if self.bot_token.startswith("${"):
            raise ValueError(
                f"Telegram bot token was not expanded: {self.bot_token}"
            )

        _require_http_url(self.api_base_url, "Telegram API base URL")

        if not isinstance(self.max_retries, int) or self.max_retries < 0:
            raise ValueError("Telegram max_retries must be a non-negative integer")

        if self.retry_delay < 0:
            raise ValueError("Telegram retry_delay cannot be negative")

        return True


@dataclass
class StorageConfig:
    """Persistent store settings."""

    database_path: str = "data/kufar_notifier.db"
    sessions_collection: str = "sessions"
    items_collection: str = "items"

    def validate(self) -> bool:
        """Validate storage configuration."""
        if not self.database_path or not str(self.database_path).strip():
            raise ValueError("Database path cannot be empty")

        if str(self.database_path).strip() == ":memory:":
            # every store call opens its own connection
            raise ValueError("In-memory SQLite databases are not supported; use a file path")

        for name in [self.sessions_collection, self.items_collection]:
            if not isinstance(name, str) or not _IDENTIFIER.match(name):
                raise ValueError(f"Invalid collection name: {name!r}")

        if self.sessions_collection == self.items_collection:
            raise ValueError("Sessions and items collections must differ")

        return True


@dataclass
class MarketplaceConfig:
    """Marketplace endpoints and request settings."""

    search_api_url: str = DEFAULT_SEARCH_API_URL
    listings_referer: str = DEFAULT_LISTINGS_REFERER
    page_size: int = 30
    request_timeout: int = 30

    def validate(self) -> bool:
        """Validate marketplace configuration."""
        _require_http_url(self.search_api_url, "Search API URL")
        _require_http_url(self.listings_referer, "Listings referer")

        if not isinstance(self.page_size, int) or not (1 <= self.page_size <= 200):
            raise ValueError("Page size must be an integer between 1 and 200")

        if not isinstance(self.request_timeout, int) or self.request_timeout <= 0:
            raise ValueError("Request timeout must be a positive integer")

        return True


@dataclass
class SyncConfig:
    """Sync loop scheduling settings."""

    run_on_startup: bool = True
    schedule_interval: Optional[int] = None
    max_concurrent_recipients: int = 1
    timezone: str = "Europe/Minsk"

    def validate(self) -> bool:
        """Validate sync configuration."""
        if self.schedule_interval is not None:
            if (
                not isinstance(self.schedule_interval, int)
                or self.schedule_interval <= 0
            ):
                raise ValueError("Schedule interval must be a positive integer")

            if self.schedule_interval < 60:
                raise ValueError("Schedule interval must be at least 60 seconds")

        if not isinstance(self.max_concurrent_recipients, int) or not (
            1 <= self.max_concurrent_recipients <= 32
        ):
            raise ValueError("Max concurrent recipients must be between 1 and 32")

        if tz.gettz(self.timezone) is None:
            raise ValueError(f"Unknown timezone: {self.timezone}")

        return True


@dataclass
class LoggingConfig:
    """Log output settings."""

    level: str = "INFO"
    directory: str = "logs"

    def validate(self) -> bool:
        if str(self.level).upper() not in _LOG_LEVELS:
            raise ValueError(f"Log level must be one of: {_LOG_LEVELS}")
        return True


@dataclass
class Configuration:
    """System configuration."""

    telegram: TelegramConfig
    storage: StorageConfig = field(default_factory=StorageConfig)
    marketplace: MarketplaceConfig = field(default_factory=MarketplaceConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> bool:
        """Validate system configuration."""
        self.telegram.validate()
        self.storage.validate()
        self.marketplace.validate()
        self.sync.validate()
        self.logging.validate()

        if not self.sync.run_on_startup and self.sync.schedule_interval is None:
            raise ValueError(
                "Nothing to run: enable run_on_startup or set schedule_interval"
            )

        return True
