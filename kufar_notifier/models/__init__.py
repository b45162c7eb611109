"""
Data models for the Kufar notifier.

This module contains the data classes used throughout the application for
representing subscribers, listings, search queries, delivery state and
configuration.
"""

from .alert import FormattedAlert, Venue
from .config import (
    Configuration,
    LoggingConfig,
    MarketplaceConfig,
    StorageConfig,
    SyncConfig,
    TelegramConfig,
)
from .delivery import DeliveryRecord, DeliveryResult, DeliveryStatus
from .listing import Listing, ListingImage
from .parameter_map import ApiQuery, ExtractionResult, FilterMap
from .subscriber import Subscriber
from .sync import CycleReport, SubscriberSyncResult

__all__ = [
    "Subscriber",
    "Listing",
    "ListingImage",
    "FilterMap",
    "ExtractionResult",
    "ApiQuery",
    "FormattedAlert",
    "Venue",
    "DeliveryResult",
    "DeliveryStatus",
    "DeliveryRecord",
    "CycleReport",
    "SubscriberSyncResult",
    "Configuration",
    "TelegramConfig",
    "StorageConfig",
    "MarketplaceConfig",
    "SyncConfig",
    "LoggingConfig",
]
