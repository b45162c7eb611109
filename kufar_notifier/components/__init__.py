"""
Core components for the Kufar notifier.

This module contains the pipeline components that resolve filter maps,
build search queries, fetch listings, track delivery state and dispatch
notifications.
"""

from .alert_formatter import AlertFormatter
from .delivery_state_tracker import DeliveryStateTracker
from .listing_fetcher import ListingFetcher
from .message_dispatcher import TelegramDispatcher
from .parameter_map_cache import ParameterMapCache
from .parameter_map_resolver import ParameterMapResolver
from .search_query_builder import SearchQueryBuilder
from .sync_loop import SyncLoop

__all__ = [
    "AlertFormatter",
    "DeliveryStateTracker",
    "ListingFetcher",
    "TelegramDispatcher",
    "ParameterMapCache",
    "ParameterMapResolver",
    "SearchQueryBuilder",
    "SyncLoop",
]
