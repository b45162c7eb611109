"""
Protocol interfaces for the Kufar notifier.

This module defines the protocol interfaces that establish the pipeline's
boundaries and enable dependency injection throughout the application.
"""

from typing import TYPE_CHECKING, List, Optional, Protocol

from .models.alert import FormattedAlert
from .models.delivery import DeliveryRecord, DeliveryResult
from .models.listing import Listing
from .models.parameter_map import ApiQuery, FilterMap
from .models.subscriber import Subscriber

if TYPE_CHECKING:
    from .models.config import Configuration


class IParameterMapResolver(Protocol):
    """Protocol for resolving the filter map of a search URL."""

    def resolve(self, search_url: str) -> FilterMap:
        """Resolve the filter map; never raises."""
        ...


class ISearchQueryBuilder(Protocol):
    """Protocol for translating filter URLs into search API queries."""

    def build(self, filter_url: str, filter_map: FilterMap) -> ApiQuery:
        """Build the normalized API query for a filter URL."""
        ...


class IListingFetcher(Protocol):
    """Protocol for retrieving listings from the search API."""

    def fetch(self, api_query: ApiQuery, referer_url: str) -> List[Listing]:
        """Fetch listings; failures yield an empty list."""
        ...


class ISubscriberStore(Protocol):
    """Protocol for the session and listing store."""

    def load_subscribers(self) -> List[Subscriber]:
        """Load sessions that have a saved filter URL."""
        ...

    def get_subscriber(self, key: str) -> Optional[Subscriber]:
        """Load a single session."""
        ...

    def save_subscriber_url(self, key: str, url: Optional[str]) -> None:
        """Set or clear a session's filter URL."""
        ...

    def unsubscribe_recipient(self, recipient_id: str) -> int:
        """Clear the filter URL of every session of a recipient."""
        ...

    def get_delivery_record(self, kufar_id: str) -> DeliveryRecord:
        """Load which recipients a listing was delivered to."""
        ...

    def mark_sent(self, kufar_id: str, recipient_id: str, document: dict) -> DeliveryRecord:
        """Record a delivery and upsert the listing document."""
        ...


class IDeliveryStateTracker(Protocol):
    """Protocol for per-listing delivery state."""

    def should_send(self, listing_id: str, recipient_id: str) -> bool:
        """Whether the listing still has to be sent to the recipient."""
        ...

    def mark_sent(self, listing_id: str, recipient_id: str, listing: Listing) -> DeliveryRecord:
        """Record a successful delivery."""
        ...


class IAlertFormatter(Protocol):
    """Protocol for formatting listing alerts."""

    def format_alert(self, listing: Listing) -> FormattedAlert:
        """Format a listing into an alert."""
        ...


class IMessageDispatcher(Protocol):
    """Protocol for message dispatching."""

    def send_alert(self, recipient_id: str, alert: FormattedAlert) -> DeliveryResult:
        """Send alert message to a recipient."""
        ...

    def test_connection(self) -> bool:
        """Test connection to messaging platform."""
        ...


class IConfigurationManager(Protocol):
    """Protocol for configuration management."""

    def load_config(self) -> "Configuration":
        """Load and validate configuration."""
        ...

    def get_config(self) -> "Configuration":
        """Return the loaded configuration."""
        ...


class ITelegramBotHandler(Protocol):
    """Protocol for the Telegram bot command surface."""

    async def start_polling(self) -> None:
        """Start polling for Telegram updates."""
        ...

    async def stop_polling(self) -> None:
        """Stop polling for Telegram updates."""
        ...
