"""
Per-listing delivery state.

Decides whether a listing still has to be sent to a recipient and records
successful deliveries. A recipient's flag only ever goes from unset to
set; nothing here clears it.
"""

from ..models.delivery import DeliveryRecord
from ..models.listing import Listing
from ..services.store import SQLiteStore
from ..utils.logging import get_logger

logger = get_logger("delivery.tracker")


class DeliveryStateTracker:
    """Store-backed skip-or-send decisions."""

    def __init__(self, store: SQLiteStore):
        self.store = store

    def record_for(self, listing_id: str) -> DeliveryRecord:
        """Delivery record of a listing; listings never seen before have an empty one."""
        return self.store.get_delivery_record(listing_id)

    def should_send(self, listing_id: str, recipient_id: str) -> bool:
        """False only if the listing was already delivered to the recipient."""
        return not self.record_for(listing_id).was_sent_to(recipient_id)

    def mark_sent(self, listing_id: str, recipient_id: str, listing: Listing) -> DeliveryRecord:
        """Record a successful delivery and upsert the listing document."""
        record = self.store.mark_sent(listing_id, recipient_id, listing.to_document())
        logger.debug(
            "Listing marked as sent",
            extra={
                "kufar_id": listing_id,
                "recipient_id": recipient_id,
                "recipients": len(record.has_sent_to),
            },
        )
        return record
