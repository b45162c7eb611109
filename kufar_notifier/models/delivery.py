"""
Message delivery models.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional


class DeliveryStatus(Enum):
    """Outcome of a single dispatch attempt."""

    SENT = "sent"
    FORBIDDEN = "forbidden"
    FAILED = "failed"


@dataclass
class DeliveryResult:
    """Result of message delivery attempt."""

    success: bool
    delivery_time: datetime
    error_message: Optional[str]
    status: DeliveryStatus = DeliveryStatus.SENT
    error_code: Optional[int] = None

    @property
    def is_forbidden(self) -> bool:
        return self.status is DeliveryStatus.FORBIDDEN

    def validate(self) -> bool:
        """Validate delivery result data."""
        if not isinstance(self.success, bool):
            raise ValueError("success must be a boolean")

        if not isinstance(self.delivery_time, datetime):
            raise ValueError("delivery_time must be a datetime object")

        if self.error_message is not None:
            if not isinstance(self.error_message, str):
                raise ValueError("error_message must be a string or None")

            if len(self.error_message) > 500:
                raise ValueError("error_message too long (max 500 characters)")

        if not self.success and not self.error_message:
            raise ValueError("error_message should be provided when success is False")

        if self.success != (self.status is DeliveryStatus.SENT):
            raise ValueError("status must be SENT exactly when success is True")

        return True


@dataclass
class DeliveryRecord:
    """Which recipients a listing has already been delivered to."""

    kufar_id: str
    has_sent_to: Dict[str, bool] = field(default_factory=dict)

    def was_sent_to(self, recipient_id: str) -> bool:
        return bool(self.has_sent_to.get(str(recipient_id)))
