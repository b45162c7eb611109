"""
Alert formatting models.
"""

from dataclasses import dataclass
from typing import Optional

MAX_MESSAGE_LENGTH = 4096
MAX_CAPTION_LENGTH = 1024


@dataclass
class Venue:
    """Map point sent alongside a listing that has coordinates."""

    latitude: float
    longitude: float
    title: str
    address: str


@dataclass
class FormattedAlert:
    """Formatted listing notification ready for delivery."""

    title: str
    message: str
    link_url: str
    photo_url: Optional[str] = None
    venue: Optional[Venue] = None

    @property
    def fits_caption(self) -> bool:
        return len(self.message) <= MAX_CAPTION_LENGTH

    def validate(self) -> bool:
        """Validate formatted alert data."""
        if not isinstance(self.title, str) or not self.title.strip():
            raise ValueError("title cannot be empty")

        if not isinstance(self.message, str) or not self.message.strip():
            raise ValueError("message cannot be empty")

        if len(self.message) > MAX_MESSAGE_LENGTH:
            raise ValueError(
                f"message too long (max {MAX_MESSAGE_LENGTH} characters)"
            )

        if not self.link_url:
            raise ValueError("link_url cannot be empty")

        if self.venue is not None:
            if not (-90 <= self.venue.latitude <= 90):
                raise ValueError("venue latitude out of range")
            if not (-180 <= self.venue.longitude <= 180):
                raise ValueError("venue longitude out of range")

        return True
