"""
Subscriber data models.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Subscriber:
    """A chat session with (at most) one saved search URL."""

    key: str
    url: Optional[str] = None

    @property
    def recipient_id(self) -> str:
        """Chat id the notifications are delivered to."""
        return self.key.split(":", 1)[0]

    @property
    def is_active(self) -> bool:
        return bool(self.url and self.url.strip())

    def validate(self) -> bool:
        """Validate subscriber data."""
        if not self.key or not self.key.strip():
            raise ValueError("Subscriber key cannot be empty")

        if not self.recipient_id:
            raise ValueError(f"Subscriber key has no recipient id: {self.key}")

        return True
