"""
Sync cycle reporting models.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class SubscriberSyncResult:
    """What happened for one subscriber during a cycle."""

    subscriber_key: str
    fetched: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    unsubscribed: bool = False
    error: Optional[str] = None


@dataclass
class CycleReport:
    """Summary of one sync cycle."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    interrupted: bool = False
    results: List[SubscriberSyncResult] = field(default_factory=list)

    @property
    def subscribers(self) -> int:
        return len(self.results)

    @property
    def sent(self) -> int:
        return sum(result.sent for result in self.results)

    @property
    def skipped(self) -> int:
        return sum(result.skipped for result in self.results)

    @property
    def failed(self) -> int:
        return sum(result.failed for result in self.results)

    @property
    def unsubscribed(self) -> int:
        return sum(1 for result in self.results if result.unsubscribed)

    @property
    def errors(self) -> int:
        return sum(1 for result in self.results if result.error)

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "interrupted": self.interrupted,
            "subscribers": self.subscribers,
            "sent": self.sent,
            "skipped": self.skipped,
            "failed": self.failed,
            "unsubscribed": self.unsubscribed,
            "errors": self.errors,
        }
