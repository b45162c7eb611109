"""
Sync loop: one pass over every subscriber.

For each subscriber the saved filter URL is translated into a search API
query, the listings are fetched, and every listing the recipient has not
seen yet is dispatched and then recorded as sent. Blocking network and
store calls run in the default executor so the event loop stays free for
the bot and for shutdown signals.
"""

import asyncio
import functools
from collections import OrderedDict
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..models.subscriber import Subscriber
from ..models.sync import CycleReport, SubscriberSyncResult
from ..utils.error_handling import (
    ErrorCategory,
    ErrorSeverity,
    get_error_tracker,
    with_error_handling,
)
from ..utils.logging import get_logger

logger = get_logger("sync.loop")


class SyncLoop:
    """Runs sync cycles over all active subscribers."""

    def __init__(
        self,
        store,
        resolver,
        builder,
        fetcher,
        tracker,
        dispatcher,
        max_concurrent_recipients: int = 1,
        stop_event: Optional[asyncio.Event] = None,
    ):
        """
        Initialize the sync loop.

        Args:
            store: Session store the subscribers are loaded from
            resolver: Parameter map resolver
            builder: Search query builder
            fetcher: Listing fetcher
            tracker: Delivery state tracker
            dispatcher: Notification dispatcher
            max_concurrent_recipients: Recipients processed in parallel;
                work is partitioned by recipient so a listing is never
                dispatched twice to the same chat at once
            stop_event: Set to stop after the current listing
        """
        self.store = store
        self.resolver = resolver
        self.builder = builder
        self.fetcher = fetcher
        self.tracker = tracker
        self.dispatcher = dispatcher
        self.max_concurrent_recipients = max(1, max_concurrent_recipients)
        self.stop_event = stop_event or asyncio.Event()

    @property
    def stopping(self) -> bool:
        return self.stop_event.is_set()

    async def _run_blocking(self, func: Callable, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    async def run_cycle(self) -> CycleReport:
        """
        Run one full pass over all subscribers.

        Never raises; per-subscriber failures are recorded on the report.
        """
        report = CycleReport(started_at=datetime.now())
        logger.info("Sync cycle started")

        try:
            subscribers = await self._run_blocking(self.store.load_subscribers)
        except Exception as e:
            logger.error(f"Cannot load subscribers: {e}", exc_info=True)
            get_error_tracker().record_error(
                component="sync.loop",
                category=ErrorCategory.STORAGE,
                severity=ErrorSeverity.HIGH,
                message=f"Cannot load subscribers: {e}",
                exception=e,
            )
            report.finished_at = datetime.now()
            return report

        groups: Dict[str, List[Subscriber]] = OrderedDict()
        for subscriber in subscribers:
            groups.setdefault(subscriber.recipient_id, []).append(subscriber)

        semaphore = asyncio.Semaphore(self.max_concurrent_recipients)

        async def run_group(group: List[Subscriber]) -> List[SubscriberSyncResult]:
            async with semaphore:
                return await self._sync_recipient(group)

        grouped_results = await asyncio.gather(
            *(run_group(group) for group in groups.values())
        )
        for results in grouped_results:
            report.results.extend(results)

        report.interrupted = self.stopping
        report.finished_at = datetime.now()
        logger.info("Sync cycle finished", extra=report.to_dict())
        return report

    async def _sync_recipient(self, subscribers: List[Subscriber]) -> List[SubscriberSyncResult]:
        results = []
        for subscriber in subscribers:
            if self.stopping:
                break

            result = await self._sync_subscriber(subscriber)
            results.append(result)

            # every session of the recipient was cleared
            if result.unsubscribed:
                break

        return results

    async def _sync_subscriber(self, subscriber: Subscriber) -> SubscriberSyncResult:
        result = SubscriberSyncResult(subscriber_key=subscriber.key)
        try:
            await self._process_subscriber(subscriber, result)
        except Exception as e:
            result.error = str(e) or type(e).__name__
            logger.error(
                "Subscriber sync failed",
                extra={"subscriber": subscriber.key, "error": result.error},
            )
        return result

    @with_error_handling(
        component="sync.loop",
        category=ErrorCategory.SYSTEM,
        severity=ErrorSeverity.MEDIUM,
    )
    async def _process_subscriber(
        self, subscriber: Subscriber, result: SubscriberSyncResult
    ) -> SubscriberSyncResult:
        recipient_id = subscriber.recipient_id

        filter_map = await self._run_blocking(self.resolver.resolve, subscriber.url)
        api_query = self.builder.build(subscriber.url, filter_map)
        listings = await self._run_blocking(
            self.fetcher.fetch, api_query, subscriber.url
        )
        result.fetched = len(listings)

        for listing in listings:
            if self.stopping:
                break

            should_send = await self._run_blocking(
                self.tracker.should_send, listing.kufar_id, recipient_id
            )
            if not should_send:
                result.skipped += 1
                continue

            delivery = await self._run_blocking(
                self.dispatcher.dispatch, recipient_id, listing
            )

            if delivery.success:
                await self._run_blocking(
                    self.tracker.mark_sent, listing.kufar_id, recipient_id, listing
                )
                result.sent += 1
                continue

            if delivery.is_forbidden:
                await self._run_blocking(self.store.unsubscribe_recipient, recipient_id)
                result.unsubscribed = True
                get_error_tracker().record_error(
                    component="message.dispatcher",
                    category=ErrorCategory.PERMISSION,
                    severity=ErrorSeverity.LOW,
                    message=f"Recipient {recipient_id} blocked the bot, unsubscribed",
                    context={"subscriber": subscriber.key},
                )
                break

            result.failed += 1
            get_error_tracker().record_error(
                component="message.dispatcher",
                category=ErrorCategory.MESSAGE_DELIVERY,
                severity=ErrorSeverity.MEDIUM,
                message=delivery.error_message or "Delivery failed",
                context={"kufar_id": listing.kufar_id, "recipient_id": recipient_id},
            )

        logger.info(
            "Subscriber synced",
            extra={
                "subscriber": subscriber.key,
                "fetched": result.fetched,
                "sent": result.sent,
                "skipped": result.skipped,
                "failed": result.failed,
                "unsubscribed": result.unsubscribed,
            },
        )
        return result
