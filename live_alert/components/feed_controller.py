"""
Feed ingestion controller for the Live Alert system.

Turns a WebSub notification into deliveries: each entry of the pushed
feed passes the duplicate check, metadata lookup, tag filter and fan-out,
and is then marked as notified.
"""

import io
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set, Union

import aiohttp
import feedparser
from aiohttp import ClientTimeout
from dateutil import parser as date_parser

from ..interfaces import (
    IDuplicateSuppressor,
    IMessageDispatcher,
    IMetadataFetcher,
    ITagFilter,
)
from ..models.config import PlatformLinks
from ..models.delivery import DeliveryReport
from ..models.feed import EntryResult, FeedEntry
from ..models.item import ItemMetadata
from ..models.notification import NotificationRecord
from ..utils.error_handling import (
    ErrorCategory,
    ErrorSeverity,
    FetchError,
    PayloadError,
    get_error_tracker,
)
from ..utils.logging import get_logger

logger = get_logger("feed_controller")


class FeedIngestionController:
    """Drives WebSub feed entries through the notification pipeline."""

    def __init__(
        self,
        fetcher: IMetadataFetcher,
        tag_filter: ITagFilter,
        suppressor: IDuplicateSuppressor,
        dispatcher: IMessageDispatcher,
        links: PlatformLinks,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the controller with its collaborators.

        Args:
            fetcher: Video metadata lookup
            tag_filter: Notification predicate
            suppressor: Already-notified store
            dispatcher: Fan-out to the messaging destinations
            links: Watch links included in every notification
            clock: Source of detection timestamps
        """
        self.fetcher = fetcher
        self.tag_filter = tag_filter
        self.suppressor = suppressor
        self.dispatcher = dispatcher
        self.links = links
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.error_tracker = get_error_tracker()

    async def handle_notification(
        self, body: Union[bytes, str], signature: Optional[str] = None
    ) -> List[EntryResult]:
        """
        Process a pushed feed.

        Args:
            body: Raw Atom XML from the hub, undecoded
            signature: ``X-Hub-Signature`` header, if present

        Returns:
            One EntryResult per entry in the feed

        Raises:
            PayloadError: If the body has no recognizable feed entries
        """
        if signature:
            # HMAC verification is not implemented; the header is only noted.
            logger.debug("WebSub callback received with signature")

        entries = self.parse_feed(body)
        return await self.process_entries(entries)

    def parse_feed(self, body: Union[bytes, str]) -> List[FeedEntry]:
        """
        Extract entries from a WebSub Atom payload.

        Raises:
            PayloadError: If the payload is empty, not a feed, or has no entry
        """
        if not body or not body.strip():
            raise PayloadError("Empty WebSub payload")

        if isinstance(body, str):
            body = body.encode("utf-8")

        # A stream is never mistaken for a URL or file name, and raw bytes
        # keep the encoding declared in the XML prolog.
        parsed = feedparser.parse(io.BytesIO(body))

        if parsed.bozo and not parsed.entries:
            raise PayloadError(f"Unparseable WebSub payload: {parsed.bozo_exception}")

        if not parsed.entries:
            raise PayloadError("Invalid WebSub payload: missing feed or entry")

        if parsed.bozo:
            logger.warning(
                "WebSub payload parsed with warnings",
                extra={"error": str(parsed.bozo_exception)},
            )

        return [self._to_feed_entry(entry) for entry in parsed.entries]

    def _to_feed_entry(self, entry) -> FeedEntry:
        return FeedEntry(
            item_id=(entry.get("yt_videoid") or "").strip() or None,
            title=entry.get("title", ""),
            published=self._parse_timestamp(entry.get("published")),
            updated=self._parse_timestamp(entry.get("updated")),
            channel_id=entry.get("yt_channelid"),
        )

    @staticmethod
    def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        try:
            return date_parser.parse(value)
        except (ValueError, OverflowError):
            logger.warning(f"Could not parse feed timestamp '{value}'")
            return None

    async def process_entries(self, entries: List[FeedEntry]) -> List[EntryResult]:
        """Process entries in order; each video id runs at most once per call."""
        results = []
        seen: Set[str] = set()

        for entry in entries:
            if entry.item_id and entry.item_id in seen:
                logger.debug(
                    f"Video {entry.item_id} repeated in payload, skipping",
                    extra={"item_id": entry.item_id},
                )
                results.append(EntryResult.DUPLICATE)
                continue

            if entry.item_id:
                seen.add(entry.item_id)

            results.append(await self.process_entry(entry))

        return results

    async def process_entry(self, entry: FeedEntry) -> EntryResult:
        """Run a single feed entry through the pipeline."""
        try:
            entry.validate()
        except ValueError:
            logger.warning("Feed entry missing video ID", extra={"title": entry.title})
            return EntryResult.MISSING_ID

        item_id = entry.item_id

        try:
            logger.info(
                f"Processing feed entry for video {item_id}",
                extra={"item_id": item_id},
            )

            if await self.suppressor.exists(item_id):
                logger.debug(
                    f"Video {item_id} already processed, skipping",
                    extra={"item_id": item_id},
                )
                return EntryResult.DUPLICATE

            try:
                metadata = await self.fetcher.fetch(item_id)
            except FetchError as e:
                logger.warning(
                    f"Could not fetch metadata for video {item_id}",
                    extra={"item_id": item_id, "error": str(e)},
                )
                return EntryResult.METADATA_UNAVAILABLE

            if metadata is None:
                logger.warning(
                    f"Could not fetch metadata for video {item_id}",
                    extra={"item_id": item_id},
                )
                return EntryResult.METADATA_UNAVAILABLE

            if not self.tag_filter.should_notify(metadata):
                logger.debug(
                    f"Video {item_id} does not contain marker tag, skipping",
                    extra={"item_id": item_id},
                )
                return EntryResult.NO_TAG

            record = NotificationRecord(
                item=metadata, links=self.links, detected_at=self._clock()
            )
            report = await self.dispatcher.deliver(record)
            self._log_report(item_id, report, "Notification")

            # Marked regardless of per-destination failures so hub retries
            # cannot re-trigger delivery.
            await self.suppressor.mark_notified(item_id)
            return EntryResult.DELIVERED

        except Exception as e:
            self.error_tracker.record_error(
                component="feed_controller",
                category=ErrorCategory.SYSTEM,
                severity=ErrorSeverity.MEDIUM,
                message=f"Error processing feed entry for video {item_id}: {e}",
                exception=e,
                context={"item_id": item_id},
            )
            return EntryResult.FAILED

    async def latest_item(self, channel_id: str) -> Optional[ItemMetadata]:
        """Return the newest video on a channel, or None if there is none."""
        try:
            videos = await self.fetcher.list_recent(channel_id, 1)
        except FetchError as e:
            logger.warning(
                f"Could not list videos for channel {channel_id}",
                extra={"channel_id": channel_id, "error": str(e)},
            )
            return None

        if not videos:
            logger.warning(f"No videos found for channel {channel_id}")
            return None

        return videos[0]

    async def notify_latest(self, channel_id: str) -> DeliveryReport:
        """
        Re-run filter, format, deliver and mark for a channel's newest video.

        Used by the manual trigger, so the duplicate check is bypassed.

        Returns:
            DeliveryReport, empty if nothing was sent
        """
        latest = await self.latest_item(channel_id)
        if latest is None:
            return DeliveryReport()
        return await self.notify_item(latest.id)

    async def notify_item(self, item_id: str) -> DeliveryReport:
        """Send a notification for ``item_id`` without the duplicate check."""
        logger.info(
            f"Manual notification requested for video {item_id}",
            extra={"item_id": item_id},
        )

        # Search results truncate descriptions; fetch the full text.
        try:
            metadata = await self.fetcher.fetch(item_id)
        except FetchError as e:
            logger.warning(
                f"Could not fetch metadata for video {item_id}",
                extra={"item_id": item_id, "error": str(e)},
            )
            return DeliveryReport()

        if metadata is None:
            logger.warning(f"Could not fetch metadata for video {item_id}")
            return DeliveryReport()

        if not self.tag_filter.should_notify(metadata):
            logger.warning(
                f"Video {item_id} does not contain marker tag, "
                f"skipping manual notification"
            )
            return DeliveryReport()

        record = NotificationRecord(
            item=metadata, links=self.links, detected_at=self._clock()
        )
        report = await self.dispatcher.deliver(record)
        self._log_report(item_id, report, "Manual notification")

        await self.suppressor.mark_notified(item_id)
        return report

    def _log_report(self, item_id: str, report: DeliveryReport, label: str) -> None:
        logger.info(
            f"{label} results for video {item_id}: "
            f"{report.succeeded} successful, {report.failed} failed",
            extra={
                "item_id": item_id,
                "succeeded": report.succeeded,
                "failed": report.failed,
            },
        )

        for outcome in report.failures:
            logger.error(
                f"Failed to send notification to {outcome.destination}: "
                f"{outcome.error_message}",
                extra={"item_id": item_id, "destination": outcome.destination},
            )

    async def subscribe(self, hub_url: str, topic_url: str, callback_url: str) -> bool:
        """
        Ask the hub to push updates for ``topic_url`` to ``callback_url``.

        Fire-and-forget: one attempt, one log line, never raises.

        Returns:
            True if the hub accepted the request
        """
        logger.info(
            f"Subscribing to WebSub for topic: {topic_url}",
            extra={"hub_url": hub_url, "callback_url": callback_url},
        )
        form = {
            "hub.mode": "subscribe",
            "hub.topic": topic_url,
            "hub.callback": callback_url,
        }

        try:
            async with aiohttp.ClientSession(
                timeout=ClientTimeout(total=10)
            ) as session:
                async with session.post(hub_url, data=form) as response:
                    if response.status < 400:
                        logger.info("WebSub subscription request sent successfully")
                        return True

                    logger.error(
                        f"Failed to subscribe to WebSub: "
                        f"{response.status} {response.reason}"
                    )
                    return False
        except Exception as e:
            logger.error(f"Error subscribing to WebSub: {e}")
            return False
