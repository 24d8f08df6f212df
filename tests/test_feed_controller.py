"""
Unit tests for the feed ingestion controller.
"""

from dataclasses import replace
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock, patch

import pytest

from live_alert.components.duplicate_suppressor import DuplicateSuppressor
from live_alert.components.feed_controller import FeedIngestionController
from live_alert.components.tag_filter import TagFilter
from live_alert.models.feed import EntryResult, FeedEntry
from live_alert.utils.error_handling import FetchError, PayloadError

from conftest import build_feed

DETECTED_AT = datetime(2024, 5, 1, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def controller(mock_fetcher, mock_suppressor, mock_dispatcher, sample_links):
    """Create a controller wired to mocks."""
    return FeedIngestionController(
        fetcher=mock_fetcher,
        tag_filter=TagFilter(),
        suppressor=mock_suppressor,
        dispatcher=mock_dispatcher,
        links=sample_links,
        clock=lambda: DETECTED_AT,
    )


class TestParseFeed:
    """Test cases for WebSub payload parsing."""

    def test_parses_entries(self, controller):
        """Test that video and channel ids are extracted."""
        entries = controller.parse_feed(
            build_feed(("abc123", "First"), ("def456", "Second"))
        )

        assert [e.item_id for e in entries] == ["abc123", "def456"]
        assert entries[0].title == "First"
        assert entries[0].channel_id == "UCxyz1234567890"
        assert entries[0].published == datetime(2024, 5, 1, 17, 59, tzinfo=timezone.utc)

    def test_declared_encoding_is_honoured(self, controller):
        """Test that bytes are decoded using the XML prolog encoding."""
        body = (
            build_feed(("abc123", "café"))
            .replace('encoding="UTF-8"', 'encoding="ISO-8859-1"')
            .encode("latin-1")
        )

        entries = controller.parse_feed(body)

        assert entries[0].title == "café"

    def test_entry_without_video_id_is_kept(self, controller):
        """Test that an id-less entry is returned for per-entry logging."""
        entries = controller.parse_feed(build_feed((None, "Deleted video")))

        assert len(entries) == 1
        assert entries[0].item_id is None

    @pytest.mark.parametrize(
        "body",
        [
            "",
            "   ",
            "this is not xml",
            "<html><body>hello</body></html>",
            build_feed(),
        ],
    )
    def test_invalid_payloads_raise(self, controller, body):
        """Test that payloads without feed entries are rejected."""
        with pytest.raises(PayloadError):
            controller.parse_feed(body)

    def test_url_body_is_not_fetched(self, controller):
        """Test that a URL-looking body is parsed as text, not downloaded."""
        with patch("urllib.request.urlopen") as urlopen:
            with pytest.raises(PayloadError):
                controller.parse_feed("https://example.com/feed.xml")

        urlopen.assert_not_called()


class TestProcessEntry:
    """Test cases for the per-entry pipeline."""

    @pytest.mark.asyncio
    async def test_tagged_video_is_delivered_and_marked(
        self, controller, mock_fetcher, mock_dispatcher, mock_suppressor, sample_links
    ):
        """Test the full path for a new video with the marker tag."""
        result = await controller.process_entry(FeedEntry("abc123", "Weekly Q&A"))

        assert result == EntryResult.DELIVERED
        mock_suppressor.exists.assert_awaited_once_with("abc123")
        mock_fetcher.fetch.assert_awaited_once_with("abc123")
        record = mock_dispatcher.deliver.await_args.args[0]
        assert record.item.id == "abc123"
        assert record.links == sample_links
        assert record.detected_at == DETECTED_AT
        mock_suppressor.mark_notified.assert_awaited_once_with("abc123")

    @pytest.mark.asyncio
    async def test_missing_id_is_skipped(self, controller, mock_suppressor):
        """Test that entries without an id never touch the store."""
        result = await controller.process_entry(FeedEntry(None, "untitled"))

        assert result == EntryResult.MISSING_ID
        mock_suppressor.exists.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blank_id_is_skipped(self, controller, mock_suppressor):
        """Test that a whitespace-only id counts as missing."""
        result = await controller.process_entry(FeedEntry("  ", "untitled"))

        assert result == EntryResult.MISSING_ID
        mock_suppressor.exists.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_already_notified_short_circuits(
        self, controller, mock_fetcher, mock_dispatcher, mock_suppressor
    ):
        """Test that a known id causes no fetch and no delivery."""
        mock_suppressor.exists.return_value = True

        result = await controller.process_entry(FeedEntry("abc123", "Weekly Q&A"))

        assert result == EntryResult.DUPLICATE
        mock_fetcher.fetch.assert_not_awaited()
        mock_dispatcher.deliver.assert_not_awaited()
        mock_suppressor.mark_notified.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_metadata_not_found(
        self, controller, mock_fetcher, mock_dispatcher, mock_suppressor
    ):
        """Test that a missing video is skipped without marking."""
        mock_fetcher.fetch.return_value = None

        result = await controller.process_entry(FeedEntry("abc123", "Weekly Q&A"))

        assert result == EntryResult.METADATA_UNAVAILABLE
        mock_dispatcher.deliver.assert_not_awaited()
        mock_suppressor.mark_notified.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_metadata_fetch_error(self, controller, mock_fetcher, mock_dispatcher):
        """Test that an exhausted fetch is skipped, not raised."""
        mock_fetcher.fetch.side_effect = FetchError("HTTP 503 from videos", status=503)

        result = await controller.process_entry(FeedEntry("abc123", "Weekly Q&A"))

        assert result == EntryResult.METADATA_UNAVAILABLE
        assert mock_fetcher.fetch.await_count == 1
        mock_dispatcher.deliver.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_untagged_video_is_not_marked(
        self, controller, mock_fetcher, mock_dispatcher, mock_suppressor, sample_metadata
    ):
        """Test that videos without the marker are neither sent nor marked."""
        mock_fetcher.fetch.return_value = replace(
            sample_metadata, description="regular upload #livestream"
        )

        result = await controller.process_entry(FeedEntry("abc123", "Weekly Q&A"))

        assert result == EntryResult.NO_TAG
        mock_dispatcher.deliver.assert_not_awaited()
        mock_suppressor.mark_notified.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_partial_delivery_failure_still_marks(
        self, controller, mock_dispatcher, mock_suppressor, successful_report
    ):
        """Test that a failed destination does not allow a re-send."""
        failed = replace(
            successful_report.outcomes[1], success=False, error_message="Forbidden"
        )
        successful_report.outcomes[1] = failed

        result = await controller.process_entry(FeedEntry("abc123", "Weekly Q&A"))

        assert result == EntryResult.DELIVERED
        mock_suppressor.mark_notified.assert_awaited_once_with("abc123")

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(
        self, controller, mock_dispatcher, mock_suppressor
    ):
        """Test that a crash inside one entry reports FAILED."""
        mock_dispatcher.deliver.side_effect = RuntimeError("boom")

        result = await controller.process_entry(FeedEntry("abc123", "Weekly Q&A"))

        assert result == EntryResult.FAILED
        mock_suppressor.mark_notified.assert_not_awaited()


class TestHandleNotification:
    """Test cases for whole-payload handling."""

    @pytest.mark.asyncio
    async def test_repeated_id_in_payload_runs_once(
        self, controller, mock_fetcher, mock_dispatcher
    ):
        """Test that one payload triggers at most one pipeline per id."""
        body = build_feed(("abc123", "A"), ("abc123", "A again"), ("def456", "B"))

        results = await controller.handle_notification(body)

        assert results == [
            EntryResult.DELIVERED,
            EntryResult.DUPLICATE,
            EntryResult.DELIVERED,
        ]
        assert [c.args[0] for c in mock_fetcher.fetch.await_args_list] == [
            "abc123",
            "def456",
        ]
        assert mock_dispatcher.deliver.await_count == 2

    @pytest.mark.asyncio
    async def test_failing_entry_does_not_stop_the_rest(
        self, controller, mock_fetcher, mock_dispatcher
    ):
        """Test that later entries still run after a failure."""
        mock_fetcher.fetch.side_effect = [RuntimeError("boom"), mock_fetcher.fetch.return_value]

        results = await controller.handle_notification(
            build_feed(("abc123", "A"), ("def456", "B"))
        )

        assert results == [EntryResult.FAILED, EntryResult.DELIVERED]
        assert mock_dispatcher.deliver.await_count == 1

    @pytest.mark.asyncio
    async def test_invalid_payload_propagates(self, controller):
        """Test that a malformed payload is reported to the transport."""
        with pytest.raises(PayloadError):
            await controller.handle_notification("garbage", signature="sha1=abc")

    @pytest.mark.asyncio
    async def test_replay_is_suppressed_by_store(
        self, mock_fetcher, mock_dispatcher, sample_links, fake_redis
    ):
        """Test that the same notification pushed twice delivers once."""
        controller = FeedIngestionController(
            fetcher=mock_fetcher,
            tag_filter=TagFilter(),
            suppressor=DuplicateSuppressor(fake_redis),
            dispatcher=mock_dispatcher,
            links=sample_links,
        )
        body = build_feed(("abc123", "Weekly stream"))

        first = await controller.handle_notification(body)
        mock_fetcher.fetch.reset_mock()
        mock_dispatcher.deliver.reset_mock()
        second = await controller.handle_notification(body)

        assert first == [EntryResult.DELIVERED]
        assert second == [EntryResult.DUPLICATE]
        mock_fetcher.fetch.assert_not_awaited()
        mock_dispatcher.deliver.assert_not_awaited()


class TestManualTrigger:
    """Test cases for the manual notification path."""

    @pytest.mark.asyncio
    async def test_notify_latest_bypasses_store(
        self, controller, mock_fetcher, mock_dispatcher, mock_suppressor, successful_report
    ):
        """Test that the newest video is re-sent even if already notified."""
        mock_suppressor.exists.return_value = True

        report = await controller.notify_latest("UCxyz1234567890")

        assert report is successful_report
        mock_fetcher.list_recent.assert_awaited_once_with("UCxyz1234567890", 1)
        mock_fetcher.fetch.assert_awaited_once_with("abc123")
        mock_suppressor.exists.assert_not_awaited()
        mock_dispatcher.deliver.assert_awaited_once()
        mock_suppressor.mark_notified.assert_awaited_once_with("abc123")

    @pytest.mark.asyncio
    async def test_notify_latest_empty_channel(self, controller, mock_fetcher, mock_dispatcher):
        """Test that an empty channel sends nothing."""
        mock_fetcher.list_recent.return_value = []

        report = await controller.notify_latest("UCxyz1234567890")

        assert len(report) == 0
        mock_dispatcher.deliver.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_notify_latest_listing_error(self, controller, mock_fetcher):
        """Test that a failed listing yields an empty report."""
        mock_fetcher.list_recent.side_effect = FetchError("HTTP 403 from search", 403)

        report = await controller.notify_latest("UCxyz1234567890")

        assert len(report) == 0

    @pytest.mark.asyncio
    async def test_notify_item_without_tag(
        self, controller, mock_fetcher, mock_dispatcher, mock_suppressor, sample_metadata
    ):
        """Test that the marker is still required for manual sends."""
        mock_fetcher.fetch.return_value = replace(sample_metadata, description="vlog")

        report = await controller.notify_item("abc123")

        assert len(report) == 0
        mock_dispatcher.deliver.assert_not_awaited()
        mock_suppressor.mark_notified.assert_not_awaited()


class FakeResponse:
    """Async context manager standing in for an aiohttp response."""

    def __init__(self, status, reason="OK"):
        self.status = status
        self.reason = reason

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class TestSubscribe:
    """Test cases for hub subscription."""

    def _session(self, response=None, error=None):
        session = Mock()
        session.__aenter__ = AsyncMock(return_value=session)
        session.__aexit__ = AsyncMock(return_value=False)
        if error is not None:
            session.post = Mock(side_effect=error)
        else:
            session.post = Mock(return_value=response)
        return session

    @pytest.mark.asyncio
    async def test_subscribe_posts_form(self, controller):
        """Test the subscription request parameters."""
        session = self._session(FakeResponse(202, "Accepted"))

        with patch(
            "live_alert.components.feed_controller.aiohttp.ClientSession",
            return_value=session,
        ):
            ok = await controller.subscribe(
                "https://hub.example/publish",
                "https://www.youtube.com/xml/feeds/videos.xml?channel_id=UC1",
                "https://bot.example/websub",
            )

        assert ok is True
        session.post.assert_called_once_with(
            "https://hub.example/publish",
            data={
                "hub.mode": "subscribe",
                "hub.topic": "https://www.youtube.com/xml/feeds/videos.xml?channel_id=UC1",
                "hub.callback": "https://bot.example/websub",
            },
        )

    @pytest.mark.asyncio
    async def test_subscribe_rejected(self, controller):
        """Test that a hub error status is reported as False."""
        session = self._session(FakeResponse(400, "Bad Request"))

        with patch(
            "live_alert.components.feed_controller.aiohttp.ClientSession",
            return_value=session,
        ):
            assert await controller.subscribe("https://hub", "t", "c") is False

    @pytest.mark.asyncio
    async def test_subscribe_never_raises(self, controller):
        """Test that network errors are logged and swallowed."""
        session = self._session(error=OSError("connection refused"))

        with patch(
            "live_alert.components.feed_controller.aiohttp.ClientSession",
            return_value=session,
        ):
            assert await controller.subscribe("https://hub", "t", "c") is False
