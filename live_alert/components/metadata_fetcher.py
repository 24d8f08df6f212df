"""
YouTube Data API client for the Live Alert system.

This module looks up video metadata with bounded retries, honouring the
API's rate-limit hints.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp
from aiohttp import ClientTimeout
from dateutil import parser as date_parser

from ..models.item import ItemMetadata
from ..utils.error_handling import FetchError, linear_backoff, parse_retry_after

logger = logging.getLogger(__name__)

API_BASE_URL = "https://www.googleapis.com/youtube/v3"


class MetadataFetcher:
    """Fetches video metadata from the YouTube Data API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = API_BASE_URL,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        max_retry_after: float = 30.0,
        timeout: int = 10,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the fetcher.

        Args:
            api_key: YouTube Data API key
            base_url: API root URL
            max_retries: Maximum attempts per request
            retry_delay: Base delay in seconds, multiplied by the attempt number
            max_retry_after: Upper bound for delays taken from Retry-After
            timeout: Per-request timeout in seconds
            sleep: Coroutine used to wait between attempts
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_retry_after = max_retry_after
        self.timeout = timeout
        self._sleep = sleep
        self.session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=ClientTimeout(total=self.timeout),
                headers={"User-Agent": "Live-Alert/1.0 (Metadata Fetcher)"},
            )
        return self.session

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None

    async def fetch(self, item_id: str) -> Optional[ItemMetadata]:
        """
        Fetch metadata for a single video.

        Args:
            item_id: YouTube video id

        Returns:
            ItemMetadata, or None if the API knows no such video

        Raises:
            FetchError: If every attempt failed or the snippet is malformed
        """
        data = await self._request_with_retry(
            "videos", {"part": "snippet", "id": item_id}
        )

        items = data.get("items") or []
        if not items:
            logger.warning(f"No video found with ID: {item_id}")
            return None

        return self._parse_snippet(item_id, items[0].get("snippet", {}))

    async def list_recent(
        self, channel_id: str, max_results: int = 10
    ) -> List[ItemMetadata]:
        """
        List the most recent videos on a channel, newest first.

        Search results carry a truncated description; callers that need the
        full text should ``fetch`` the video afterwards.
        """
        data = await self._request_with_retry(
            "search",
            {
                "part": "snippet",
                "channelId": channel_id,
                "maxResults": max_results,
                "order": "date",
                "type": "video",
            },
        )

        items = data.get("items") or []
        if not items:
            logger.warning(f"No videos found for channel: {channel_id}")
            return []

        videos = []
        for item in items:
            video_id = (item.get("id") or {}).get("videoId")
            if not video_id:
                continue
            videos.append(self._parse_snippet(video_id, item.get("snippet", {})))
        return videos

    def _parse_snippet(self, item_id: str, snippet: Dict[str, Any]) -> ItemMetadata:
        thumbnails = snippet.get("thumbnails") or {}
        thumbnail_url = None
        for size in ("high", "medium", "default"):
            if thumbnails.get(size, {}).get("url"):
                thumbnail_url = thumbnails[size]["url"]
                break

        published_raw = snippet.get("publishedAt")
        published_at = None
        if published_raw:
            try:
                published_at = date_parser.isoparse(published_raw)
            except ValueError:
                pass

        if published_at is None:
            logger.warning(
                f"Could not parse publishedAt '{published_raw}' for video {item_id}"
            )
            published_at = datetime.now(timezone.utc)

        metadata = ItemMetadata(
            id=item_id,
            title=snippet.get("title", ""),
            description=snippet.get("description", ""),
            published_at=published_at,
            channel_id=snippet.get("channelId", ""),
            channel_title=snippet.get("channelTitle", ""),
            thumbnail_url=thumbnail_url,
        )
        try:
            metadata.validate()
        except ValueError as e:
            raise FetchError(f"Malformed metadata for video {item_id}: {e}")
        return metadata

    async def _request(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Perform one API request; raise FetchError on any failure."""
        query = dict(params, key=self.api_key)
        url = f"{self.base_url}/{endpoint}"

        try:
            async with self._get_session().get(url, params=query) as response:
                if response.status >= 400:
                    raise FetchError(
                        f"HTTP {response.status} from {endpoint}",
                        status=response.status,
                        retry_after=response.headers.get("Retry-After"),
                    )
                return await response.json()
        except aiohttp.ClientError as e:
            raise FetchError(f"Request to {endpoint} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise FetchError(f"Request to {endpoint} timed out") from e

    async def _request_with_retry(
        self, endpoint: str, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        last_error: Optional[FetchError] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                return await self._request(endpoint, params)
            except FetchError as e:
                last_error = e

            if attempt == self.max_retries:
                break

            default_delay = linear_backoff(attempt, self.retry_delay)
            if last_error.status == 429:
                delay = parse_retry_after(
                    last_error.retry_after, default_delay, self.max_retry_after
                )
                logger.warning(
                    f"Rate limited. Retrying in {delay:.1f}s "
                    f"(attempt {attempt}/{self.max_retries})"
                )
            else:
                delay = default_delay
                logger.warning(
                    f"Request failed: {last_error}. Retrying in {delay:.1f}s "
                    f"(attempt {attempt}/{self.max_retries})"
                )
            await self._sleep(delay)

        logger.error(
            f"Request to {endpoint} failed after {self.max_retries} attempts: "
            f"{last_error}"
        )
        raise last_error
