"""
Notification formatting for the Live Alert system.

Renders a livestream announcement as Telegram HTML: a Turkish headline, the
video title and start time, and a watch link for every streaming platform.
"""

import html
import re
from datetime import datetime, timezone
from typing import Dict

from dateutil import tz

from ..interfaces import INotificationFormatter
from ..models.config import PlatformLinks
from ..models.notification import NotificationRecord

HEADLINE = "🔴 <b>YAYINDA!</b>"
LINKS_HEADER = "📺 <b>İzleme Linkleri:</b>"
CALL_TO_ACTION = "👉 Canlı yayını kaçırmayın! Tüm platformlarda aynı anda yayındayız."
HASHTAGS = "#yayın #canlı"

# platform -> (line label, link text)
PLATFORM_LABELS: Dict[str, tuple] = {
    "youtube": ("YouTube", "YouTube'da İzle"),
    "x": ("X (Twitter)", "X'te İzle"),
    "kick": ("Kick", "Kick'te İzle"),
    "twitch": ("Twitch", "Twitch'te İzle"),
    "instagram": ("Instagram", "Instagram'da İzle"),
    "linkedin": ("LinkedIn", "LinkedIn'de İzle"),
}

LINK_LINE_PATTERN = re.compile(r'^🔹 (?P<label>.+?): <a href="(?P<url>[^"]*)">', re.M)


class NotificationFormatter(INotificationFormatter):
    """Formats notification records into Telegram HTML messages."""

    def __init__(self, timezone_name: str = "Europe/Istanbul"):
        """
        Initialize the formatter.

        Args:
            timezone_name: IANA zone used to display the publication time

        Raises:
            ValueError: If the zone is unknown
        """
        self.timezone = tz.gettz(timezone_name)
        if self.timezone is None:
            raise ValueError(f"Unknown timezone: {timezone_name}")
        self._label_to_platform = {
            label: platform for platform, (label, _) in PLATFORM_LABELS.items()
        }

    def format(self, record: NotificationRecord) -> str:
        """
        Render a notification record.

        Args:
            record: The qualifying video and the links to advertise

        Returns:
            Message text using Telegram's HTML markup
        """
        item = record.item
        lines = [
            HEADLINE,
            "",
            f"<b>{html.escape(item.title, quote=False)}</b>",
            "",
            f"📅 {self.format_published_at(item.published_at)}",
            "",
            LINKS_HEADER,
        ]

        for platform, url in record.links.as_dict().items():
            label, link_text = PLATFORM_LABELS[platform]
            lines.append(
                f'🔹 {label}: <a href="{html.escape(url, quote=True)}">{link_text}</a>'
            )

        lines.extend(["", CALL_TO_ACTION, "", HASHTAGS])
        return "\n".join(lines)

    def format_published_at(self, published_at: datetime) -> str:
        """Render a timestamp as ``dd.mm.yyyy HH:MM`` in the display zone."""
        if published_at.tzinfo is None:
            published_at = published_at.replace(tzinfo=timezone.utc)
        return published_at.astimezone(self.timezone).strftime("%d.%m.%Y %H:%M")

    def extract_links(self, text: str) -> PlatformLinks:
        """
        Recover the platform links from a rendered message.

        Raises:
            ValueError: If a platform line is missing from the text
        """
        found = {}
        for match in LINK_LINE_PATTERN.finditer(text):
            platform = self._label_to_platform.get(match.group("label"))
            if platform is not None:
                found[platform] = html.unescape(match.group("url"))

        missing = [p for p in PlatformLinks.PLATFORMS if p not in found]
        if missing:
            raise ValueError(f"Message is missing links for: {', '.join(missing)}")

        return PlatformLinks(**found)
