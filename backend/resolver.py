"""
Query Resolver
Maps a free-form channel reference (handle, video URL, channel URL,
search phrase) to a canonical YouTube channel id.
"""

import re
import logging
from enum import Enum

from errors import ChannelNotFoundError
from youtube_data import YouTubeDataFetcher

logger = logging.getLogger(__name__)

HANDLE_PATTERN = re.compile(r"^@[\w.-]+$")
CHANNEL_ID_PATTERN = re.compile(r"/channel/(UC[\w-]+)")
CHANNEL_NAME_PATTERN = re.compile(r"youtube\.com/(?:(@[\w.-]+)|(?:c|user)/([\w.-]+))", re.IGNORECASE)
# Case-insensitive hosts and paths; the captured id keeps its original case
VIDEO_ID_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?(?:.*&)?v=|youtu\.be/)([^&\n?#/]+)", re.IGNORECASE),
    re.compile(r"youtube\.com/embed/([^&\n?#/]+)", re.IGNORECASE),
    re.compile(r"youtube\.com/v/([^&\n?#/]+)", re.IGNORECASE),
    re.compile(r"youtube\.com/shorts/([^&\n?#/]+)", re.IGNORECASE),
]


class QueryKind(str, Enum):
    HANDLE = "handle"
    VIDEO_URL = "video_url"
    CHANNEL_URL = "channel_url"
    SEARCH_TERM = "search_term"


def classify_query(query: str) -> QueryKind:
    """Decide which lookup strategy a raw query needs."""
    q = query.strip()
    lowered = q.lower()
    if HANDLE_PATTERN.match(q):
        return QueryKind.HANDLE
    if "youtube.com/watch" in lowered or "youtu.be/" in lowered or "youtube.com/shorts/" in lowered:
        return QueryKind.VIDEO_URL
    if "youtube.com/" in lowered:
        return QueryKind.CHANNEL_URL
    return QueryKind.SEARCH_TERM


def extract_video_id(url: str) -> str:
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match and match.group(1):
            return match.group(1)
    return ""


def extract_channel_id(url: str) -> str:
    match = CHANNEL_ID_PATTERN.search(url)
    return match.group(1) if match else ""


def extract_channel_name(url: str) -> str:
    """Handle or legacy /c/ /user/ name embedded in a channel URL."""
    match = CHANNEL_NAME_PATTERN.search(url)
    if not match:
        return ""
    return match.group(1) or match.group(2) or ""


class QueryResolver:
    """Resolves queries to channel ids. One external call chain per query, no retries."""

    def __init__(self, fetcher: YouTubeDataFetcher):
        self.fetcher = fetcher

    async def resolve(self, query: str) -> str:
        """
        Return the channel id for a query.

        Raises:
            ChannelNotFoundError: when no strategy yields a channel id
        """
        q = query.strip()
        kind = classify_query(q)
        channel_id = ""

        if kind == QueryKind.HANDLE:
            channel_id = await self.fetcher.search_channel(q)

        elif kind == QueryKind.VIDEO_URL:
            video_id = extract_video_id(q)
            if video_id:
                channel_id = await self.fetcher.get_video_channel_id(video_id)
            else:
                # Unparseable watch URL: treat it like any other channel URL
                kind = QueryKind.CHANNEL_URL

        if kind == QueryKind.CHANNEL_URL:
            channel_id = extract_channel_id(q)
            if not channel_id:
                channel_id = await self.fetcher.search_channel(extract_channel_name(q) or q)

        elif kind == QueryKind.SEARCH_TERM:
            channel_id = await self.fetcher.search_channel(q)

        if not channel_id:
            logger.info(f"No channel found for query '{q}' ({kind.value})")
            raise ChannelNotFoundError(f"No channel matches '{q}'")

        logger.info(f"📺 Resolved '{q}' ({kind.value}) -> {channel_id}")
        return channel_id
