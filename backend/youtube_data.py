"""
YouTube Data Fetcher
Resolves channels and fetches recent videos, statistics and comments
using the YouTube Data API
"""

import re
import httpx
import logging
from typing import Optional

from errors import YouTubeAPIError
from models import Channel, Comment, CommentAnalysis, VideoRecord

logger = logging.getLogger(__name__)

YOUTUBE_API_BASE = "https://www.googleapis.com/youtube/v3"

# --- Comment analysis constants ---
MAX_COMMENT_TEXT_LENGTH = 1000     # Truncation limit per comment (ReDoS prevention)
DEFAULT_COMMENT_COUNT = 20         # Top comments fetched per video
MIN_COMMENTS_FOR_ANALYSIS = 3      # Fewer comments than this are not analyzed


class YouTubeDataFetcher:
    """
    Thin async client over the YouTube Data API v3.
    One instance is created per process and shared by requests;
    pass a custom httpx.AsyncClient to route calls elsewhere (tests).
    """

    def __init__(self, api_key: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        """Initialize with YouTube Data API key and optional HTTP client."""
        self.api_key = api_key
        self.client = client or httpx.AsyncClient(timeout=15.0)

    async def __aenter__(self) -> "YouTubeDataFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _make_request(self, endpoint: str, params: dict) -> dict:
        """GET an API endpoint and return the decoded body; raises YouTubeAPIError on failure."""
        url = f"{YOUTUBE_API_BASE}/{endpoint}"
        response = await self.client.get(url, params={**params, "key": self.api_key})
        if response.status_code != 200:
            message = ""
            try:
                message = response.json().get("error", {}).get("message", "")
            except ValueError:
                pass
            raise YouTubeAPIError(endpoint, response.status_code, message)
        return response.json()

    # ------------------------------------------------------------------ #
    #  Channel resolution                                                #
    # ------------------------------------------------------------------ #

    async def search_channel(self, query: str) -> str:
        """Return the channel id of the best search match, or '' if none."""
        data = await self._make_request("search", {
            "part": "snippet",
            "type": "channel",
            "q": query,
            "maxResults": 1,
        })
        items = data.get("items") or []
        if not items:
            return ""
        item = items[0]
        return (item.get("snippet") or {}).get("channelId") or (item.get("id") or {}).get("channelId") or ""

    async def get_video_channel_id(self, video_id: str) -> str:
        """Return the id of the channel that owns a video, or '' if unknown."""
        data = await self._make_request("videos", {"part": "snippet", "id": video_id})
        items = data.get("items") or []
        if not items:
            return ""
        return (items[0].get("snippet") or {}).get("channelId", "")

    async def get_channel_info(self, channel_id: str) -> Channel:
        """Fetch display name, handle and thumbnail for a channel."""
        data = await self._make_request("channels", {"part": "snippet", "id": channel_id})
        items = data.get("items") or []
        snippet = items[0].get("snippet", {}) if items else {}

        custom_url = snippet.get("customUrl")
        handle = None
        if custom_url:
            handle = custom_url if custom_url.startswith("@") else f"@{custom_url}"

        return Channel(
            id=items[0].get("id", channel_id) if items else channel_id,
            title=snippet.get("title", ""),
            handle=handle,
            thumbnail=((snippet.get("thumbnails") or {}).get("default") or {}).get("url"),
        )

    # ------------------------------------------------------------------ #
    #  Videos                                                            #
    # ------------------------------------------------------------------ #

    async def list_recent_video_ids(self, channel_id: str, max_results: int = 5) -> list[str]:
        """Ids of the channel's most recent uploads, newest first."""
        data = await self._make_request("search", {
            "part": "snippet",
            "channelId": channel_id,
            "order": "date",
            "type": "video",
            "maxResults": max_results,
        })
        ids = [(item.get("id") or {}).get("videoId") for item in data.get("items", [])]
        return [vid for vid in ids if vid][:max_results]

    async def get_video_details(self, video_ids: list[str]) -> list[VideoRecord]:
        """Fetch snippet + statistics for a batch of ids in one call, preserving input order."""
        if not video_ids:
            return []
        data = await self._make_request("videos", {
            "part": "snippet,statistics",
            "id": ",".join(video_ids),
            "maxResults": len(video_ids),
        })

        by_id = {}
        for item in data.get("items", []):
            snippet = item.get("snippet") or {}
            stats = item.get("statistics") or {}
            by_id[item["id"]] = VideoRecord(
                video_id=item["id"],
                title=snippet.get("title") or "Untitled",
                description=snippet.get("description", ""),
                published_at=snippet.get("publishedAt", ""),
                view_count=int(stats.get("viewCount", 0) or 0),
                like_count=int(stats.get("likeCount", 0) or 0),
                comment_count=int(stats.get("commentCount", 0) or 0),
            )
        # The API does not guarantee ordering; keep recency order from the search
        return [by_id[vid] for vid in video_ids if vid in by_id]

    async def get_comments(self, video_id: str, max_results: int = DEFAULT_COMMENT_COUNT) -> list[Comment]:
        """Fetch top comments (relevance order). Raises YouTubeAPIError when comments are unavailable."""
        data = await self._make_request("commentThreads", {
            "part": "snippet",
            "videoId": video_id,
            "maxResults": min(max_results, 100),
            "order": "relevance",
            "textFormat": "plainText",
        })
        comments = []
        for item in data.get("items", []):
            snippet = item["snippet"]["topLevelComment"]["snippet"]
            comments.append(Comment(
                text=snippet.get("textOriginal") or snippet.get("textDisplay", ""),
                likes=snippet.get("likeCount", 0),
                author=snippet.get("authorDisplayName", ""),
            ))
        return comments

    async def close(self) -> None:
        await self.client.aclose()


# Parent/community warning patterns - pre-compiled at module load
COMMUNITY_FLAG_PATTERNS = [
    (re.compile(p, re.IGNORECASE), label) for p, label in [
    (r"not (for|suitable for|appropriate for|ok for) (kids|children|little ones)", "Viewers say not suitable for kids"),
    (r"\b(my|our) (kids?|son|daughter|children)\b.{0,40}\b(shouldn'?t|should not|won'?t|will not|not allowed)\b", "Parents restricting viewing"),
    (r"\binappropriate\b", "Inappropriate content reported"),
    (r"\b(so much|too much|lots of|a lot of) (swearing|cursing|cussing|language)\b|\bswear(s|ing)? (a lot|so much)\b", "Strong language reported"),
    (r"\b(gambl(e|ing)|casino|betting|stake\.com)\b", "Gambling concerns"),
    (r"\b(scam|scammer|scamming)\b", "Scam reports"),
    (r"\b(sponsored|ad read|paid promotion|too many ads)\b", "Heavy sponsorship noticed"),
    (r"\b(disturbing|traumati[sz]ing|nightmares?)\b", "Disturbing content reported"),
    (r"\b(gore|gory|so violent|too violent)\b", "Violence reported"),
    (r"\b(clickbait|click bait)\b", "Clickbait reported"),
]]

POSITIVE_WORDS = {
    "love", "loved", "great", "awesome", "amazing", "best", "good", "nice",
    "helpful", "thanks", "thank", "funny", "beautiful", "wholesome", "cool",
    "favorite", "favourite", "learned", "fun", "enjoyed", "perfect", "educational",
}

NEGATIVE_WORDS = {
    "hate", "hated", "worst", "bad", "terrible", "awful", "boring", "stupid",
    "gross", "disgusting", "trash", "garbage", "cringe", "scam", "fake",
    "toxic", "inappropriate", "disappointed", "annoying", "horrible", "offensive",
}

_WORD_RE = re.compile(r"[a-z']+")


def comment_sentiment(text: str) -> float:
    """Lexicon sentiment of a single comment in [-1, 1]."""
    words = _WORD_RE.findall(text[:MAX_COMMENT_TEXT_LENGTH].lower())
    positive = sum(1 for w in words if w in POSITIVE_WORDS)
    negative = sum(1 for w in words if w in NEGATIVE_WORDS)
    if positive + negative == 0:
        return 0.0
    return (positive - negative) / (positive + negative)


def analyze_comments(comments: list[Comment]) -> Optional[CommentAnalysis]:
    """
    Summarize top comments into sentiment and community flags.
    Returns None when too few comments are available to be meaningful.
    """
    if len(comments) < MIN_COMMENTS_FOR_ANALYSIS:
        return None

    flags: list[str] = []
    sentiment_total = 0.0
    for comment in comments:
        text = comment.text[:MAX_COMMENT_TEXT_LENGTH]  # Truncate to prevent ReDoS
        sentiment_total += comment_sentiment(text)
        for pattern, label in COMMUNITY_FLAG_PATTERNS:
            if label not in flags and pattern.search(text):
                flags.append(label)

    return CommentAnalysis(
        total_comments=len(comments),
        avg_sentiment=round(sentiment_total / len(comments), 2),
        community_flags=tuple(flags),
    )
