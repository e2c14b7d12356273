import pytest
import sys
from pathlib import Path
from unittest.mock import AsyncMock

# Add backend directory to path so imports work
backend_path = Path(__file__).parent.parent
sys.path.append(str(backend_path))

from models import CATEGORIES, Channel, ClassificationResult, Comment, EngagementMetrics, PerVideoScore, VideoRecord


def make_video(video_id="vid00000001", title="Test Video", description="", published_at="2026-01-01T00:00:00Z",
               views=1000, likes=50, comments=5):
    return VideoRecord(
        video_id=video_id,
        title=title,
        description=description,
        published_at=published_at,
        view_count=views,
        like_count=likes,
        comment_count=comments,
    )


def make_scored(scores=None, views=1000, engagement="normal", controversy=0.0, velocity=100.0, video_id="vid00000001"):
    full = {c: 0.0 for c in CATEGORIES}
    full.update(scores or {})
    return PerVideoScore(
        video=make_video(video_id=video_id, views=views),
        classification=ClassificationResult(scores=full),
        engagement=EngagementMetrics(
            like_to_view_ratio=0.02,
            comment_to_view_ratio=0.001,
            engagement_velocity=velocity,
            controversy_score=controversy,
            audience_engagement=engagement,
        ),
    )


def make_comments(*texts):
    return [Comment(text=t, likes=0, author="viewer") for t in texts]


@pytest.fixture
def mock_video_id():
    return "dQw4w9WgXcQ"


@pytest.fixture
def channel():
    return Channel(id="UCabcdefghijklmnopqrstuv", title="Test Channel", handle="@testchannel")


@pytest.fixture
def fake_fetcher(channel):
    """YouTubeDataFetcher stand-in with canned responses for a five-video channel."""
    videos = [make_video(video_id=f"vid0000000{i}", title=f"Video {i}") for i in range(5)]
    fetcher = AsyncMock()
    fetcher.search_channel.return_value = channel.id
    fetcher.get_video_channel_id.return_value = channel.id
    fetcher.get_channel_info.return_value = channel
    fetcher.list_recent_video_ids.return_value = [v.video_id for v in videos]
    fetcher.get_video_details.return_value = videos
    fetcher.get_comments.return_value = []
    return fetcher
