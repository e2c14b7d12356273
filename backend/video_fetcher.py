"""
Video Fetcher
Loads channel info and the channel's most recent videos with statistics.
"""

import asyncio
import logging

from config import DEFAULT_RECENT_VIDEO_COUNT
from errors import NoVideosFoundError
from models import Channel, VideoRecord
from youtube_data import YouTubeDataFetcher

logger = logging.getLogger(__name__)


class VideoFetcher:
    def __init__(self, fetcher: YouTubeDataFetcher, video_count: int = DEFAULT_RECENT_VIDEO_COUNT):
        self.fetcher = fetcher
        self.video_count = video_count

    async def fetch(self, channel_id: str) -> tuple[Channel, list[VideoRecord]]:
        """
        Fetch channel info and recent video ids concurrently, then the
        per-video metadata for the whole id batch in one call.

        Returns:
            (channel, videos) with videos ordered newest first

        Raises:
            NoVideosFoundError: when the channel has no retrievable videos
        """
        channel, video_ids = await asyncio.gather(
            self.fetcher.get_channel_info(channel_id),
            self.fetcher.list_recent_video_ids(channel_id, self.video_count),
        )
        if not video_ids:
            raise NoVideosFoundError(f"Channel {channel_id} has no public videos", channel_id=channel_id)

        videos = await self.fetcher.get_video_details(video_ids)
        if not videos:
            raise NoVideosFoundError(f"No video details available for channel {channel_id}", channel_id=channel_id)

        logger.info(f"Fetched {len(videos)} recent videos for '{channel.title or channel_id}'")
        return channel, videos
