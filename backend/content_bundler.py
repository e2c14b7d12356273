"""
Content Bundler
Fetches per-video transcripts and top comments and assembles the
bounded-length evidence text sent to the classifier.

Transcript text is trusted only when enough of the channel's videos have
one: coverage is computed from the final count over all videos before any
bundle is built, so every bundle in a request follows the same rule.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from youtube_transcript_api import YouTubeTranscriptApi

from models import ContentBundle, TranscriptCoverage, VideoEvidence, VideoRecord
from youtube_data import DEFAULT_COMMENT_COUNT, MIN_COMMENTS_FOR_ANALYSIS, YouTubeDataFetcher

logger = logging.getLogger(__name__)

# --- Bundle caps (bound classification cost) ---
MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1500
MAX_TRANSCRIPT_LENGTH = 6000
MAX_COMMENTS_IN_BUNDLE = 10
MAX_COMMENT_LENGTH = 200
MAX_COMMENTS_SECTION_LENGTH = 1500
MAX_BUNDLE_LENGTH = 9000

TRANSCRIPT_COVERAGE_THRESHOLD = 0.4
MIN_COMMENTS_IN_BUNDLE = MIN_COMMENTS_FOR_ANALYSIS


async def fetch_transcript(video_id: str) -> str:
    """Extract the transcript text of a video ('' when it has none)."""
    # Run in thread pool since youtube_transcript_api is blocking
    loop = asyncio.get_running_loop()

    def _fetch():
        ytt_api = YouTubeTranscriptApi()
        return ytt_api.fetch(video_id)

    transcript = await loop.run_in_executor(None, _fetch)
    return " ".join(segment.text for segment in transcript).strip()


class ContentBundler:
    def __init__(
        self,
        fetcher: YouTubeDataFetcher,
        transcript_loader: Optional[Callable[[str], Awaitable[str]]] = None,
        batch_size: int = 3,
        coverage_threshold: float = TRANSCRIPT_COVERAGE_THRESHOLD,
    ):
        self.fetcher = fetcher
        self.transcript_loader = transcript_loader or fetch_transcript
        self.batch_size = max(1, batch_size)
        self.coverage_threshold = coverage_threshold

    async def _collect_one(self, video: VideoRecord) -> VideoEvidence:
        """Fetch transcript and comments in parallel; either may fail independently."""
        transcript, comments = await asyncio.gather(
            self.transcript_loader(video.video_id),
            self.fetcher.get_comments(video.video_id, max_results=DEFAULT_COMMENT_COUNT),
            return_exceptions=True,
        )
        if isinstance(transcript, Exception):
            logger.warning(f"Transcript unavailable for {video.video_id}: {transcript!r}")
            transcript = ""
        if isinstance(comments, Exception):
            logger.warning(f"Comments unavailable for {video.video_id}: {comments!r}")
            comments = []
        return VideoEvidence(video=video, transcript=transcript or "", comments=tuple(comments))

    async def collect(self, videos: list[VideoRecord]) -> list[VideoEvidence]:
        """Gather evidence for all videos in sequential fixed-size batches."""
        evidence: list[VideoEvidence] = []
        for start in range(0, len(videos), self.batch_size):
            batch = videos[start:start + self.batch_size]
            evidence.extend(await asyncio.gather(*(self._collect_one(v) for v in batch)))
        return evidence

    def coverage(self, evidence: list[VideoEvidence]) -> TranscriptCoverage:
        return TranscriptCoverage(
            available=sum(1 for e in evidence if e.has_transcript),
            total=len(evidence),
            threshold=self.coverage_threshold,
        )

    def build(self, evidence: VideoEvidence, include_transcript: bool) -> ContentBundle:
        """Assemble one video's bundle; title and description are always present."""
        video = evidence.video
        title = video.title[:MAX_TITLE_LENGTH]
        description = video.description[:MAX_DESCRIPTION_LENGTH]
        sections = [f"Title: {title}", f"Description: {description or 'No description'}"]

        use_transcript = include_transcript and evidence.has_transcript
        if use_transcript:
            sections.append(f"Transcript excerpt:\n{evidence.transcript[:MAX_TRANSCRIPT_LENGTH]}")

        use_comments = len(evidence.comments) >= MIN_COMMENTS_IN_BUNDLE
        if use_comments:
            top = evidence.comments[:MAX_COMMENTS_IN_BUNDLE]
            lines = "\n".join(f"- {c.text[:MAX_COMMENT_LENGTH]}" for c in top)
            sections.append(f"Top comments:\n{lines[:MAX_COMMENTS_SECTION_LENGTH]}")

        return ContentBundle(
            video_id=video.video_id,
            title=title,
            description=description,
            text="\n\n".join(sections)[:MAX_BUNDLE_LENGTH],
            includes_transcript=use_transcript,
            includes_comments=use_comments,
        )
