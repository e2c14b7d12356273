"""Channel Family Rater - Channel Analyzer
Copyright (c) 2026 beautifulplanet
Licensed under MIT License

Core pipeline that turns a channel reference into a family rating:
resolve -> fetch recent videos -> gather evidence -> classify + engagement
-> aggregate.

Data provided by YouTube Data API
https://developers.google.com/youtube
"""

import asyncio
import logging
from datetime import datetime, timezone
from functools import reduce
from typing import Awaitable, Callable, Optional

from aggregator import build_report
from classifier import ContentClassifier
from config import DEFAULT_ANALYSIS_TIMEOUT_SECONDS, DEFAULT_RECENT_VIDEO_COUNT, DEFAULT_VIDEO_BATCH_SIZE
from content_bundler import ContentBundler
from engagement import age_in_days, compute_engagement
from errors import AnalysisTimeoutError, MissingQueryError
from models import ChannelReport, PerVideoScore, TokenUsage, TranscriptCoverage, VideoEvidence
from resolver import QueryResolver
from video_fetcher import VideoFetcher
from youtube_data import YouTubeDataFetcher, analyze_comments

logger = logging.getLogger(__name__)


def coverage_warning(coverage: TranscriptCoverage) -> Optional[str]:
    if coverage.sufficient:
        return None
    missing = coverage.total - coverage.available
    return (
        f"{missing} transcripts missing (out of {coverage.total} videos analyzed). "
        f"Only {coverage.percentage}% of videos had transcripts available, so transcripts were "
        f"not used and spoken content could not be evaluated."
    )


def fallback_warning(fallback_count: int, total: int) -> Optional[str]:
    if not fallback_count:
        return None
    return (
        f"Content classification failed for {fallback_count} of {total} videos. "
        f"Keyword-based fallback ratings were used for those videos, so confidence is reduced."
    )


class ChannelAnalyzer:
    """
    Main analysis engine that:
    1. Resolves the query to a channel
    2. Fetches the channel's most recent videos
    3. Gathers transcripts and comments per video
    4. Classifies each video and computes engagement signals
    5. Aggregates everything into an age band and verdict

    External clients are constructed once per process and injected.
    """

    def __init__(
        self,
        fetcher: YouTubeDataFetcher,
        classifier: ContentClassifier,
        video_count: int = DEFAULT_RECENT_VIDEO_COUNT,
        batch_size: int = DEFAULT_VIDEO_BATCH_SIZE,
        timeout_seconds: float = DEFAULT_ANALYSIS_TIMEOUT_SECONDS,
        transcript_loader: Optional[Callable[[str], Awaitable[str]]] = None,
    ):
        self.resolver = QueryResolver(fetcher)
        self.video_fetcher = VideoFetcher(fetcher, video_count)
        self.bundler = ContentBundler(fetcher, transcript_loader=transcript_loader, batch_size=batch_size)
        self.classifier = classifier
        self.batch_size = max(1, batch_size)
        self.timeout_seconds = timeout_seconds

    async def analyze(self, query: str) -> ChannelReport:
        """
        Rate a channel.

        Raises:
            MissingQueryError: empty query
            ChannelNotFoundError / NoVideosFoundError: resolution failures
            AnalysisTimeoutError: the request deadline expired (no partial result)
        """
        q = (query or "").strip()
        if not q:
            raise MissingQueryError("Query is empty")

        try:
            return await asyncio.wait_for(self._run(q), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(f"Analysis of '{q}' exceeded {self.timeout_seconds}s deadline")
            raise AnalysisTimeoutError(f"Analysis exceeded {self.timeout_seconds:g}s")

    async def _run(self, query: str) -> ChannelReport:
        channel_id = await self.resolver.resolve(query)
        channel, videos = await self.video_fetcher.fetch(channel_id)

        evidence = await self.bundler.collect(videos)
        coverage = self.bundler.coverage(evidence)
        logger.info(f"Transcript coverage: {coverage.available}/{coverage.total} "
                    f"({coverage.percentage}%), sufficient={coverage.sufficient}")

        now = datetime.now(timezone.utc)
        scored: list[PerVideoScore] = []
        for start in range(0, len(evidence), self.batch_size):
            batch = evidence[start:start + self.batch_size]
            scored.extend(await asyncio.gather(
                *(self._score_video(e, coverage.sufficient, now) for e in batch)
            ))

        fallback_count = sum(1 for v in scored if v.classification.source == "fallback")
        warnings = [w for w in (coverage_warning(coverage), fallback_warning(fallback_count, len(scored))) if w]
        usage = reduce(lambda acc, v: acc + v.classification.usage, scored, TokenUsage())

        aggregate = build_report(scored)
        logger.info(f"⭐ '{channel.title or channel_id}' rated {aggregate.age_band}: {aggregate.verdict}")

        return ChannelReport(
            query=query,
            channel=channel,
            videos=tuple(scored),
            aggregate=aggregate,
            coverage=coverage,
            warnings=tuple(warnings),
            usage=usage,
        )

    async def _score_video(self, evidence: VideoEvidence, include_transcript: bool, now: datetime) -> PerVideoScore:
        video = evidence.video
        bundle = self.bundler.build(evidence, include_transcript)
        classification = await self.classifier.classify(bundle)

        comment_analysis = analyze_comments(list(evidence.comments))
        engagement = compute_engagement(
            video.view_count,
            video.like_count,
            video.comment_count,
            age_in_days(video.published_at, now),
            comment_analysis,
        )
        return PerVideoScore(
            video=video,
            classification=classification,
            engagement=engagement,
            comment_analysis=comment_analysis,
            transcript_available=evidence.has_transcript,
        )
