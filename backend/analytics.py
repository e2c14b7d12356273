"""
Analytics hand-off
Summarizes each request (success or failure) into a record for an
external analytics/persistence collaborator. Recording happens after the
response is produced and never affects it.
"""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Optional, Protocol

from models import ChannelReport
from resolver import classify_query

logger = logging.getLogger(__name__)

HIGH_CONTROVERSY_THRESHOLD = 0.7
MAX_LOGGED_QUERY_LENGTH = 100


@dataclass(frozen=True)
class AnalyticsRecord:
    query: str
    query_type: str
    analysis_success: bool
    channel_id: Optional[str] = None
    age_band: Optional[str] = None
    video_count: int = 0
    transcript_coverage_percent: int = 0
    warnings_count: int = 0
    high_controversy_videos_count: int = 0
    suspicious_engagement_videos_count: int = 0
    avg_engagement_velocity: int = 0
    error_type: Optional[str] = None
    total_prompt_tokens: int = 0
    total_completion_tokens: int = 0
    total_tokens: int = 0
    llm_requests_count: int = 0


def build_record(
    query: str,
    report: Optional[ChannelReport] = None,
    error_type: Optional[str] = None,
    channel_id: Optional[str] = None,
) -> AnalyticsRecord:
    """Build the analytics record for a finished request."""
    q = (query or "").strip()[:MAX_LOGGED_QUERY_LENGTH]
    query_type = classify_query(q).value if q else "search_term"
    if report is None:
        return AnalyticsRecord(query=q, query_type=query_type, analysis_success=False,
                               channel_id=channel_id, error_type=error_type or "ANALYSIS_FAILED")

    velocities = [v.engagement.engagement_velocity for v in report.videos if v.engagement.engagement_velocity > 0]
    return AnalyticsRecord(
        query=q,
        query_type=query_type,
        analysis_success=True,
        channel_id=report.channel.id,
        age_band=report.aggregate.age_band,
        video_count=len(report.videos),
        transcript_coverage_percent=report.coverage.percentage,
        warnings_count=len(report.warnings),
        high_controversy_videos_count=sum(
            1 for v in report.videos if v.engagement.controversy_score > HIGH_CONTROVERSY_THRESHOLD
        ),
        suspicious_engagement_videos_count=sum(
            1 for v in report.videos if v.engagement.audience_engagement == "suspicious"
        ),
        avg_engagement_velocity=round(sum(velocities) / len(velocities)) if velocities else 0,
        total_prompt_tokens=report.usage.prompt_tokens,
        total_completion_tokens=report.usage.completion_tokens,
        total_tokens=report.usage.total_tokens,
        llm_requests_count=report.usage.requests,
    )


class AnalyticsRecorder(Protocol):
    def record(self, record: AnalyticsRecord) -> None: ...


class LoggingAnalyticsRecorder:
    """Default recorder: one structured log line per request."""

    def record(self, record: AnalyticsRecord) -> None:
        logger.info(f"analytics {json.dumps(asdict(record), sort_keys=True)}")


def safe_record(recorder: AnalyticsRecorder, record: AnalyticsRecord) -> None:
    """Fire-and-forget wrapper: recorder failures are logged, never raised."""
    try:
        recorder.record(record)
    except Exception as e:
        logger.error(f"Analytics recording failed: {e}")
