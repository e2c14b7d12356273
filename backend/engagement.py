"""
Engagement Analyzer
Popularity / controversy / audience-engagement signals computed purely
from a video's numeric statistics (no external calls).
"""

from datetime import datetime, timezone
from typing import Optional

from models import CommentAnalysis, EngagementMetrics

# Controversy contributions (summed, capped at 1.0)
HIGH_COMMENT_RATIO = 0.01
VERY_HIGH_COMMENT_RATIO = 0.02
LOW_LIKE_RATIO = 0.005
LOW_LIKE_MIN_VIEWS = 1000
NEGATIVE_SENTIMENT_THRESHOLD = -0.1
COMMUNITY_FLAG_WEIGHT = 0.1
MAX_COMMUNITY_FLAG_CONTRIBUTION = 0.4

# Audience engagement classification
SUSPICIOUS_COMMENT_RATIO = 0.03
SUSPICIOUS_CONTROVERSY = 0.8
HIGH_LIKE_RATIO = 0.05
HIGH_ENGAGEMENT_COMMENT_RATIO = 0.015
LOW_ENGAGEMENT_LIKE_RATIO = 0.002
LOW_ENGAGEMENT_COMMENT_RATIO = 0.001
LOW_ENGAGEMENT_MIN_VIEWS = 1000


def age_in_days(published_at: str, now: Optional[datetime] = None) -> float:
    """Days since publication, floored at 1 (same-day uploads count as one day)."""
    now = now or datetime.now(timezone.utc)
    try:
        published = datetime.fromisoformat(published_at.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return 1.0
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    return max(1.0, (now - published).total_seconds() / 86400)


def controversy_score(
    like_ratio: float,
    comment_ratio: float,
    views: int,
    comment_analysis: Optional[CommentAnalysis] = None,
) -> float:
    score = 0.0
    if comment_ratio > HIGH_COMMENT_RATIO:
        score += 0.3
        if comment_ratio > VERY_HIGH_COMMENT_RATIO:
            score += 0.2
    if like_ratio < LOW_LIKE_RATIO and views > LOW_LIKE_MIN_VIEWS:
        score += 0.2
    if comment_analysis is not None:
        if comment_analysis.avg_sentiment < NEGATIVE_SENTIMENT_THRESHOLD:
            score += 0.3
        score += min(MAX_COMMUNITY_FLAG_CONTRIBUTION,
                     len(comment_analysis.community_flags) * COMMUNITY_FLAG_WEIGHT)
    # Rounded so that threshold checks are not skewed by float drift (0.3+0.2+0.3)
    return round(min(1.0, score), 2)


def audience_engagement(like_ratio: float, comment_ratio: float, controversy: float, views: int) -> str:
    """First matching rule wins: suspicious > high > low > normal."""
    if comment_ratio > SUSPICIOUS_COMMENT_RATIO or controversy > SUSPICIOUS_CONTROVERSY:
        return "suspicious"
    if like_ratio > HIGH_LIKE_RATIO or comment_ratio > HIGH_ENGAGEMENT_COMMENT_RATIO:
        return "high"
    if (like_ratio < LOW_ENGAGEMENT_LIKE_RATIO and comment_ratio < LOW_ENGAGEMENT_COMMENT_RATIO
            and views > LOW_ENGAGEMENT_MIN_VIEWS):
        return "low"
    return "normal"


def compute_engagement(
    view_count: int,
    like_count: int,
    comment_count: int,
    days_since_upload: float,
    comment_analysis: Optional[CommentAnalysis] = None,
) -> EngagementMetrics:
    views = max(0, int(view_count or 0))
    like_ratio = round(like_count / views, 4) if views else 0.0
    comment_ratio = round(comment_count / views, 4) if views else 0.0
    velocity = views / max(1.0, days_since_upload)

    controversy = controversy_score(like_ratio, comment_ratio, views, comment_analysis)
    return EngagementMetrics(
        like_to_view_ratio=like_ratio,
        comment_to_view_ratio=comment_ratio,
        engagement_velocity=round(velocity, 1),
        controversy_score=controversy,
        audience_engagement=audience_engagement(like_ratio, comment_ratio, controversy, views),
    )
