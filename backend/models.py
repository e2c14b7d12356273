"""
Data model shared by the rating pipeline.

All records are created once per request and never mutated afterwards.
Category score vectors are plain dicts keyed by CATEGORIES; use
normalize_scores() to guarantee every key is present and clamped.
"""

from dataclasses import dataclass, field
from typing import Optional

CATEGORIES = (
    "violence",
    "language",
    "sexual_content",
    "substances",
    "gambling",
    "sensitive_topics",
    "commercial_pressure",
)

MIN_SEVERITY = 0.0
MAX_SEVERITY = 4.0

AGE_BANDS = ("E", "E10+", "T", "16+")


def clamp_severity(value: float) -> float:
    return max(MIN_SEVERITY, min(MAX_SEVERITY, float(value)))


def normalize_scores(scores: Optional[dict], default: float = 0.0) -> dict[str, float]:
    """Return a complete category vector: every key present, values in [0, 4]."""
    scores = scores or {}
    return {k: clamp_severity(scores.get(k, default)) for k in CATEGORIES}


@dataclass(frozen=True)
class Channel:
    id: str
    title: str = ""
    handle: Optional[str] = None
    thumbnail: Optional[str] = None


@dataclass(frozen=True)
class VideoRecord:
    video_id: str
    title: str
    description: str
    published_at: str
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0

    @property
    def url(self) -> str:
        return f"https://www.youtube.com/watch?v={self.video_id}"


@dataclass(frozen=True)
class Comment:
    text: str
    likes: int
    author: str


@dataclass(frozen=True)
class CommentAnalysis:
    total_comments: int
    avg_sentiment: float
    community_flags: tuple[str, ...] = ()


@dataclass(frozen=True)
class VideoEvidence:
    """Raw per-video sub-fetch results gathered before bundling."""
    video: VideoRecord
    transcript: str = ""
    comments: tuple[Comment, ...] = ()

    @property
    def has_transcript(self) -> bool:
        return bool(self.transcript.strip())


@dataclass(frozen=True)
class ContentBundle:
    video_id: str
    title: str
    description: str
    text: str
    includes_transcript: bool = False
    includes_comments: bool = False


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    requests: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            requests=self.requests + other.requests,
        )

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass(frozen=True)
class ClassificationResult:
    scores: dict[str, float]
    risk_notes: tuple[str, ...] = ()
    is_educational: bool = False
    source: str = "llm"  # "llm" | "fallback"
    discounted: bool = False
    tags: tuple[str, ...] = ()
    usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass(frozen=True)
class EngagementMetrics:
    like_to_view_ratio: float
    comment_to_view_ratio: float
    engagement_velocity: float
    controversy_score: float
    audience_engagement: str  # "low" | "normal" | "high" | "suspicious"


@dataclass(frozen=True)
class PerVideoScore:
    video: VideoRecord
    classification: ClassificationResult
    engagement: EngagementMetrics
    comment_analysis: Optional[CommentAnalysis] = None
    transcript_available: bool = False

    @property
    def scores(self) -> dict[str, float]:
        return self.classification.scores

    def to_dict(self) -> dict:
        return {
            "video_id": self.video.video_id,
            "url": self.video.url,
            "title": self.video.title,
            "published_at": self.video.published_at,
            "view_count": self.video.view_count,
            "like_count": self.video.like_count,
            "comment_count": self.video.comment_count,
            "category_scores": dict(self.classification.scores),
            "risk_notes": list(self.classification.risk_notes),
            "is_educational": self.classification.is_educational,
            "classification_source": self.classification.source,
            "transcript_available": self.transcript_available,
            "engagement_metrics": {
                "like_to_view_ratio": self.engagement.like_to_view_ratio,
                "comment_to_view_ratio": self.engagement.comment_to_view_ratio,
                "engagement_velocity": self.engagement.engagement_velocity,
                "controversy_score": self.engagement.controversy_score,
                "audience_engagement": self.engagement.audience_engagement,
            },
            "comment_analysis": None if self.comment_analysis is None else {
                "total_comments": self.comment_analysis.total_comments,
                "avg_sentiment": self.comment_analysis.avg_sentiment,
                "community_flags": list(self.comment_analysis.community_flags),
            },
        }


@dataclass(frozen=True)
class TranscriptCoverage:
    available: int
    total: int
    threshold: float = 0.4

    @property
    def ratio(self) -> float:
        return self.available / self.total if self.total else 0.0

    @property
    def percentage(self) -> int:
        return round(self.ratio * 100)

    @property
    def sufficient(self) -> bool:
        return self.total > 0 and self.ratio >= self.threshold

    def to_dict(self) -> dict:
        return {
            "available": self.available,
            "total": self.total,
            "percentage": self.percentage,
            "sufficient": self.sufficient,
        }


@dataclass(frozen=True)
class AggregateReport:
    scores: dict[str, float]
    age_band: str
    verdict: str
    bullets: tuple[str, ...]

    def to_dict(self) -> dict:
        return {
            "scores": dict(self.scores),
            "age_band": self.age_band,
            "verdict": self.verdict,
            "bullets": list(self.bullets),
        }


@dataclass(frozen=True)
class ChannelReport:
    """Full result of one channel analysis request."""
    query: str
    channel: Channel
    videos: tuple[PerVideoScore, ...]
    aggregate: AggregateReport
    coverage: TranscriptCoverage
    warnings: tuple[str, ...] = ()
    usage: TokenUsage = field(default_factory=TokenUsage)

    def to_dict(self) -> dict:
        payload = {
            "query": self.query,
            "channel": {
                "id": self.channel.id,
                "title": self.channel.title,
                "handle": self.channel.handle,
                "thumbnail": self.channel.thumbnail,
            },
            "videos": [v.to_dict() for v in self.videos],
            "aggregate": self.aggregate.to_dict(),
            "transcript_coverage": self.coverage.to_dict(),
        }
        if self.warnings:
            payload["warnings"] = list(self.warnings)
        return payload
