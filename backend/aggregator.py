"""
Aggregator
Combines per-video category scores into a channel rating: weighted
category means, an age band, a verdict sentence and three bullets.
"""

import math
from dataclasses import dataclass
from functools import reduce

from models import CATEGORIES, AggregateReport, EngagementMetrics, PerVideoScore

RECENCY_DECAY = 0.04              # Linear, per position (index 0 = newest)
VIEW_WEIGHT_OFFSET = 10
VIEW_WEIGHT_DIVISOR = 10

SUSPICIOUS_ENGAGEMENT_BOOST = 0.3
HIGH_CONTROVERSY_THRESHOLD = 0.7
HIGH_CONTROVERSY_BOOST = 0.2
VIRAL_VELOCITY_THRESHOLD = 50000  # views/day
VIRAL_VELOCITY_BOOST = 0.1

GAMBLING_OVERRIDE_THRESHOLD = 1.0

# Inclusive upper bounds, checked in order
AGE_BAND_THRESHOLDS = (("E", 1.0), ("E10+", 2.0), ("T", 3.0))
OVERRIDE_BAND = "16+"

CATEGORY_LABELS = {
    "violence": "violence",
    "language": "language",
    "sexual_content": "sexual content",
    "substances": "alcohol/drugs",
    "gambling": "gambling",
    "sensitive_topics": "sensitive topics",
    "commercial_pressure": "sponsorship/ads",
}

VERDICT_LEADS = {
    "E": "Suitable for ages 6 and under",
    "E10+": "Generally OK for 7-10",
    "T": "Better for 11-15",
    "16+": "Suitable for 16+ only",
}

VERDICT_CAUSES = {
    "violence": "due to action/violence",
    "language": "due to language",
    "sexual_content": "due to suggestive themes",
    "substances": "due to alcohol/drugs",
    "gambling": "due to gambling content",
    "sensitive_topics": "due to sensitive topics",
    "commercial_pressure": "due to heavy sponsorship",
}

GAMBLING_VERDICT = (
    "Suitable for 16+ only due to gambling content. "
    "Legal gambling is restricted to 18+ in most jurisdictions."
)

# (inclusive upper bound, phrase prefix); anything above the last bound is "strong"
BULLET_PHRASES = ((0.5, "little to no"), (1.0, "mild"), (2.0, "moderate"), (3.0, "frequent"))
BULLET_COUNT = 3


# ------------------------------------------------------------------ #
#  Weights                                                           #
# ------------------------------------------------------------------ #

def recency_weight(index: int) -> float:
    return 1.0 - RECENCY_DECAY * index


def view_weight(views: int) -> float:
    return math.log10(max(0, views) + VIEW_WEIGHT_OFFSET) / VIEW_WEIGHT_DIVISOR


def engagement_risk_multiplier(metrics: EngagementMetrics) -> float:
    multiplier = 1.0
    if metrics.audience_engagement == "suspicious":
        multiplier += SUSPICIOUS_ENGAGEMENT_BOOST
    if metrics.controversy_score > HIGH_CONTROVERSY_THRESHOLD:
        multiplier += HIGH_CONTROVERSY_BOOST
    if metrics.engagement_velocity > VIRAL_VELOCITY_THRESHOLD:
        multiplier += VIRAL_VELOCITY_BOOST
    return multiplier


def video_weight(index: int, video: PerVideoScore) -> float:
    return (recency_weight(index) + view_weight(video.video.view_count)) * engagement_risk_multiplier(video.engagement)


@dataclass(frozen=True)
class WeightedTotals:
    sums: dict[str, float]
    weight: float

    @classmethod
    def empty(cls) -> "WeightedTotals":
        return cls(sums={c: 0.0 for c in CATEGORIES}, weight=0.0)

    def add(self, scores: dict[str, float], weight: float) -> "WeightedTotals":
        return WeightedTotals(
            sums={c: self.sums[c] + scores.get(c, 0.0) * weight for c in CATEGORIES},
            weight=self.weight + weight,
        )

    def means(self) -> dict[str, float]:
        if not self.weight:
            return {c: 0.0 for c in CATEGORIES}
        return {c: round_half_up(self.sums[c] / self.weight) for c in CATEGORIES}


def round_half_up(value: float) -> float:
    """One decimal, halves rounded up (0.25 -> 0.3); round() would give 0.2."""
    return math.floor(value * 10 + 0.5) / 10


def aggregate_scores(videos: list[PerVideoScore]) -> dict[str, float]:
    """Weighted mean per category; videos are ordered newest first."""
    totals = reduce(
        lambda acc, item: acc.add(item[1].scores, video_weight(item[0], item[1])),
        enumerate(videos),
        WeightedTotals.empty(),
    )
    return totals.means()


# ------------------------------------------------------------------ #
#  Rating                                                            #
# ------------------------------------------------------------------ #

def age_band(scores: dict[str, float]) -> str:
    if scores.get("gambling", 0.0) > GAMBLING_OVERRIDE_THRESHOLD:
        return OVERRIDE_BAND
    values = [scores.get(c, 0.0) for c in CATEGORIES]
    for band, ceiling in AGE_BAND_THRESHOLDS:
        if all(v <= ceiling for v in values):
            return band
    return OVERRIDE_BAND


def top_category(scores: dict[str, float]) -> str:
    """Highest-scoring category; ties go to the earliest declared category."""
    best = CATEGORIES[0]
    for category in CATEGORIES[1:]:
        if scores.get(category, 0.0) > scores.get(best, 0.0):
            best = category
    return best


def make_verdict(band: str, scores: dict[str, float]) -> str:
    if scores.get("gambling", 0.0) > GAMBLING_OVERRIDE_THRESHOLD:
        return GAMBLING_VERDICT
    return f"{VERDICT_LEADS[band]}, {VERDICT_CAUSES[top_category(scores)]}."


def severity_phrase(score: float, label: str) -> str:
    for ceiling, prefix in BULLET_PHRASES:
        if score <= ceiling:
            return f"{prefix} {label}"
    return f"strong {label}"


def derive_bullets(scores: dict[str, float]) -> list[str]:
    ranked = sorted(CATEGORIES, key=lambda c: -scores.get(c, 0.0))  # stable: ties keep declaration order
    return [severity_phrase(scores.get(c, 0.0), CATEGORY_LABELS[c]) for c in ranked[:BULLET_COUNT]]


def build_report(videos: list[PerVideoScore]) -> AggregateReport:
    scores = aggregate_scores(videos)
    band = age_band(scores)
    return AggregateReport(
        scores=scores,
        age_band=band,
        verdict=make_verdict(band, scores),
        bullets=tuple(derive_bullets(scores)),
    )
