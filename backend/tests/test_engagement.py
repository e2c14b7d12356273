from datetime import datetime, timezone

import pytest
from engagement import age_in_days, audience_engagement, compute_engagement, controversy_score
from models import CommentAnalysis


NOW = datetime(2026, 1, 11, tzinfo=timezone.utc)


class TestAgeInDays:
    def test_ten_days(self):
        assert age_in_days("2026-01-01T00:00:00Z", NOW) == pytest.approx(10.0)

    def test_same_day_floors_at_one(self):
        assert age_in_days("2026-01-10T23:00:00Z", NOW) == 1.0

    def test_unparseable_date(self):
        assert age_in_days("", NOW) == 1.0
        assert age_in_days("yesterday", NOW) == 1.0


class TestComputeEngagement:
    def test_ratios_and_velocity(self):
        metrics = compute_engagement(1000, 100, 5, 10)
        assert metrics.like_to_view_ratio == 0.1
        assert metrics.comment_to_view_ratio == 0.005
        assert metrics.engagement_velocity == 100.0
        assert metrics.controversy_score == 0.0
        assert metrics.audience_engagement == "high"

    def test_zero_views(self):
        metrics = compute_engagement(0, 0, 0, 1)
        assert metrics.like_to_view_ratio == 0.0
        assert metrics.comment_to_view_ratio == 0.0
        assert metrics.engagement_velocity == 0.0
        assert metrics.audience_engagement == "normal"

    def test_heavy_commenting_is_suspicious(self):
        metrics = compute_engagement(1000, 30, 40, 1)
        assert metrics.controversy_score == 0.5
        assert metrics.audience_engagement == "suspicious"

    def test_low_engagement(self):
        metrics = compute_engagement(100000, 100, 50, 20)
        assert metrics.controversy_score == 0.2
        assert metrics.audience_engagement == "low"

    def test_comment_analysis_feeds_controversy(self):
        analysis = CommentAnalysis(total_comments=10, avg_sentiment=-0.5,
                                   community_flags=("a", "b", "c", "d", "e"))
        metrics = compute_engagement(1000, 50, 5, 1, analysis)
        # sentiment 0.3 + flags capped at 0.4
        assert metrics.controversy_score == 0.7


class TestControversy:
    def test_rounded_before_threshold(self):
        analysis = CommentAnalysis(total_comments=5, avg_sentiment=-0.5)
        score = controversy_score(0.05, 0.025, 1000, analysis)
        assert score == 0.8
        assert audience_engagement(0.05, 0.025, score, 1000) == "high"

    def test_capped_at_one(self):
        analysis = CommentAnalysis(total_comments=5, avg_sentiment=-0.9, community_flags=("a",) * 6)
        assert controversy_score(0.001, 0.05, 5000, analysis) == 1.0

    def test_low_likes_need_views(self):
        assert controversy_score(0.001, 0.0, 500) == 0.0
        assert controversy_score(0.001, 0.0, 5000) == 0.2
