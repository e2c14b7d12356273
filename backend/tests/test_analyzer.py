"""End-to-end pipeline tests with fake YouTube and classification services."""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock

from analyzer import ChannelAnalyzer, coverage_warning, fallback_warning
from classifier import ContentClassifier
from errors import AnalysisTimeoutError, ChannelNotFoundError, MissingQueryError, NoVideosFoundError
from models import CATEGORIES, ClassificationResult, TokenUsage, TranscriptCoverage
from conftest import make_video


def fake_classifier(scores=None, usage=None):
    full = {c: 0.0 for c in CATEGORIES}
    full.update(scores or {})
    classifier = MagicMock()
    classifier.classify = AsyncMock(return_value=ClassificationResult(
        scores=full, risk_notes=("family friendly",), usage=usage or TokenUsage(),
    ))
    return classifier


def loader_for(*ids):
    async def _load(video_id):
        if video_id in ids:
            return f"transcript of {video_id}"
        raise RuntimeError("NoTranscriptFound")
    return _load


ALL_IDS = tuple(f"vid0000000{i}" for i in range(5))


class TestWarnings:
    def test_coverage_warning_only_when_insufficient(self):
        assert coverage_warning(TranscriptCoverage(available=2, total=5)) is None
        warning = coverage_warning(TranscriptCoverage(available=1, total=5))
        assert "4 transcripts missing" in warning
        assert "20%" in warning

    def test_fallback_warning(self):
        assert fallback_warning(0, 5) is None
        assert "3 of 5" in fallback_warning(3, 5)


class TestChannelAnalyzer:
    @pytest.mark.asyncio
    async def test_all_zero_channel(self, fake_fetcher, channel):
        analyzer = ChannelAnalyzer(fake_fetcher, fake_classifier(), transcript_loader=loader_for(*ALL_IDS))
        report = await analyzer.analyze("@testchannel")

        assert report.channel == channel
        assert len(report.videos) == 5
        assert [v.video.video_id for v in report.videos] == list(ALL_IDS)
        assert report.coverage.sufficient
        assert report.warnings == ()
        assert report.aggregate.age_band == "E"
        assert report.aggregate.bullets[0] == "little to no violence"
        assert all(v.transcript_available for v in report.videos)

    @pytest.mark.asyncio
    async def test_low_coverage_drops_transcripts(self, fake_fetcher):
        classifier = fake_classifier()
        analyzer = ChannelAnalyzer(fake_fetcher, classifier, transcript_loader=loader_for(ALL_IDS[0]))
        report = await analyzer.analyze("test channel")

        assert report.coverage.available == 1
        assert not report.coverage.sufficient
        assert len(report.warnings) == 1
        assert "4 transcripts missing" in report.warnings[0]
        for call in classifier.classify.await_args_list:
            bundle = call.args[0]
            assert not bundle.includes_transcript
            assert "transcript of" not in bundle.text
        assert report.videos[0].transcript_available

    @pytest.mark.asyncio
    async def test_every_classification_fails(self, fake_fetcher):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=RuntimeError("service down"))
        analyzer = ChannelAnalyzer(fake_fetcher, ContentClassifier(openai_client=client),
                                   transcript_loader=loader_for(*ALL_IDS))
        report = await analyzer.analyze("@testchannel")

        assert len(report.warnings) == 1
        assert "5 of 5" in report.warnings[0]
        assert all(v.classification.source == "fallback" for v in report.videos)
        assert client.chat.completions.create.await_count == 10

    @pytest.mark.asyncio
    async def test_token_usage_summed(self, fake_fetcher):
        usage = TokenUsage(prompt_tokens=100, completion_tokens=10, requests=1)
        analyzer = ChannelAnalyzer(fake_fetcher, fake_classifier(usage=usage),
                                   transcript_loader=loader_for(*ALL_IDS))
        report = await analyzer.analyze("@testchannel")
        assert report.usage == TokenUsage(prompt_tokens=500, completion_tokens=50, requests=5)

    @pytest.mark.asyncio
    async def test_gambling_channel(self, fake_fetcher):
        analyzer = ChannelAnalyzer(fake_fetcher, fake_classifier({"gambling": 2.0}),
                                   transcript_loader=loader_for(*ALL_IDS))
        report = await analyzer.analyze("@testchannel")
        assert report.aggregate.age_band == "16+"
        assert "gambling" in report.aggregate.verdict

    @pytest.mark.asyncio
    async def test_comments_feed_analysis(self, fake_fetcher):
        from conftest import make_comments
        fake_fetcher.get_comments.return_value = make_comments("love it", "great", "not for kids")
        analyzer = ChannelAnalyzer(fake_fetcher, fake_classifier(), transcript_loader=loader_for(*ALL_IDS))
        report = await analyzer.analyze("@testchannel")
        analysis = report.videos[0].comment_analysis
        assert analysis.total_comments == 3
        assert "Viewers say not suitable for kids" in analysis.community_flags

    @pytest.mark.asyncio
    async def test_per_video_work_limited_to_batches_of_three(self, fake_fetcher):
        videos = [make_video(video_id=f"batch{i}") for i in range(7)]
        fake_fetcher.list_recent_video_ids.return_value = [v.video_id for v in videos]
        fake_fetcher.get_video_details.return_value = videos

        in_flight = {"transcripts": 0, "classify": 0}
        peak = {"transcripts": 0, "classify": 0}

        async def track(kind):
            in_flight[kind] += 1
            peak[kind] = max(peak[kind], in_flight[kind])
            await asyncio.sleep(0.01)
            in_flight[kind] -= 1

        async def loader(video_id):
            await track("transcripts")
            return f"transcript of {video_id}"

        result = fake_classifier().classify.return_value

        async def classify(bundle):
            await track("classify")
            return result

        classifier = MagicMock()
        classifier.classify = AsyncMock(side_effect=classify)
        analyzer = ChannelAnalyzer(fake_fetcher, classifier, video_count=7, batch_size=3,
                                   transcript_loader=loader)
        report = await analyzer.analyze("@testchannel")

        assert len(report.videos) == 7
        assert peak == {"transcripts": 3, "classify": 3}
        assert classifier.classify.await_count == 7

    @pytest.mark.asyncio
    async def test_empty_query(self, fake_fetcher):
        analyzer = ChannelAnalyzer(fake_fetcher, fake_classifier())
        with pytest.raises(MissingQueryError):
            await analyzer.analyze("   ")

    @pytest.mark.asyncio
    async def test_channel_not_found(self, fake_fetcher):
        fake_fetcher.search_channel.return_value = ""
        analyzer = ChannelAnalyzer(fake_fetcher, fake_classifier())
        with pytest.raises(ChannelNotFoundError):
            await analyzer.analyze("nobody at all")

    @pytest.mark.asyncio
    async def test_no_videos(self, fake_fetcher):
        fake_fetcher.list_recent_video_ids.return_value = []
        analyzer = ChannelAnalyzer(fake_fetcher, fake_classifier())
        with pytest.raises(NoVideosFoundError):
            await analyzer.analyze("@testchannel")

    @pytest.mark.asyncio
    async def test_timeout(self, fake_fetcher):
        async def slow_search(query):
            await asyncio.sleep(1)
            return "UCslow"

        fake_fetcher.search_channel.side_effect = slow_search
        analyzer = ChannelAnalyzer(fake_fetcher, fake_classifier(), timeout_seconds=0.05)
        with pytest.raises(AnalysisTimeoutError) as exc:
            await analyzer.analyze("@slow")
        assert exc.value.status_code == 408
        assert exc.value.code == "TIMEOUT"

    @pytest.mark.asyncio
    async def test_report_to_dict(self, fake_fetcher):
        analyzer = ChannelAnalyzer(fake_fetcher, fake_classifier(), transcript_loader=loader_for())
        data = (await analyzer.analyze("@testchannel")).to_dict()
        assert data["channel"]["handle"] == "@testchannel"
        assert data["transcript_coverage"]["percentage"] == 0
        assert len(data["warnings"]) == 1
        assert set(data["videos"][0]["category_scores"]) == set(CATEGORIES)
