"""Tests for evidence collection, transcript coverage and bundle assembly."""

import pytest
from unittest.mock import AsyncMock

from content_bundler import (
    ContentBundler, MAX_BUNDLE_LENGTH, MAX_COMMENT_LENGTH, MAX_DESCRIPTION_LENGTH, MAX_TITLE_LENGTH,
    MAX_TRANSCRIPT_LENGTH,
)
from errors import NoVideosFoundError, YouTubeAPIError
from models import VideoEvidence
from video_fetcher import VideoFetcher
from conftest import make_comments, make_video


def transcript_loader(available: dict):
    """Loader returning a transcript for listed ids and raising for the rest."""
    async def _load(video_id):
        if video_id in available:
            return available[video_id]
        raise RuntimeError("TranscriptsDisabled")
    return _load


class TestVideoFetcher:
    @pytest.mark.asyncio
    async def test_fetch_returns_channel_and_videos(self, fake_fetcher, channel):
        result_channel, videos = await VideoFetcher(fake_fetcher, 5).fetch(channel.id)
        assert result_channel == channel
        assert len(videos) == 5
        fake_fetcher.list_recent_video_ids.assert_awaited_once_with(channel.id, 5)

    @pytest.mark.asyncio
    async def test_no_ids_raises(self, fake_fetcher, channel):
        fake_fetcher.list_recent_video_ids.return_value = []
        with pytest.raises(NoVideosFoundError) as exc:
            await VideoFetcher(fake_fetcher).fetch(channel.id)
        assert exc.value.channel_id == channel.id
        assert "channel_id" not in exc.value.to_dict()
        fake_fetcher.get_video_details.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_details_raises(self, fake_fetcher, channel):
        fake_fetcher.get_video_details.return_value = []
        with pytest.raises(NoVideosFoundError):
            await VideoFetcher(fake_fetcher).fetch(channel.id)


class TestCollect:
    @pytest.mark.asyncio
    async def test_failures_degrade_to_empty(self, fake_fetcher):
        fake_fetcher.get_comments.side_effect = YouTubeAPIError("commentThreads", 403, "commentsDisabled")
        bundler = ContentBundler(fake_fetcher, transcript_loader=transcript_loader({}))
        evidence = await bundler.collect([make_video()])
        assert evidence[0].transcript == ""
        assert evidence[0].comments == ()
        assert not evidence[0].has_transcript

    @pytest.mark.asyncio
    async def test_order_preserved_across_batches(self, fake_fetcher):
        videos = [make_video(video_id=f"v{i}") for i in range(7)]
        bundler = ContentBundler(fake_fetcher, transcript_loader=transcript_loader({}), batch_size=3)
        evidence = await bundler.collect(videos)
        assert [e.video.video_id for e in evidence] == [f"v{i}" for i in range(7)]

    @pytest.mark.asyncio
    async def test_one_of_five_transcripts_is_insufficient(self, fake_fetcher):
        videos = [make_video(video_id=f"v{i}") for i in range(5)]
        bundler = ContentBundler(fake_fetcher, transcript_loader=transcript_loader({"v2": "spoken words"}))
        evidence = await bundler.collect(videos)
        coverage = bundler.coverage(evidence)

        assert coverage.available == 1
        assert coverage.total == 5
        assert coverage.percentage == 20
        assert coverage.sufficient is False
        bundles = [bundler.build(e, coverage.sufficient) for e in evidence]
        assert not any(b.includes_transcript for b in bundles)
        assert all("spoken words" not in b.text for b in bundles)

    @pytest.mark.asyncio
    async def test_two_of_five_transcripts_is_sufficient(self, fake_fetcher):
        videos = [make_video(video_id=f"v{i}") for i in range(5)]
        bundler = ContentBundler(fake_fetcher, transcript_loader=transcript_loader({"v0": "a", "v4": "b"}))
        coverage = bundler.coverage(await bundler.collect(videos))
        assert coverage.ratio == pytest.approx(0.4)
        assert coverage.sufficient is True

    def test_empty_coverage(self, fake_fetcher):
        coverage = ContentBundler(fake_fetcher).coverage([])
        assert coverage.total == 0
        assert coverage.sufficient is False


class TestBuild:
    def test_minimal_bundle(self, fake_fetcher):
        bundle = ContentBundler(fake_fetcher).build(VideoEvidence(video=make_video(title="Hello")), True)
        assert bundle.text.startswith("Title: Hello")
        assert "No description" in bundle.text
        assert not bundle.includes_transcript
        assert not bundle.includes_comments

    def test_caps_applied(self, fake_fetcher):
        video = make_video(title="T" * 500, description="D" * 5000)
        evidence = VideoEvidence(
            video=video,
            transcript="S" * 20000,
            comments=tuple(make_comments(*["C" * 1000] * 15)),
        )
        bundle = ContentBundler(fake_fetcher).build(evidence, True)
        assert len(bundle.title) == MAX_TITLE_LENGTH
        assert len(bundle.description) == MAX_DESCRIPTION_LENGTH
        assert "S" * MAX_TRANSCRIPT_LENGTH in bundle.text
        assert "S" * (MAX_TRANSCRIPT_LENGTH + 1) not in bundle.text
        assert "C" * (MAX_COMMENT_LENGTH + 1) not in bundle.text
        assert len(bundle.text) <= MAX_BUNDLE_LENGTH
        assert bundle.includes_transcript
        assert bundle.includes_comments

    def test_transcript_excluded_when_coverage_low(self, fake_fetcher):
        evidence = VideoEvidence(video=make_video(), transcript="secret words")
        bundle = ContentBundler(fake_fetcher).build(evidence, False)
        assert "secret words" not in bundle.text
        assert not bundle.includes_transcript

    def test_too_few_comments_left_out(self, fake_fetcher):
        evidence = VideoEvidence(video=make_video(), comments=tuple(make_comments("one", "two")))
        bundle = ContentBundler(fake_fetcher).build(evidence, True)
        assert "Top comments" not in bundle.text

    @pytest.mark.asyncio
    async def test_custom_loader_receives_video_id(self, fake_fetcher):
        loader = AsyncMock(return_value="words")
        bundler = ContentBundler(fake_fetcher, transcript_loader=loader)
        await bundler.collect([make_video(video_id="abc")])
        loader.assert_awaited_once_with("abc")
