import json

import pytest
from unittest.mock import AsyncMock, patch

from lumina.core.errors import HandlerError
from lumina.core.llm_client import GatewayError, GatewayUnavailableError
from lumina.services.search import (
    VideoSearchService, apply_object_filter, keyword_rankings, parse_rankings,
)
from tests.conftest import make_segment, make_video


@pytest.mark.asyncio
class TestSearchVideos:
    """Test the search-videos flow with the gateway and database mocked."""

    async def test_model_rankings_build_results(self, settings, fake_gateway, demo_segments):
        fake_gateway.complete.return_value = json.dumps([
            {"index": 1, "relevance_score": 0.92, "reason": "Cars on a street"},
        ])
        service = VideoSearchService(settings, gateway=fake_gateway)

        with patch("lumina.db.persistence.get_searchable_segments",
                   new_callable=AsyncMock, return_value=demo_segments):
            result = await service.search("traffic")

        assert len(result["results"]) == 1
        hit = result["results"][0]
        assert hit["id"] == str(demo_segments[1].id)
        assert hit["video_title"] == "Demo"
        assert hit["video_path"] == "uploads/1734260000000-demo.mp4"
        assert hit["timestamp_seconds"] == 30.0
        assert hit["relevance_score"] == 0.92
        assert hit["relevance_reason"] == "Cars on a street"
        assert hit["detected_objects"] == {"car": 2}

        # Every segment is enumerated in the prompt
        user_prompt = fake_gateway.complete.call_args[0][1]
        assert "[0] Timestamp: 00:00:00" in user_prompt
        assert "[1] Timestamp: 00:00:30" in user_prompt
        assert 'User Query: "traffic"' in user_prompt

    async def test_no_indexed_content(self, settings, fake_gateway):
        service = VideoSearchService(settings, gateway=fake_gateway)

        with patch("lumina.db.persistence.get_searchable_segments",
                   new_callable=AsyncMock, return_value=[]):
            result = await service.search("anything", video_id="abc")

        assert result == {"results": [], "message": "No indexed content found"}
        fake_gateway.complete.assert_not_called()

    async def test_missing_query(self, settings, fake_gateway):
        service = VideoSearchService(settings, gateway=fake_gateway)
        with pytest.raises(ValueError, match="Missing search query"):
            await service.search("")

    async def test_without_gateway_key_keyword_fallback_ranks(self, unconfigured_settings, fake_gateway, demo_segments):
        service = VideoSearchService(unconfigured_settings, gateway=fake_gateway)

        with patch("lumina.db.persistence.get_searchable_segments",
                   new_callable=AsyncMock, return_value=demo_segments):
            result = await service.search("person")

        fake_gateway.complete.assert_not_called()
        assert len(result["results"]) == 1
        hit = result["results"][0]
        assert hit["id"] == str(demo_segments[0].id)
        assert hit["relevance_score"] == 1.0
        assert hit["relevance_reason"] == "Keyword matching fallback"

    async def test_blank_gateway_key_uses_keyword_fallback(self, settings, fake_gateway, demo_segments):
        service = VideoSearchService(settings.model_copy(update={"LOVABLE_API_KEY": "   "}), gateway=fake_gateway)

        with patch("lumina.db.persistence.get_searchable_segments",
                   new_callable=AsyncMock, return_value=demo_segments):
            result = await service.search("person")

        fake_gateway.complete.assert_not_called()
        assert [h["relevance_reason"] for h in result["results"]] == ["Keyword matching fallback"]

    async def test_non_finite_score_becomes_zero(self, settings, fake_gateway, demo_segments):
        fake_gateway.complete.return_value = '[{"index": 0, "relevance_score": NaN, "reason": "Person"}]'
        service = VideoSearchService(settings, gateway=fake_gateway)

        with patch("lumina.db.persistence.get_searchable_segments",
                   new_callable=AsyncMock, return_value=demo_segments):
            result = await service.search("person")

        assert result["results"][0]["relevance_score"] == 0.0
        # Must stay serializable as strict JSON
        json.dumps(result, allow_nan=False)

    async def test_unreachable_gateway_falls_back(self, settings, fake_gateway, demo_segments):
        fake_gateway.complete.side_effect = GatewayUnavailableError("connection refused")
        service = VideoSearchService(settings, gateway=fake_gateway)

        with patch("lumina.db.persistence.get_searchable_segments",
                   new_callable=AsyncMock, return_value=demo_segments):
            result = await service.search("busy street")

        assert [h["id"] for h in result["results"]] == [str(demo_segments[1].id)]

    async def test_unparseable_ranking_falls_back(self, settings, fake_gateway, demo_segments):
        fake_gateway.complete.return_value = "The best match is the first one [see above"
        service = VideoSearchService(settings, gateway=fake_gateway)

        with patch("lumina.db.persistence.get_searchable_segments",
                   new_callable=AsyncMock, return_value=demo_segments):
            result = await service.search("person")

        assert result["results"][0]["relevance_reason"] == "Keyword matching fallback"

    @pytest.mark.parametrize("status, message", [
        (429, "Rate limited. Please try again later."),
        (402, "Payment required. Please add funds."),
    ])
    async def test_gateway_errors_keep_status(self, settings, fake_gateway, demo_segments, status, message):
        fake_gateway.complete.side_effect = GatewayError(status)
        service = VideoSearchService(settings, gateway=fake_gateway)

        with patch("lumina.db.persistence.get_searchable_segments",
                   new_callable=AsyncMock, return_value=demo_segments):
            with pytest.raises(HandlerError) as exc_info:
                await service.search("person")

        assert exc_info.value.status_code == status
        assert exc_info.value.message == message

    async def test_object_filter_applies_to_model_rankings(self, settings, fake_gateway, demo_segments):
        fake_gateway.complete.return_value = json.dumps([
            {"index": 0, "relevance_score": 0.8, "reason": "a"},
            {"index": 1, "relevance_score": 0.7, "reason": "b"},
        ])
        service = VideoSearchService(settings, gateway=fake_gateway)

        with patch("lumina.db.persistence.get_searchable_segments",
                   new_callable=AsyncMock, return_value=demo_segments):
            result = await service.search("scene", filters={"objectName": "car", "minCount": 2})

        assert [h["id"] for h in result["results"]] == [str(demo_segments[1].id)]


class TestKeywordRankings:
    """Test the deterministic keyword-overlap fallback."""

    def test_scores_are_fraction_of_query_words(self, demo_video):
        segments = [
            make_segment(demo_video, 0, description="red car parked"),
            make_segment(demo_video, 30, description="a red balloon", transcript="car horn"),
            make_segment(demo_video, 60, description="blue sky"),
        ]
        rankings = keyword_rankings("Red Car Wash", segments)

        # 2 of 3 words for the first two segments, 0 for the third
        assert [r["index"] for r in rankings] == [0, 1]
        assert all(abs(r["relevance_score"] - 2 / 3) < 1e-9 for r in rankings)

    def test_threshold_is_exclusive(self, demo_video):
        segments = [make_segment(demo_video, 0, description="alpha")]
        # 1 of 4 words = 0.25, dropped
        assert keyword_rankings("alpha beta gamma delta", segments) == []

    def test_sorted_descending_and_capped(self, demo_video):
        segments = [make_segment(demo_video, i, description="cat") for i in range(12)]
        segments.append(make_segment(demo_video, 99, description="cat dog"))
        rankings = keyword_rankings("cat dog", segments)

        assert len(rankings) == 10
        assert rankings[0]["index"] == 12
        assert rankings[0]["relevance_score"] == 1.0
        scores = [r["relevance_score"] for r in rankings]
        assert scores == sorted(scores, reverse=True)

    def test_substring_matching(self, demo_video):
        segments = [make_segment(demo_video, 0, ocr_text="PERSONAL NOTES")]
        assert keyword_rankings("person", segments)[0]["relevance_score"] == 1.0

    def test_blank_query(self, demo_video):
        assert keyword_rankings("   ", [make_segment(demo_video, 0, description="x")]) == []


class TestObjectFilter:
    """Test the detected-object count filter."""

    def _segments(self):
        video = make_video()
        return [
            make_segment(video, 0, detected_objects={"car": 1}),
            make_segment(video, 10, detected_objects={"car": 2}),
            make_segment(video, 20, detected_objects={"person": 3}),
        ]

    def _rankings(self):
        return [{"index": i, "relevance_score": 0.9, "reason": ""} for i in range(3)]

    def test_min_count(self):
        kept = apply_object_filter(self._rankings(), self._segments(), {"objectName": "car", "minCount": 2})
        assert [r["index"] for r in kept] == [1]

    def test_min_count_defaults_to_one(self):
        kept = apply_object_filter(self._rankings(), self._segments(), {"objectName": "car"})
        assert [r["index"] for r in kept] == [0, 1]

    def test_no_filter(self):
        assert apply_object_filter(self._rankings(), self._segments(), None) == self._rankings()
        assert apply_object_filter(self._rankings(), self._segments(), {"minCount": 5}) == self._rankings()


class TestParseRankings:
    def test_invalid_indices_are_dropped(self):
        content = json.dumps([
            {"index": 0, "relevance_score": 0.9, "reason": "ok"},
            {"index": 7, "relevance_score": 0.8, "reason": "out of range"},
            {"index": "1", "relevance_score": 0.7, "reason": "string index"},
        ])
        rankings = parse_rankings(content, 2)
        assert rankings == [{"index": 0, "relevance_score": 0.9, "reason": "ok"}]

    def test_non_object_items_make_reply_unusable(self):
        assert parse_rankings("[0, 1]", 2) is None

    def test_no_array(self):
        assert parse_rankings("no json here", 2) is None

    def test_empty_array_is_valid(self):
        assert parse_rankings("[]", 2) == []
