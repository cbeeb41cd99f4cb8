import logging

from lumina.core.config import Settings
from lumina.core.errors import HandlerError
from lumina.core.llm_client import GatewayClient, GatewayError, GatewayUnavailableError
from lumina.db import persistence
from lumina.services import llm
from lumina.services.parsing import as_number, extract_json_array

logger = logging.getLogger(__name__)

MAX_RESULTS = 10
MIN_RELEVANCE = 0.3


def keyword_rankings(query: str, segments) -> list[dict]:
    """Score segments by the share of query words found in their text.

    Words are the lower-cased, whitespace-split query; a word counts when it
    is a substring of description + transcript + OCR text.
    """
    words = query.lower().split()
    if not words:
        return []

    rankings = []
    for idx, seg in enumerate(segments):
        text = f"{seg.description or ''} {seg.transcript or ''} {seg.ocr_text or ''}".lower()
        matches = sum(1 for w in words if w in text)
        rankings.append({
            "index": idx,
            "relevance_score": matches / len(words),
            "reason": "Keyword matching fallback",
        })

    rankings = [r for r in rankings if r["relevance_score"] > MIN_RELEVANCE]
    rankings.sort(key=lambda r: r["relevance_score"], reverse=True)
    return rankings[:MAX_RESULTS]


def parse_rankings(content: str, segment_count: int) -> list[dict] | None:
    """Model rankings with valid indices, or None if the reply is unusable."""
    raw = extract_json_array(content)
    if raw is None:
        return None

    rankings = []
    for item in raw:
        if not isinstance(item, dict):
            return None
        index = item.get("index")
        score = as_number(item.get("relevance_score"))
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < segment_count:
            logger.warning(f"Dropping ranking with invalid index: {index!r}")
            continue
        rankings.append({
            "index": index,
            "relevance_score": score if score is not None else 0.0,
            "reason": str(item.get("reason") or ""),
        })
    return rankings[:MAX_RESULTS]


def apply_object_filter(rankings: list[dict], segments, filters: dict | None) -> list[dict]:
    """Drop rankings whose segment has fewer than `minCount` of `objectName`."""
    object_name = (filters or {}).get("objectName")
    if not object_name:
        return rankings
    min_count = filters.get("minCount") or 1

    kept = []
    for rank in rankings:
        objects = segments[rank["index"]].detected_objects or {}
        if (objects.get(object_name) or 0) >= min_count:
            kept.append(rank)
    return kept


def build_result(seg, rank: dict) -> dict:
    video = seg.video
    return {
        "id": str(seg.id),
        "video_id": str(seg.video_id),
        "video_title": video.title if video is not None else None,
        "video_path": video.storage_path if video is not None else None,
        "timestamp_seconds": float(seg.timestamp_seconds),
        "timestamp_display": seg.timestamp_display,
        "description": seg.description,
        "transcript": seg.transcript,
        "ocr_text": seg.ocr_text,
        "detected_objects": seg.detected_objects or {},
        "relevance_score": rank["relevance_score"],
        "relevance_reason": rank["reason"],
    }


class VideoSearchService:
    def __init__(self, settings: Settings, gateway: GatewayClient | None = None):
        self.settings = settings
        self.gateway = gateway or GatewayClient(settings)

    async def search(self, query: str | None, video_id: str | None = None, filters: dict | None = None) -> dict:
        if not query:
            raise ValueError("Missing search query")

        logger.info(f'Searching for: "{query}" in video: {video_id or "all"}')

        try:
            segments = await persistence.get_searchable_segments(video_id)
        except Exception as e:
            logger.error(f"Fetch error: {e}")
            raise

        if not segments:
            return {"results": [], "message": "No indexed content found"}

        rankings = await self._rank(query, segments)
        rankings = apply_object_filter(rankings, segments, filters)
        results = [build_result(segments[rank["index"]], rank) for rank in rankings]

        logger.info(f"Search returned {len(results)} results")
        return {"results": results}

    async def _rank(self, query: str, segments) -> list[dict]:
        if not self.settings.gateway_configured:
            logger.warning("AI gateway not configured, using keyword ranking")
            return keyword_rankings(query, segments)

        try:
            content = await llm.rank_segments(self.gateway, query, segments)
        except GatewayUnavailableError:
            logger.warning("AI gateway unreachable, using keyword ranking")
            return keyword_rankings(query, segments)
        except GatewayError as e:
            if e.is_rate_limited:
                raise HandlerError("Rate limited. Please try again later.", 429) from e
            if e.is_payment_required:
                raise HandlerError("Payment required. Please add funds.", 402) from e
            raise

        rankings = parse_rankings(content, len(segments))
        if rankings is None:
            logger.error("Ranking parse error: no usable ranking array in AI response")
            return keyword_rankings(query, segments)
        return rankings
