"""
Video "analysis": the model is asked to invent plausible timestamped segments
for a video title (it never sees frames or audio). The reply is parsed loosely,
normalized, stored, and the video is marked ready.
"""
import logging
import random
import uuid

from lumina.core.config import Settings
from lumina.core.errors import HandlerError
from lumina.core.llm_client import GatewayClient, GatewayError
from lumina.core.timestamps import format_timestamp
from lumina.db import persistence, redis_client
from lumina.services import llm
from lumina.services.parsing import as_number, as_object_counts, extract_json_array

logger = logging.getLogger(__name__)

SEGMENT_SPACING = 30  # seconds between segments lacking a timestamp
DURATION_PADDING = 30  # seconds added after the last segment
MAX_TIMESTAMP = 24 * 3600  # segments must fit in one HH:MM:SS day


def fallback_segments(title: str) -> list[dict]:
    """Canned segments used whenever the model reply cannot be parsed."""
    return [
        {
            "timestamp_seconds": 0,
            "description": "Video introduction and opening sequence",
            "ocr_text": title,
            "detected_objects": {"person": 1},
            "transcript": "Welcome to this video content",
        },
        {
            "timestamp_seconds": 30,
            "description": "Main content begins with key information",
            "ocr_text": "",
            "detected_objects": {"text_overlay": 1},
            "transcript": "Let me explain the main topic",
        },
        {
            "timestamp_seconds": 60,
            "description": "Detailed explanation and demonstration",
            "ocr_text": "",
            "detected_objects": {"person": 1},
            "transcript": "Here you can see how this works",
        },
        {
            "timestamp_seconds": 120,
            "description": "Summary and conclusion",
            "ocr_text": "Summary",
            "detected_objects": {"text_overlay": 1},
            "transcript": "To wrap up, we covered the main points",
        },
    ]


def parse_segments(content: str, title: str) -> list[dict]:
    """Raw segment dicts from a model reply, or the fallback list."""
    segments = extract_json_array(content)
    if not segments or not all(isinstance(seg, dict) for seg in segments):
        logger.error("JSON parse error: no usable segment array in AI response")
        return fallback_segments(title)
    return segments


def normalize_segment(seg: dict, index: int, rng: random.Random | None = None) -> dict:
    """Fill defaults and derive display, search text and confidence for one segment."""
    rng = rng or random
    timestamp = as_number(seg.get("timestamp_seconds"))
    if timestamp is None or not 0 <= timestamp < MAX_TIMESTAMP:
        timestamp = index * SEGMENT_SPACING

    description = seg.get("description") or None
    transcript = seg.get("transcript") or None
    ocr_text = seg.get("ocr_text") or None

    embedding_text = " ".join(
        str(part) for part in (description or "", transcript or "", ocr_text or "")
    ).strip()

    return {
        "timestamp_seconds": timestamp,
        "timestamp_display": format_timestamp(timestamp),
        "description": str(description) if description else "Video segment",
        "ocr_text": str(ocr_text) if ocr_text else None,
        "detected_objects": as_object_counts(seg.get("detected_objects")),
        "transcript": str(transcript) if transcript else None,
        "embedding_text": embedding_text,
        "confidence_score": 0.85 + rng.random() * 0.15,
    }


def video_duration(records: list[dict]) -> int:
    return int(max(r["timestamp_seconds"] for r in records)) + DURATION_PADDING


class VideoAnalysisService:
    def __init__(self, settings: Settings, gateway: GatewayClient | None = None):
        self.settings = settings
        self.gateway = gateway or GatewayClient(settings)

    async def analyze(self, video_id: str | None, video_url: str | None, title: str | None) -> dict:
        if not video_id or not video_url:
            raise ValueError("Missing videoId or videoUrl")
        self.settings.require_gateway_key()

        token = uuid.uuid4().hex
        if not await redis_client.acquire_analysis_lock(video_id, token, self.settings.ANALYZE_LOCK_TTL):
            raise HandlerError("Analysis already in progress for this video", 409)

        try:
            return await self._analyze(video_id, title or "")
        finally:
            await redis_client.release_analysis_lock(video_id, token)

    async def _analyze(self, video_id: str, title: str) -> dict:
        logger.info(f"Starting analysis for video: {video_id}")

        try:
            content = await llm.generate_segments(self.gateway, title)
        except GatewayError as e:
            if e.is_rate_limited:
                raise ValueError("Rate limited. Please try again later.") from e
            if e.is_payment_required:
                raise ValueError("Payment required. Please add funds to your workspace.") from e
            raise

        logger.info(f"AI response received: {content[:200]}")

        segments = parse_segments(content, title)
        records = [normalize_segment(seg, idx) for idx, seg in enumerate(segments)]

        try:
            await persistence.insert_segments(video_id, records)
        except Exception as e:
            logger.error(f"Insert error: {e}")
            raise

        try:
            await persistence.mark_video_ready(video_id, video_duration(records))
        except Exception as e:
            logger.error(f"Update error: {e}")
            raise

        logger.info(f"Analysis complete for video: {video_id}, created {len(records)} segments")
        return {"success": True, "segmentsCreated": len(records)}
