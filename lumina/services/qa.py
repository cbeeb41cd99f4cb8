import logging

from lumina.core.config import Settings
from lumina.core.errors import HandlerError
from lumina.core.llm_client import GatewayClient, GatewayError
from lumina.db import persistence
from lumina.services import llm
from lumina.services.parsing import extract_json_object

logger = logging.getLogger(__name__)

NO_SEGMENTS_CONTEXT = "No segments available"


def build_context(segments) -> str:
    """One line per segment: display time, description, speech and on-screen text."""
    if not segments:
        return NO_SEGMENTS_CONTEXT
    lines = []
    for seg in segments:
        spoken = f'Spoken: "{seg.transcript}"' if seg.transcript else ""
        on_screen = f'On-screen text: "{seg.ocr_text}"' if seg.ocr_text else ""
        lines.append(f"[{seg.timestamp_display}] {seg.description or ''} {spoken} {on_screen}")
    return "\n".join(lines)


def parse_answer(content: str) -> tuple[str, list[str]]:
    """Split a reply into (answer, relevant timestamps).

    Without a decodable JSON object the whole reply is the answer.
    """
    parsed = extract_json_object(content)
    if parsed is None:
        return content, []

    answer = parsed.get("answer")
    if not isinstance(answer, str) or not answer:
        answer = content

    timestamps = parsed.get("relevant_timestamps")
    if not isinstance(timestamps, list):
        timestamps = []
    return answer, [str(ts) for ts in timestamps]


class VideoQAService:
    def __init__(self, settings: Settings, gateway: GatewayClient | None = None):
        self.settings = settings
        self.gateway = gateway or GatewayClient(settings)

    async def ask(self, question: str | None, video_id: str | None) -> dict:
        if not question or not video_id:
            raise ValueError("Missing question or videoId")
        self.settings.require_gateway_key()

        logger.info(f'Q&A for video {video_id}: "{question}"')

        video = await persistence.get_video(video_id)
        if video is None:
            raise HandlerError("Video not found", 404)

        segments = await persistence.get_video_segments(video_id)
        context = build_context(segments)

        try:
            content = await llm.answer_question(self.gateway, video.title, context, question)
        except GatewayError as e:
            if e.is_rate_limited:
                raise HandlerError("Rate limited. Please try again later.", 429) from e
            if e.is_payment_required:
                raise HandlerError("Payment required. Please add funds.", 402) from e
            raise

        answer, relevant_timestamps = parse_answer(content)

        # History is best-effort; the caller still gets the answer
        try:
            await persistence.save_qa_history(video_id, question, answer, relevant_timestamps)
        except Exception as e:
            logger.error(f"Insert error: {e}")

        logger.info(f"Q&A complete for video {video_id}")
        return {"answer": answer, "relevant_timestamps": relevant_timestamps}
