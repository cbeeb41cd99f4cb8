"""
Database access helpers for videos, segments and Q&A history.
Services and routes call these instead of opening sessions themselves,
which also gives tests a single seam to patch.
"""
import uuid

from sqlalchemy import delete, insert, select, update
from sqlalchemy.orm import contains_eager

from lumina.db.postgres import AsyncSessionLocal
from lumina.db.models import Video, VideoSegment, VideoQAHistory


def as_uuid(value) -> uuid.UUID | None:
    """Coerce a request-supplied id to a UUID, or None if it is not one."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def _require_uuid(value) -> uuid.UUID:
    parsed = as_uuid(value)
    if parsed is None:
        raise ValueError(f"Invalid video id: {value}")
    return parsed


# ── Videos ─────────────────────────────────────────────────────────────────

async def create_video(title: str, filename: str, storage_path: str) -> Video:
    """Insert a new video row in the processing state."""
    async with AsyncSessionLocal() as session:
        video = Video(
            title=title,
            filename=filename,
            storage_path=storage_path,
            status="processing",
        )
        session.add(video)
        await session.commit()
        await session.refresh(video)
        return video


async def list_videos() -> list[Video]:
    """All videos, newest first."""
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(Video).order_by(Video.created_at.desc()))
        return list(result.scalars().all())


async def get_video(video_id) -> Video | None:
    parsed = as_uuid(video_id)
    if parsed is None:
        return None
    async with AsyncSessionLocal() as session:
        return await session.get(Video, parsed)


async def mark_video_ready(video_id, duration_seconds: int):
    async with AsyncSessionLocal() as session:
        await session.execute(
            update(Video)
            .where(Video.id == _require_uuid(video_id))
            .values(status="ready", duration_seconds=duration_seconds)
        )
        await session.commit()


async def delete_video(video_id):
    """Delete a video row; segments and Q&A history cascade."""
    async with AsyncSessionLocal() as session:
        await session.execute(delete(Video).where(Video.id == _require_uuid(video_id)))
        await session.commit()


# ── Segments ───────────────────────────────────────────────────────────────

async def get_video_segments(video_id) -> list[VideoSegment]:
    """Segments of one video ordered by timestamp."""
    parsed = as_uuid(video_id)
    if parsed is None:
        return []
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(VideoSegment)
            .where(VideoSegment.video_id == parsed)
            .order_by(VideoSegment.timestamp_seconds.asc())
        )
        return list(result.scalars().all())


async def insert_segments(video_id, records: list[dict]) -> int:
    """Bulk insert segment records for a video. Returns the number inserted."""
    if not records:
        return 0
    parsed = _require_uuid(video_id)
    rows = [{**record, "video_id": parsed} for record in records]
    async with AsyncSessionLocal() as session:
        await session.execute(insert(VideoSegment), rows)
        await session.commit()
    return len(rows)


async def get_searchable_segments(video_id=None) -> list[VideoSegment]:
    """Segments of ready videos with their parent video loaded.

    With a video id, only that video's segments are returned.
    """
    stmt = (
        select(VideoSegment)
        .join(VideoSegment.video)
        .options(contains_eager(VideoSegment.video))
        .where(Video.status == "ready")
        .order_by(Video.created_at.asc(), VideoSegment.timestamp_seconds.asc())
    )
    if video_id:
        parsed = as_uuid(video_id)
        if parsed is None:
            return []
        stmt = stmt.where(VideoSegment.video_id == parsed)

    async with AsyncSessionLocal() as session:
        result = await session.execute(stmt)
        return list(result.scalars().unique().all())


# ── Q&A History ────────────────────────────────────────────────────────────

async def save_qa_history(video_id, question: str, answer: str, relevant_timestamps: list[str]):
    """Record a Q&A exchange. The application never reads these back."""
    async with AsyncSessionLocal() as session:
        record = VideoQAHistory(
            video_id=_require_uuid(video_id),
            question=question,
            answer=answer,
            relevant_timestamps=relevant_timestamps,
        )
        session.add(record)
        await session.commit()
