import uuid

from sqlalchemy import (
    JSON, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, Text, Uuid, func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from lumina.db.postgres import Base

VIDEO_STATUSES = ("processing", "ready", "failed")

# JSONB on Postgres, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _iso(value):
    return value.isoformat() if value is not None else None


class Video(Base):
    """An uploaded video and its analysis status."""
    __tablename__ = "videos"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(Text, nullable=False)
    filename = Column(Text, nullable=False)
    storage_path = Column(Text, nullable=False)
    duration_seconds = Column(Integer, nullable=True)
    thumbnail_path = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="processing", server_default="processing")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    segments = relationship(
        "VideoSegment",
        back_populates="video",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="VideoSegment.timestamp_seconds",
    )
    qa_history = relationship(
        "VideoQAHistory",
        back_populates="video",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in VIDEO_STATUSES) + ")",
            name="ck_videos_status",
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "title": self.title,
            "filename": self.filename,
            "storage_path": self.storage_path,
            "duration_seconds": self.duration_seconds,
            "thumbnail_path": self.thumbnail_path,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class VideoSegment(Base):
    """A timestamped annotation generated for a video."""
    __tablename__ = "video_segments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    video_id = Column(Uuid, ForeignKey("videos.id", ondelete="CASCADE"), nullable=False)
    timestamp_seconds = Column(Numeric(asdecimal=False), nullable=False)
    timestamp_display = Column(Text, nullable=False)
    frame_path = Column(Text, nullable=True)
    transcript = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    ocr_text = Column(Text, nullable=True)
    detected_objects = Column(JSONType, default=dict)
    # Crude search surrogate: description + transcript + OCR text, not an embedding
    embedding_text = Column(Text, nullable=True)
    confidence_score = Column(Numeric(asdecimal=False), default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    video = relationship("Video", back_populates="segments")

    __table_args__ = (
        Index("idx_video_segments_video_id", "video_id"),
        Index("idx_video_segments_timestamp", "timestamp_seconds"),
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id) if self.id is not None else None,
            "video_id": str(self.video_id) if self.video_id is not None else None,
            "timestamp_seconds": float(self.timestamp_seconds),
            "timestamp_display": self.timestamp_display,
            "frame_path": self.frame_path,
            "transcript": self.transcript,
            "description": self.description,
            "ocr_text": self.ocr_text,
            "detected_objects": self.detected_objects or {},
            "embedding_text": self.embedding_text,
            "confidence_score": float(self.confidence_score or 0),
            "created_at": _iso(self.created_at),
        }


class VideoQAHistory(Base):
    """Write-only log of questions asked about a video."""
    __tablename__ = "video_qa_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    video_id = Column(Uuid, ForeignKey("videos.id", ondelete="CASCADE"), nullable=False)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)
    relevant_timestamps = Column(JSONType, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    video = relationship("Video", back_populates="qa_history")

    __table_args__ = (
        Index("idx_video_qa_video_id", "video_id"),
    )
