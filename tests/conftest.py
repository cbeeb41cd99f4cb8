import uuid
from datetime import datetime, timezone

import pytest
from unittest.mock import AsyncMock

from lumina.core.config import Settings
from lumina.db.models import Video, VideoSegment


VIDEO_ID = "0b9f7c1e-5d0a-4a7e-9a51-6f1e2d3c4b5a"

# ── Sample Test Data ───────────────────────────────────────────────────────

SAMPLE_AI_SEGMENTS = """Here is the analysis you asked for:
```json
[
  {"timestamp_seconds": 0, "description": "A presenter greets the audience", "ocr_text": "Demo", "detected_objects": {"person": 1}, "transcript": "Hi everyone"},
  {"timestamp_seconds": 45, "description": "A red car drives past the studio", "ocr_text": "", "detected_objects": {"car": 2}, "transcript": ""},
  {"timestamp_seconds": 150.5, "description": "Closing slide with contact details", "ocr_text": "Thanks for watching", "detected_objects": {"text_overlay": 1}, "transcript": "See you next time"}
]
```"""

SAMPLE_QA_REPLY = """The presenter introduces the demo at the very start.
{"answer": "The presenter greets the audience at 00:00:00.", "relevant_timestamps": ["00:00:00"]}"""


def make_video(title="Demo", status="ready", video_id=VIDEO_ID) -> Video:
    now = datetime(2025, 12, 15, 10, 55, tzinfo=timezone.utc)
    return Video(
        id=uuid.UUID(video_id),
        title=title,
        filename="1734260000000-demo.mp4",
        storage_path="uploads/1734260000000-demo.mp4",
        status=status,
        created_at=now,
        updated_at=now,
    )


def make_segment(video: Video, timestamp: float, description=None, transcript=None,
                 ocr_text=None, detected_objects=None) -> VideoSegment:
    return VideoSegment(
        id=uuid.uuid4(),
        video_id=video.id,
        video=video,
        timestamp_seconds=timestamp,
        timestamp_display=f"00:{int(timestamp) // 60:02d}:{int(timestamp) % 60:02d}",
        description=description,
        transcript=transcript,
        ocr_text=ocr_text,
        detected_objects=detected_objects or {},
        confidence_score=0.9,
    )


# ── Fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture
def settings(tmp_path):
    """Settings with a gateway key and a throwaway storage directory."""
    return Settings(
        LOVABLE_API_KEY="test-key",
        STORAGE_DIR=str(tmp_path / "storage"),
        PUBLIC_BASE_URL="http://testserver",
    )


@pytest.fixture
def unconfigured_settings(tmp_path):
    """Settings without a gateway key."""
    return Settings(
        LOVABLE_API_KEY="",
        STORAGE_DIR=str(tmp_path / "storage"),
        PUBLIC_BASE_URL="http://testserver",
    )


@pytest.fixture
def fake_gateway():
    """Gateway stand-in; set `complete.return_value` or `side_effect` per test."""
    gateway = AsyncMock()
    gateway.complete = AsyncMock(return_value="")
    return gateway


@pytest.fixture
def mock_redis():
    """Mock Redis client for the analysis lock."""
    redis_mock = AsyncMock()
    redis_mock.set = AsyncMock(return_value=True)
    redis_mock.eval = AsyncMock(return_value=1)
    return redis_mock


@pytest.fixture
def demo_video():
    return make_video()


@pytest.fixture
def demo_segments(demo_video):
    return [
        make_segment(demo_video, 0, description="A person walks into the room",
                     transcript="Hello there", detected_objects={"person": 1}),
        make_segment(demo_video, 30, description="Traffic on a busy street",
                     ocr_text="Main St", detected_objects={"car": 2}),
    ]
