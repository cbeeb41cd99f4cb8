"""Player timeline helpers: seeking from timestamp strings and marker placement."""
from lumina.core.timestamps import parse_timestamp

ACTIVE_WINDOW_SECONDS = 5


def seek_seconds(timestamp: str) -> int:
    """Seconds to seek to for a clicked timestamp such as "00:01:15" or "1:15"."""
    return parse_timestamp(timestamp)


def timeline_markers(segments: list[dict]) -> list[dict]:
    """Marker positions as a percentage of the latest segment timestamp."""
    if not segments:
        return []
    max_time = max(float(seg["timestamp_seconds"]) for seg in segments) or 1
    return [
        {
            "id": seg.get("id"),
            "timestamp_display": seg.get("timestamp_display"),
            "left_percent": float(seg["timestamp_seconds"]) / max_time * 100,
        }
        for seg in segments
    ]


def progress_percent(current_time: float, segments: list[dict]) -> float:
    if not segments:
        return 0.0
    max_time = max(float(seg["timestamp_seconds"]) for seg in segments) or 1
    return current_time / max_time * 100


def active_segment_ids(segments: list[dict], current_time: float) -> list:
    """Segments within a few seconds of the playhead are highlighted."""
    return [
        seg.get("id")
        for seg in segments
        if abs(current_time - float(seg["timestamp_seconds"])) < ACTIVE_WINDOW_SECONDS
    ]
