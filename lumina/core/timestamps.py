"""Conversions between second counts and the HH:MM:SS strings shown in the UI."""


def format_timestamp(seconds: float) -> str:
    """Format seconds as zero-padded HH:MM:SS (fractions are truncated)."""
    total = int(seconds)
    hrs = total // 3600
    mins = (total % 3600) // 60
    secs = total % 60
    return f"{hrs:02d}:{mins:02d}:{secs:02d}"


def parse_timestamp(value: str) -> int:
    """Parse `H:MM:SS` or `MM:SS` back to seconds.

    Any other shape, or a non-numeric part, yields 0.
    """
    try:
        parts = [int(p) for p in value.strip().split(":")]
    except (AttributeError, ValueError):
        return 0

    if len(parts) == 3:
        return parts[0] * 3600 + parts[1] * 60 + parts[2]
    if len(parts) == 2:
        return parts[0] * 60 + parts[1]
    return 0
