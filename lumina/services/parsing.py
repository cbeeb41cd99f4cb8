"""
Pull JSON fragments out of free-form model replies.

Models are asked for "JSON only" but routinely wrap it in prose or code
fences, so we take the widest bracketed span and try to decode that.
Both helpers return None instead of raising when nothing usable is found.
"""
import json
import math
import re

_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")
_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


def extract_json_array(text: str | None) -> list | None:
    """Decode the first `[` ... last `]` span of `text` as a JSON list."""
    if not text:
        return None
    match = _ARRAY_PATTERN.search(text)
    if not match:
        return None
    try:
        value = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, list) else None


def extract_json_object(text: str | None) -> dict | None:
    """Decode the first `{` ... last `}` span of `text` as a JSON object."""
    if not text:
        return None
    match = _OBJECT_PATTERN.search(text)
    if not match:
        return None
    try:
        value = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def as_number(value) -> float | None:
    """A finite JSON number as float; booleans, NaN, infinities and everything else give None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def as_object_counts(value) -> dict[str, int]:
    """Keep only `label -> non-negative integer` pairs of a detected-objects map."""
    if not isinstance(value, dict):
        return {}
    counts = {}
    for label, count in value.items():
        number = as_number(count)
        if number is None or number < 0:
            continue
        counts[str(label)] = int(number)
    return counts
