from __future__ import annotations

import math
from typing import Any

try:
    from constants import LOG_PREVIEW_CHARS
except ImportError:
    from .constants import LOG_PREVIEW_CHARS


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def coerce_text(value: Any, limit: int) -> str:
    # Non-strings become empty; the cut happens before trimming.
    text = value if isinstance(value, str) else ""
    return text[:limit].strip()


def summarize_text(text: str, limit: int = LOG_PREVIEW_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "...(truncated)"
