"""Creativity control: maps the 0-100 slider to sampling and vocabulary policy.

Low creativity is loose, high creativity is faithful. At or above
``STRICT_CREATIVITY_THRESHOLD`` the model is held to the reference vocabulary
with a fixed low temperature; below it temperature and top-p rise as the level
drops and a capped share of new words is allowed.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

try:
    from constants import (
        BASE_TEMPERATURE,
        BASE_TOP_P,
        DEFAULT_CREATIVITY,
        MAX_CREATIVITY,
        MAX_TEMPERATURE,
        MAX_TOP_P,
        MIN_CREATIVITY,
        MIN_NEW_WORD_PERCENT,
        MIN_TEMPERATURE,
        MIN_TOP_P,
        NEW_WORD_PERCENT_DIVISOR,
        STRICT_CREATIVITY_THRESHOLD,
        STRICT_TEMPERATURE,
        STRICT_TOP_P,
        TEMPERATURE_SPAN,
        TOP_P_SPAN,
    )
    from prompts import build_soft_vocabulary_policy, build_strict_vocabulary_policy
    from utils import clamp, round_half_up
except ImportError:
    from .constants import (
        BASE_TEMPERATURE,
        BASE_TOP_P,
        DEFAULT_CREATIVITY,
        MAX_CREATIVITY,
        MAX_TEMPERATURE,
        MAX_TOP_P,
        MIN_CREATIVITY,
        MIN_NEW_WORD_PERCENT,
        MIN_TEMPERATURE,
        MIN_TOP_P,
        NEW_WORD_PERCENT_DIVISOR,
        STRICT_CREATIVITY_THRESHOLD,
        STRICT_TEMPERATURE,
        STRICT_TOP_P,
        TEMPERATURE_SPAN,
        TOP_P_SPAN,
    )
    from .prompts import build_soft_vocabulary_policy, build_strict_vocabulary_policy
    from .utils import clamp, round_half_up


@dataclass(frozen=True)
class SamplingParams:
    temperature: float
    top_p: float


@dataclass(frozen=True)
class CreativityProfile:
    level: int
    strict: bool
    temperature: float
    top_p: float
    vocabulary_policy: str

    @property
    def sampling(self) -> SamplingParams:
        return SamplingParams(temperature=self.temperature, top_p=self.top_p)


def coerce_creativity(raw: Any) -> int:
    """Coerce a client value to an integer level in [0, 100].

    Numbers and numeric strings are rounded half up; anything missing,
    non-numeric or non-finite falls back to the default.
    """
    if isinstance(raw, bool) or raw is None:
        return DEFAULT_CREATIVITY
    # JSON integers are unbounded; clamp before any float conversion.
    if isinstance(raw, int):
        return int(clamp(raw, MIN_CREATIVITY, MAX_CREATIVITY))
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return DEFAULT_CREATIVITY
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return DEFAULT_CREATIVITY
    if not math.isfinite(value):
        return DEFAULT_CREATIVITY
    return int(clamp(round_half_up(value), MIN_CREATIVITY, MAX_CREATIVITY))


def new_word_ceiling_percent(level: int) -> int:
    return max(MIN_NEW_WORD_PERCENT, round_half_up((MAX_CREATIVITY - level) / NEW_WORD_PERCENT_DIVISOR))


def resolve_creativity(raw: Any) -> CreativityProfile:
    level = coerce_creativity(raw)
    if level >= STRICT_CREATIVITY_THRESHOLD:
        return CreativityProfile(
            level=level,
            strict=True,
            temperature=STRICT_TEMPERATURE,
            top_p=STRICT_TOP_P,
            vocabulary_policy=build_strict_vocabulary_policy(),
        )

    looseness = 1 - level / MAX_CREATIVITY
    temperature = clamp(BASE_TEMPERATURE + looseness * TEMPERATURE_SPAN, MIN_TEMPERATURE, MAX_TEMPERATURE)
    top_p = clamp(BASE_TOP_P + looseness * TOP_P_SPAN, MIN_TOP_P, MAX_TOP_P)
    return CreativityProfile(
        level=level,
        strict=False,
        temperature=temperature,
        top_p=top_p,
        vocabulary_policy=build_soft_vocabulary_policy(new_word_ceiling_percent(level)),
    )
