from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator

try:
    from constants import DEFAULT_CREATIVITY, MAX_LYRICS_CHARS, MAX_PROMPT_CHARS
    from creativity import coerce_creativity
    from utils import coerce_text
except ImportError:
    from .constants import DEFAULT_CREATIVITY, MAX_LYRICS_CHARS, MAX_PROMPT_CHARS
    from .creativity import coerce_creativity
    from .utils import coerce_text


class Intent(str, Enum):
    GENERATE = "generate"
    REWRITE = "rewrite"
    COACH = "coach"


class OutputKind(str, Enum):
    LYRICS = "lyrics"
    MARKDOWN = "markdown"


class GenerationRequest(BaseModel):
    """One generation call, already coerced: text fields are cut and trimmed."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    intent: Intent
    prompt: str = ""
    lyrics: str = ""
    creativity: int = DEFAULT_CREATIVITY

    @field_validator("prompt", mode="before")
    @classmethod
    def _coerce_prompt(cls, value: Any) -> str:
        return coerce_text(value, MAX_PROMPT_CHARS)

    @field_validator("lyrics", mode="before")
    @classmethod
    def _coerce_lyrics(cls, value: Any) -> str:
        return coerce_text(value, MAX_LYRICS_CHARS)

    @field_validator("creativity", mode="before")
    @classmethod
    def _coerce_creativity(cls, value: Any) -> int:
        return coerce_creativity(value)

    @classmethod
    def from_payload(cls, intent: Intent, payload: Any) -> "GenerationRequest":
        data: Dict[str, Any] = dict(payload) if isinstance(payload, dict) else {}
        data["intent"] = intent
        if intent is Intent.GENERATE:
            data["lyrics"] = ""
        data.setdefault("prompt", "")
        data.setdefault("lyrics", "")
        data.setdefault("creativity", None)
        return cls.model_validate(data)

    def missing_field(self) -> Optional[str]:
        if self.intent is Intent.GENERATE:
            return None if self.prompt else "prompt"
        return None if self.lyrics else "lyrics"
