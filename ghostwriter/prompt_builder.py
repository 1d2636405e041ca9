from __future__ import annotations

from typing import Dict, List, Optional, Tuple

try:
    from constants import MAX_LYRICS_CHARS, MAX_PROMPT_CHARS, REFERENCE_MAX_CHARS
    from creativity import CreativityProfile
    from models import Intent
    from prompts import (
        COACH_OUTPUT_BLOCK,
        COACH_TASK,
        GENERATE_TASK,
        LYRICS_OUTPUT_BLOCK,
        PERSONA_BLOCK,
        REFERENCE_SANITIZATION_BLOCK,
        REWRITE_TASK,
        VOICE_FINGERPRINT_BLOCK,
    )
except ImportError:
    from .constants import MAX_LYRICS_CHARS, MAX_PROMPT_CHARS, REFERENCE_MAX_CHARS
    from .creativity import CreativityProfile
    from .models import Intent
    from .prompts import (
        COACH_OUTPUT_BLOCK,
        COACH_TASK,
        GENERATE_TASK,
        LYRICS_OUTPUT_BLOCK,
        PERSONA_BLOCK,
        REFERENCE_SANITIZATION_BLOCK,
        REWRITE_TASK,
        VOICE_FINGERPRINT_BLOCK,
    )

SECTION_SEPARATOR = "\n\n"
FENCE = "---"

# intent -> (output block, task line, carries source lyrics)
INTENT_LAYOUTS: Dict[Intent, Tuple[str, str, bool]] = {
    Intent.GENERATE: (LYRICS_OUTPUT_BLOCK, GENERATE_TASK, False),
    Intent.REWRITE: (LYRICS_OUTPUT_BLOCK, REWRITE_TASK, True),
    Intent.COACH: (COACH_OUTPUT_BLOCK, COACH_TASK, True),
}


def fenced(label: str, body: str) -> str:
    return f"{label}:\n{FENCE}\n{body}\n{FENCE}"


def compose_prompt(
    intent: Intent,
    reference: str,
    user_prompt: str,
    profile: CreativityProfile,
    source_lyrics: Optional[str] = None,
) -> str:
    output_block, task, carries_lyrics = INTENT_LAYOUTS[intent]
    reference = (reference or "")[:REFERENCE_MAX_CHARS]
    user_prompt = (user_prompt or "")[:MAX_PROMPT_CHARS]

    sections: List[str] = [
        PERSONA_BLOCK,
        REFERENCE_SANITIZATION_BLOCK,
        VOICE_FINGERPRINT_BLOCK,
        profile.vocabulary_policy,
        output_block,
        fenced("REFERENCE", reference),
    ]
    if carries_lyrics:
        sections.append(fenced("LYRICS", (source_lyrics or "")[:MAX_LYRICS_CHARS]))
        if user_prompt:
            sections.append(f"PROMPT:\n{user_prompt}")
    else:
        sections.append(f"PROMPT:\n{user_prompt}")
    sections.append(task)

    return SECTION_SEPARATOR.join(sections).strip()
