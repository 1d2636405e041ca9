from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

from starlette.concurrency import run_in_threadpool

try:
    from constants import REFERENCE_PREVIEW_CHARS, SENTINEL_OUTPUT, UNKNOWN_WORDS_LOG_SAMPLE
    from creativity import CreativityProfile, resolve_creativity
    from errors import OUTCOME_MESSAGES, ApiError, ErrorKind
    from llm_client import GenerationGateway
    from logger_config import logger
    from models import GenerationRequest, Intent, OutputKind
    from prompt_builder import compose_prompt
    from reference import ReferenceLoader
    from text_utils import find_unknown_words
    from utils import summarize_text
except ImportError:
    from .constants import REFERENCE_PREVIEW_CHARS, SENTINEL_OUTPUT, UNKNOWN_WORDS_LOG_SAMPLE
    from .creativity import CreativityProfile, resolve_creativity
    from .errors import OUTCOME_MESSAGES, ApiError, ErrorKind
    from .llm_client import GenerationGateway
    from .logger_config import logger
    from .models import GenerationRequest, Intent, OutputKind
    from .prompt_builder import compose_prompt
    from .reference import ReferenceLoader
    from .text_utils import find_unknown_words
    from .utils import summarize_text

OUTPUT_KINDS: Dict[Intent, OutputKind] = {
    Intent.GENERATE: OutputKind.LYRICS,
    Intent.REWRITE: OutputKind.LYRICS,
    Intent.COACH: OutputKind.MARKDOWN,
}

ENDPOINT_NAMES: Dict[Intent, str] = {
    Intent.GENERATE: "gen",
    Intent.REWRITE: "rewrite",
    Intent.COACH: "use",
}


def validate_request(request: GenerationRequest) -> None:
    missing = request.missing_field()
    if missing:
        raise ApiError(ErrorKind.VALIDATION, f"missing {missing}")


async def load_reference(loader: ReferenceLoader) -> str:
    reference = await run_in_threadpool(loader.load)
    if not reference:
        logger.error("Reference unavailable: %s", loader.path)
        raise ApiError(ErrorKind.CONFIGURATION, f"missing {loader.source_name}")
    return reference


async def describe_reference(loader: ReferenceLoader) -> Dict[str, Any]:
    reference = await run_in_threadpool(loader.load)
    return {"ok": True, "chars": len(reference), "preview": reference[:REFERENCE_PREVIEW_CHARS]}


def check_vocabulary(text: str, reference: str, profile: CreativityProfile) -> None:
    if not profile.strict or text == SENTINEL_OUTPUT:
        return
    unknown = find_unknown_words(text, reference)
    if unknown:
        logger.warning(
            "Strict output uses %d word(s) outside the reference: %s",
            len(unknown),
            ", ".join(unknown[:UNKNOWN_WORDS_LOG_SAMPLE]),
        )


async def run_generation(
    intent: Intent,
    payload: Any,
    loader: ReferenceLoader,
    gateway: GenerationGateway,
    cancel_event: Optional[asyncio.Event] = None,
) -> Dict[str, Any]:
    endpoint = ENDPOINT_NAMES[intent]
    request = GenerationRequest.from_payload(intent, payload)
    validate_request(request)

    reference = await load_reference(loader)
    profile = resolve_creativity(request.creativity)
    prompt = compose_prompt(
        intent,
        reference=reference,
        user_prompt=request.prompt,
        profile=profile,
        source_lyrics=request.lyrics,
    )
    logger.info(
        "/api/%s: model=%s creativity=%d strict=%s temperature=%.3f top_p=%.3f prompt_chars=%d",
        endpoint,
        gateway.name,
        profile.level,
        profile.strict,
        profile.temperature,
        profile.top_p,
        len(prompt),
    )

    outcome = await gateway.execute(prompt, profile.sampling, cancel_event=cancel_event)
    if not outcome.success:
        kind = outcome.error_kind or ErrorKind.PROVIDER_FAILURE
        details = summarize_text(outcome.message) if outcome.message else None
        logger.error("/api/%s failed: kind=%s %s", endpoint, kind.value, details or "")
        if kind is ErrorKind.EMPTY_RESPONSE:
            details = None
        raise ApiError(kind, OUTCOME_MESSAGES.get(kind, OUTCOME_MESSAGES[ErrorKind.PROVIDER_FAILURE]), details=details)

    check_vocabulary(outcome.text, reference, profile)
    return {"ok": True, OUTPUT_KINDS[intent].value: outcome.text, "creativity": profile.level}
