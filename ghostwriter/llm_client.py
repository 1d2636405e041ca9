from __future__ import annotations

import asyncio
import time
import urllib.parse
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

try:
    from constants import (
        DEFAULT_GEMINI_BASE_URL,
        DEFAULT_LMSTUDIO_BASE_URL,
        DEFAULT_OLLAMA_BASE_URL,
        DEFAULT_OPENROUTER_BASE_URL,
        GEN_TIMEOUT_SEC,
        HTTP_CONNECT_TIMEOUT_SEC,
        KEYED_PROVIDERS,
        LOCAL_HOSTS,
        PROVIDER_GEMINI,
        PROVIDER_LMSTUDIO,
        PROVIDER_OLLAMA,
        PROVIDER_OPENROUTER,
    )
    from creativity import SamplingParams
    from errors import ErrorKind, ProviderError
    from logger_config import logger
    from utils import summarize_text
except ImportError:
    from .constants import (
        DEFAULT_GEMINI_BASE_URL,
        DEFAULT_LMSTUDIO_BASE_URL,
        DEFAULT_OLLAMA_BASE_URL,
        DEFAULT_OPENROUTER_BASE_URL,
        GEN_TIMEOUT_SEC,
        HTTP_CONNECT_TIMEOUT_SEC,
        KEYED_PROVIDERS,
        LOCAL_HOSTS,
        PROVIDER_GEMINI,
        PROVIDER_LMSTUDIO,
        PROVIDER_OLLAMA,
        PROVIDER_OPENROUTER,
    )
    from .creativity import SamplingParams
    from .errors import ErrorKind, ProviderError
    from .logger_config import logger
    from .utils import summarize_text

GenerateFn = Callable[[str, SamplingParams], Awaitable[str]]

DEFAULT_BASE_URLS = {
    PROVIDER_GEMINI: DEFAULT_GEMINI_BASE_URL,
    PROVIDER_OPENROUTER: DEFAULT_OPENROUTER_BASE_URL,
    PROVIDER_OLLAMA: DEFAULT_OLLAMA_BASE_URL,
    PROVIDER_LMSTUDIO: DEFAULT_LMSTUDIO_BASE_URL,
}


@dataclass(frozen=True)
class GenerationOutcome:
    success: bool
    text: str = ""
    error_kind: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def ok(cls, text: str) -> "GenerationOutcome":
        return cls(success=True, text=text)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "GenerationOutcome":
        return cls(success=False, error_kind=kind, message=message)


def build_url(base_url: str, path: str) -> str:
    if base_url.endswith("/"):
        base = base_url[:-1]
    else:
        base = base_url
    if not path.startswith("/"):
        path = "/" + path
    return base + path


def is_local_url(url: str) -> bool:
    try:
        host = urllib.parse.urlparse(url).hostname
    except ValueError:
        return False
    if not host:
        return False
    return host in LOCAL_HOSTS or host.startswith("127.")


def resolve_base_url(provider: str, override: Optional[str] = None) -> str:
    if override:
        return override
    return DEFAULT_BASE_URLS.get(provider, DEFAULT_LMSTUDIO_BASE_URL)


def create_http_client(base_url: str, timeout_sec: float) -> httpx.AsyncClient:
    # Local servers are reached directly, never through an environment proxy.
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_sec, connect=HTTP_CONNECT_TIMEOUT_SEC),
        trust_env=not is_local_url(base_url),
    )


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    payload: Dict[str, Any],
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    try:
        response = await client.post(url, json=payload, headers=headers)
        response.raise_for_status()
    except httpx.TimeoutException:
        raise
    except httpx.HTTPStatusError as exc:
        body = summarize_text(exc.response.text)
        raise ProviderError(f"LLM HTTP error: {exc.response.status_code} {body}") from exc
    except httpx.HTTPError as exc:
        raise ProviderError(f"LLM connection error: {exc}") from exc
    try:
        data = response.json()
    except ValueError as exc:
        raise ProviderError(f"LLM returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ProviderError("LLM returned a non-object JSON payload")
    return data


def extract_gemini_text(response: Dict[str, Any]) -> str:
    candidates = response.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        feedback = response.get("promptFeedback") or {}
        reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        if reason:
            raise ProviderError(f"Gemini blocked the prompt: {reason}")
        raise ProviderError("Gemini response missing candidates")
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""
    return "".join(str(part.get("text", "")) for part in parts if isinstance(part, dict))


async def call_gemini(
    client: httpx.AsyncClient,
    model_name: str,
    base_url: str,
    sampling: SamplingParams,
    prompt: str,
    api_key: str,
) -> str:
    url = build_url(base_url, f"/models/{model_name}:generateContent")
    payload = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {"temperature": sampling.temperature, "topP": sampling.top_p},
    }
    response = await post_json(client, url, payload, headers={"x-goog-api-key": api_key})
    return extract_gemini_text(response)


def build_chat_messages(prompt: str) -> List[Dict[str, str]]:
    return [{"role": "user", "content": prompt}]


async def call_chat_completions(
    client: httpx.AsyncClient,
    model_name: str,
    base_url: str,
    sampling: SamplingParams,
    prompt: str,
    headers: Optional[Dict[str, str]] = None,
) -> str:
    url = build_url(base_url, "/chat/completions")
    payload = {
        "model": model_name,
        "messages": build_chat_messages(prompt),
        "temperature": sampling.temperature,
        "top_p": sampling.top_p,
        "stream": False,
    }
    response = await post_json(client, url, payload, headers=headers)
    try:
        return response["choices"][0]["message"]["content"] or ""
    except (KeyError, IndexError, TypeError) as exc:
        raise ProviderError("Chat completion response missing content") from exc


async def call_lmstudio(
    client: httpx.AsyncClient,
    model_name: str,
    base_url: str,
    sampling: SamplingParams,
    prompt: str,
) -> str:
    return await call_chat_completions(client, model_name, base_url, sampling, prompt)


async def call_openrouter(
    client: httpx.AsyncClient,
    model_name: str,
    base_url: str,
    sampling: SamplingParams,
    prompt: str,
    api_key: str,
) -> str:
    logger.info("OpenRouter request: base_url=%s model=%s", base_url, model_name)
    headers = {
        "Authorization": f"Bearer {api_key}",
        "X-Title": "Ghostwriter",
    }
    return await call_chat_completions(client, model_name, base_url, sampling, prompt, headers=headers)


async def call_ollama(
    client: httpx.AsyncClient,
    model_name: str,
    base_url: str,
    sampling: SamplingParams,
    prompt: str,
) -> str:
    url = build_url(base_url, "/api/chat")
    payload = {
        "model": model_name,
        "messages": build_chat_messages(prompt),
        "options": {"temperature": sampling.temperature, "top_p": sampling.top_p},
        "stream": False,
    }
    response = await post_json(client, url, payload)
    try:
        return response["message"]["content"] or ""
    except (KeyError, TypeError) as exc:
        raise ProviderError("Ollama response missing content") from exc


async def call_llm(
    provider: str,
    model_name: str,
    base_url: str,
    sampling: SamplingParams,
    prompt: str,
    client: httpx.AsyncClient,
    api_key: Optional[str] = None,
) -> str:
    logger.debug(
        "call_llm: provider=%s model=%s base_url=%s has_api_key=%s prompt_chars=%d",
        provider,
        model_name,
        base_url,
        bool(api_key),
        len(prompt),
    )
    if provider in KEYED_PROVIDERS and not api_key:
        raise ProviderError(f"{provider} requires an API key")
    if provider == PROVIDER_GEMINI:
        return await call_gemini(client, model_name, base_url, sampling, prompt, api_key or "")
    if provider == PROVIDER_OPENROUTER:
        return await call_openrouter(client, model_name, base_url, sampling, prompt, api_key or "")
    if provider == PROVIDER_OLLAMA:
        return await call_ollama(client, model_name, base_url, sampling, prompt)
    return await call_lmstudio(client, model_name, base_url, sampling, prompt)


async def _abandon(task: "asyncio.Future[str]") -> None:
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


class GenerationGateway:
    """Single, deadline-bounded, cancellable call to the model.

    ``execute`` never raises for provider trouble: every failure comes back as
    a ``GenerationOutcome`` with an ``ErrorKind``. No retries are attempted.
    """

    def __init__(
        self,
        generate: GenerateFn,
        timeout_sec: float = GEN_TIMEOUT_SEC,
        client: Optional[httpx.AsyncClient] = None,
        name: str = "custom",
    ) -> None:
        self._generate = generate
        self.name = name
        self.timeout_sec = timeout_sec
        self._client = client

    async def execute(
        self,
        prompt: str,
        sampling: SamplingParams,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GenerationOutcome:
        started = time.monotonic()
        call = asyncio.ensure_future(self._generate(prompt, sampling))
        waiters = {call}
        cancel_wait: Optional[asyncio.Future] = None
        if cancel_event is not None:
            cancel_wait = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_wait)

        try:
            done, _ = await asyncio.wait(waiters, timeout=self.timeout_sec, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            call.cancel()
            raise
        finally:
            if cancel_wait is not None:
                cancel_wait.cancel()

        elapsed = time.monotonic() - started
        if call not in done:
            await _abandon(call)
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Generation cancelled by client after %.2fs", elapsed)
                return GenerationOutcome.failure(ErrorKind.CANCELLED, "client disconnected")
            logger.warning("Generation timed out after %.2fs", elapsed)
            return GenerationOutcome.failure(ErrorKind.TIMEOUT, f"no response within {self.timeout_sec:g}s")

        try:
            raw = call.result()
        except httpx.TimeoutException as exc:
            return GenerationOutcome.failure(ErrorKind.TIMEOUT, f"provider timeout: {exc}")
        except ProviderError as exc:
            return GenerationOutcome.failure(ErrorKind.PROVIDER_FAILURE, str(exc))
        except Exception as exc:
            logger.exception("Unexpected provider failure")
            return GenerationOutcome.failure(ErrorKind.PROVIDER_FAILURE, str(exc) or exc.__class__.__name__)

        text = str(raw or "").strip()
        logger.info("LLM response received: %d chars in %.2fs", len(text), elapsed)
        if not text:
            return GenerationOutcome.failure(ErrorKind.EMPTY_RESPONSE, "model returned no text")
        return GenerationOutcome.ok(text)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def create_gateway(
    provider: str,
    model_name: str,
    base_url: Optional[str],
    api_key: Optional[str],
    timeout_sec: float = GEN_TIMEOUT_SEC,
) -> GenerationGateway:
    resolved_url = resolve_base_url(provider, base_url)
    # The transport timeout sits just past the deadline so the gateway classifies first.
    client = create_http_client(resolved_url, timeout_sec + HTTP_CONNECT_TIMEOUT_SEC)

    async def generate(prompt: str, sampling: SamplingParams) -> str:
        return await call_llm(provider, model_name, resolved_url, sampling, prompt, client, api_key)

    return GenerationGateway(generate, timeout_sec=timeout_sec, client=client, name=f"{provider}/{model_name}")
