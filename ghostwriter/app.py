from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

try:
    from config import settings
    from constants import (
        API_RATE_LIMIT_SCOPE,
        APP_NAME,
        DISCONNECT_POLL_SEC,
        INDEX_FILE_NAME,
        KEYED_PROVIDERS,
        PUBLIC_DIR,
    )
    from errors import (
        MESSAGE_BAD_JSON,
        MESSAGE_NOT_FOUND,
        MESSAGE_PAYLOAD_TOO_LARGE,
        MESSAGE_RATE_LIMITED,
        ApiError,
        ErrorKind,
    )
    from llm_client import GenerationGateway, create_gateway
    from logger_config import logger, set_debug
    from models import Intent
    from orchestrator import describe_reference, run_generation
    from reference import ReferenceLoader
except ImportError:
    from .config import settings
    from .constants import (
        API_RATE_LIMIT_SCOPE,
        APP_NAME,
        DISCONNECT_POLL_SEC,
        INDEX_FILE_NAME,
        KEYED_PROVIDERS,
        PUBLIC_DIR,
    )
    from .errors import (
        MESSAGE_BAD_JSON,
        MESSAGE_NOT_FOUND,
        MESSAGE_PAYLOAD_TOO_LARGE,
        MESSAGE_RATE_LIMITED,
        ApiError,
        ErrorKind,
    )
    from .llm_client import GenerationGateway, create_gateway
    from .logger_config import logger, set_debug
    from .models import Intent
    from .orchestrator import describe_reference, run_generation
    from .reference import ReferenceLoader

GENERATION_RATE_LIMIT_SCOPE = "generation"
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
NON_POST_METHODS = [method for method in ALL_METHODS if method != "POST"]

set_debug(settings.debug)

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


@lru_cache()
def get_reference_loader() -> ReferenceLoader:
    return ReferenceLoader(
        settings.reference_path,
        max_chars=settings.reference_max_chars,
        cache=settings.cache_reference,
    )


@lru_cache()
def get_gateway() -> GenerationGateway:
    return create_gateway(
        settings.llm_provider,
        settings.llm_model,
        settings.llm_base_url,
        settings.api_key,
        timeout_sec=settings.generation_timeout_sec,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(
        "Starting %s: provider=%s model=%s reference=%s",
        APP_NAME,
        settings.llm_provider,
        settings.llm_model,
        settings.reference_path,
    )
    if settings.llm_provider in KEYED_PROVIDERS and not settings.api_key:
        logger.warning("No API key configured for %s; generation calls will fail", settings.llm_provider)
    if not settings.reference_path.is_file():
        logger.warning("Reference file not found: %s", settings.reference_path)

    yield

    if get_gateway.cache_info().currsize:
        await get_gateway().aclose()
        get_gateway.cache_clear()
    logger.info("Shutting down...")


app = FastAPI(
    title=APP_NAME,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url=None,
    openapi_url="/openapi.json" if settings.debug else None,
)
app.state.limiter = limiter


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    # Server-side failures are already logged where they are classified.
    if exc.status_code < 500 and exc.kind is not ErrorKind.CANCELLED:
        logger.info(
            "Rejected %s %s: kind=%s error=%s",
            request.method,
            request.url.path,
            exc.kind.value,
            exc.error,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error = MESSAGE_NOT_FOUND if exc.status_code == 404 else str(exc.detail).lower()
    logger.info("Rejected %s %s: status=%d error=%s", request.method, request.url.path, exc.status_code, error)
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": error})


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limited: client=%s path=%s limit=%s", get_remote_address(request), request.url.path, exc.detail)
    return JSONResponse(status_code=429, content={"ok": False, "error": MESSAGE_RATE_LIMITED})


async def read_json_body(request: Request) -> Any:
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > settings.max_body_bytes:
        raise ApiError(ErrorKind.PAYLOAD_TOO_LARGE, MESSAGE_PAYLOAD_TOO_LARGE)
    # Chunked bodies carry no length header, so the cap is enforced while reading.
    raw = bytearray()
    async for chunk in request.stream():
        raw.extend(chunk)
        if len(raw) > settings.max_body_bytes:
            raise ApiError(ErrorKind.PAYLOAD_TOO_LARGE, MESSAGE_PAYLOAD_TOO_LARGE)
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except (ValueError, RecursionError) as exc:
        raise ApiError(ErrorKind.BAD_JSON, MESSAGE_BAD_JSON) from exc


@asynccontextmanager
async def watch_disconnect(request: Request) -> AsyncIterator[asyncio.Event]:
    """Yield an event that is set once the client goes away."""
    disconnected = asyncio.Event()

    async def poll() -> None:
        while not await request.is_disconnected():
            await asyncio.sleep(DISCONNECT_POLL_SEC)
        disconnected.set()

    watcher = asyncio.ensure_future(poll())
    try:
        yield disconnected
    finally:
        watcher.cancel()
        await asyncio.gather(watcher, return_exceptions=True)


async def handle_generation(
    intent: Intent,
    request: Request,
    loader: ReferenceLoader,
    gateway: GenerationGateway,
) -> JSONResponse:
    payload = await read_json_body(request)
    async with watch_disconnect(request) as disconnected:
        result = await run_generation(intent, payload, loader, gateway, cancel_event=disconnected)
    return JSONResponse(content=result)


@app.get("/api/health")
async def health() -> dict:
    return {"ok": True}


@app.get("/api/ref")
@limiter.shared_limit(settings.api_rate_limit, scope=API_RATE_LIMIT_SCOPE)
async def reference_preview(
    request: Request,
    loader: ReferenceLoader = Depends(get_reference_loader),
) -> JSONResponse:
    return JSONResponse(content=await describe_reference(loader))


@app.post("/api/gen")
@limiter.shared_limit(settings.api_rate_limit, scope=API_RATE_LIMIT_SCOPE)
@limiter.shared_limit(settings.generation_rate_limit, scope=GENERATION_RATE_LIMIT_SCOPE)
async def generate_lyrics(
    request: Request,
    loader: ReferenceLoader = Depends(get_reference_loader),
    gateway: GenerationGateway = Depends(get_gateway),
) -> JSONResponse:
    return await handle_generation(Intent.GENERATE, request, loader, gateway)


@app.post("/api/rewrite")
@limiter.shared_limit(settings.api_rate_limit, scope=API_RATE_LIMIT_SCOPE)
@limiter.shared_limit(settings.generation_rate_limit, scope=GENERATION_RATE_LIMIT_SCOPE)
async def rewrite_lyrics(
    request: Request,
    loader: ReferenceLoader = Depends(get_reference_loader),
    gateway: GenerationGateway = Depends(get_gateway),
) -> JSONResponse:
    return await handle_generation(Intent.REWRITE, request, loader, gateway)


@app.post("/api/use")
@limiter.shared_limit(settings.api_rate_limit, scope=API_RATE_LIMIT_SCOPE)
@limiter.shared_limit(settings.generation_rate_limit, scope=GENERATION_RATE_LIMIT_SCOPE)
async def coach_performance(
    request: Request,
    loader: ReferenceLoader = Depends(get_reference_loader),
    gateway: GenerationGateway = Depends(get_gateway),
) -> JSONResponse:
    return await handle_generation(Intent.COACH, request, loader, gateway)


@app.api_route("/api/gen", methods=NON_POST_METHODS, include_in_schema=False)
@app.api_route("/api/rewrite", methods=NON_POST_METHODS, include_in_schema=False)
@app.api_route("/api/use", methods=NON_POST_METHODS, include_in_schema=False)
@limiter.shared_limit(settings.api_rate_limit, scope=API_RATE_LIMIT_SCOPE)
async def wrong_method(request: Request) -> JSONResponse:
    raise ApiError(ErrorKind.METHOD_NOT_ALLOWED, f"use POST {request.url.path}")


@app.api_route("/api", methods=ALL_METHODS, include_in_schema=False)
@app.api_route("/api/{rest:path}", methods=ALL_METHODS, include_in_schema=False)
@limiter.shared_limit(settings.api_rate_limit, scope=API_RATE_LIMIT_SCOPE)
async def api_not_found(request: Request) -> JSONResponse:
    raise ApiError(ErrorKind.NOT_FOUND, MESSAGE_NOT_FOUND)


@app.get("/{full_path:path}", include_in_schema=False)
async def client_shell(full_path: str) -> FileResponse:
    if full_path:
        candidate = (PUBLIC_DIR / full_path).resolve()
        if candidate.is_file() and candidate.is_relative_to(PUBLIC_DIR):
            return FileResponse(candidate)
    index = PUBLIC_DIR / INDEX_FILE_NAME
    if not index.is_file():
        raise ApiError(ErrorKind.NOT_FOUND, MESSAGE_NOT_FOUND)
    return FileResponse(index)


def main() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level="debug" if settings.debug else "info")


if __name__ == "__main__":
    main()
