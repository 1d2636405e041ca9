"""Pytest configuration and fixtures."""
from __future__ import annotations

import asyncio
from typing import List, Optional, Tuple

import pytest
from httpx import ASGITransport, AsyncClient

from ghostwriter.app import app, get_gateway, get_reference_loader, limiter
from ghostwriter.creativity import SamplingParams
from ghostwriter.llm_client import GenerationGateway
from ghostwriter.reference import ReferenceLoader

REFERENCE_TEXT = """i been outside in the cold too long
rain keep falling and i keep holding on
you said you would stay but you was gone
i keep my head down and i keep it strong
You might also like
12 Contributors
rain on the window rain in my head
all the things that i never said
"""

MODEL_REPLY = "rain on the window\ni keep holding on"


class FakeModel:
    """Stand-in for the provider call; records every invocation."""

    def __init__(self, reply: str = MODEL_REPLY, delay: float = 0.0, error: Optional[BaseException] = None) -> None:
        self.reply = reply
        self.delay = delay
        self.error = error
        self.calls: List[Tuple[str, SamplingParams]] = []
        self.cancelled = False

    async def __call__(self, prompt: str, sampling: SamplingParams) -> str:
        self.calls.append((prompt, sampling))
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture(autouse=True)
def _reset_app_state():
    """Clear rate-limit counters and dependency overrides between tests."""
    limiter.reset()
    yield
    limiter.reset()
    app.dependency_overrides.clear()


@pytest.fixture
def reference_file(tmp_path):
    path = tmp_path / "lyrics.txt"
    path.write_text(REFERENCE_TEXT, encoding="utf-8")
    return path


@pytest.fixture
def fake_model():
    return FakeModel()


@pytest.fixture
def use_gateway():
    """Install a gateway built around ``model`` for the app under test."""

    def install(model: FakeModel, timeout_sec: float = 2.0) -> GenerationGateway:
        gateway = GenerationGateway(model, timeout_sec=timeout_sec)
        app.dependency_overrides[get_gateway] = lambda: gateway
        return gateway

    return install


@pytest.fixture
async def client(reference_file, fake_model, use_gateway):
    loader = ReferenceLoader(reference_file)
    app.dependency_overrides[get_reference_loader] = lambda: loader
    use_gateway(fake_model)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
