"""End-to-end tests for the HTTP API."""
from __future__ import annotations

import logging

import pytest

from ghostwriter.app import app, get_reference_loader
from ghostwriter.errors import ProviderError
from ghostwriter.reference import ReferenceLoader

from conftest import MODEL_REPLY, REFERENCE_TEXT, FakeModel


class TestGenerate:
    async def test_generate_success(self, client, fake_model) -> None:
        resp = await client.post("/api/gen", json={"prompt": "a song about rain", "creativity": 100})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/json")
        assert resp.json() == {"ok": True, "lyrics": MODEL_REPLY, "creativity": 100}
        assert len(fake_model.calls) == 1
        prompt, sampling = fake_model.calls[0]
        assert "PROMPT:\na song about rain" in prompt
        assert REFERENCE_TEXT.strip() in prompt

    async def test_creativity_defaults_to_100(self, client) -> None:
        resp = await client.post("/api/gen", json={"prompt": "rain"})
        assert resp.json()["creativity"] == 100

    async def test_strict_creativity_sampling(self, client, fake_model) -> None:
        resp = await client.post("/api/gen", json={"prompt": "rain", "creativity": 95})
        assert resp.json()["creativity"] == 95
        prompt, sampling = fake_model.calls[0]
        assert sampling.temperature == 0.35
        assert "VOCABULARY: CLOSED" in prompt

    async def test_loose_creativity_is_hotter(self, client, fake_model) -> None:
        await client.post("/api/gen", json={"prompt": "rain", "creativity": 10})
        await client.post("/api/gen", json={"prompt": "rain", "creativity": 90})
        (loose_prompt, loose), (_, tight) = fake_model.calls
        assert "VOCABULARY: PREFER REFERENCE" in loose_prompt
        assert loose.temperature > tight.temperature

    @pytest.mark.parametrize("digits, expected", [("1" + "0" * 400, 100), ("-1" + "0" * 400, 0)])
    async def test_huge_integer_creativity_is_clamped(self, client, fake_model, digits: str, expected: int) -> None:
        body = '{"prompt": "rain", "creativity": %s}' % digits
        resp = await client.post("/api/gen", content=body, headers={"content-type": "application/json"})
        assert resp.status_code == 200
        assert resp.json()["creativity"] == expected
        assert len(fake_model.calls) == 1

    async def test_missing_prompt(self, client, fake_model) -> None:
        resp = await client.post("/api/gen", json={"prompt": "   "})
        assert resp.status_code == 400
        assert resp.json() == {"ok": False, "error": "missing prompt"}
        assert fake_model.calls == []

    async def test_empty_body_is_missing_prompt(self, client) -> None:
        resp = await client.post("/api/gen")
        assert resp.status_code == 400
        assert resp.json()["error"] == "missing prompt"


class TestRewriteAndCoach:
    async def test_rewrite_missing_lyrics(self, client, fake_model) -> None:
        resp = await client.post("/api/rewrite", json={"lyrics": "", "prompt": "x"})
        assert resp.status_code == 400
        assert resp.json() == {"ok": False, "error": "missing lyrics"}
        assert fake_model.calls == []

    async def test_rewrite_success(self, client, fake_model) -> None:
        resp = await client.post("/api/rewrite", json={"lyrics": "my old verse", "creativity": 40})
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "lyrics": MODEL_REPLY, "creativity": 40}
        assert "LYRICS:\n---\nmy old verse\n---" in fake_model.calls[0][0]

    async def test_coach_returns_markdown(self, client, fake_model) -> None:
        resp = await client.post("/api/use", json={"lyrics": "line one\nline two", "prompt": "slow"})
        assert resp.status_code == 200
        body = resp.json()
        assert body == {"ok": True, "markdown": MODEL_REPLY, "creativity": 100}
        assert "Line-by-Line Coaching" in fake_model.calls[0][0]

    async def test_coach_missing_reference(self, client, fake_model, tmp_path) -> None:
        app.dependency_overrides[get_reference_loader] = lambda: ReferenceLoader(tmp_path / "gone" / "lyrics.txt")
        resp = await client.post("/api/use", json={"lyrics": "line one"})
        assert resp.status_code == 500
        assert resp.json() == {"ok": False, "error": "missing lyrics.txt"}
        assert fake_model.calls == []


class TestGatewayFailures:
    async def test_timeout(self, client, use_gateway) -> None:
        use_gateway(FakeModel(delay=5.0), timeout_sec=0.05)
        resp = await client.post("/api/gen", json={"prompt": "rain"})
        assert resp.status_code == 504
        body = resp.json()
        assert body["ok"] is False
        assert body["error"] == "timed out"

    async def test_empty_response(self, client, use_gateway) -> None:
        use_gateway(FakeModel(reply="   "))
        resp = await client.post("/api/rewrite", json={"lyrics": "verse"})
        assert resp.status_code == 502
        assert resp.json() == {"ok": False, "error": "empty response"}

    async def test_provider_failure(self, client, use_gateway) -> None:
        use_gateway(FakeModel(error=ProviderError("LLM HTTP error: 500 upstream")))
        resp = await client.post("/api/gen", json={"prompt": "rain"})
        assert resp.status_code == 502
        body = resp.json()
        assert body["error"] == "failed"
        assert "500 upstream" in body["details"]
        assert "Traceback" not in body["details"]

    async def test_strict_output_outside_reference_is_logged(self, client, use_gateway, caplog) -> None:
        use_gateway(FakeModel(reply="rain on the moonlight"))
        with caplog.at_level(logging.WARNING, logger="ghostwriter"):
            resp = await client.post("/api/gen", json={"prompt": "rain", "creativity": 100})
        assert resp.status_code == 200
        assert resp.json()["lyrics"] == "rain on the moonlight"
        assert "outside the reference: moonlight" in caplog.text

    async def test_sentinel_output_is_returned(self, client, use_gateway, caplog) -> None:
        use_gateway(FakeModel(reply="..."))
        with caplog.at_level(logging.WARNING, logger="ghostwriter"):
            resp = await client.post("/api/gen", json={"prompt": "rain"})
        assert resp.json()["lyrics"] == "..."
        assert "outside the reference" not in caplog.text


class TestRouting:
    @pytest.mark.parametrize("path", ["/api/gen", "/api/rewrite", "/api/use"])
    async def test_wrong_method(self, client, path: str) -> None:
        resp = await client.get(path)
        assert resp.status_code == 405
        assert resp.json() == {"ok": False, "error": f"use POST {path}"}

    async def test_unknown_api_route(self, client) -> None:
        for method in ("GET", "POST", "DELETE"):
            resp = await client.request(method, "/api/nope")
            assert resp.status_code == 404
            assert resp.json() == {"ok": False, "error": "not found"}

    async def test_rejections_are_logged(self, client, caplog) -> None:
        with caplog.at_level(logging.INFO, logger="ghostwriter"):
            await client.get("/api/gen")
            await client.get("/api/nope")
            await client.post("/api/rewrite", json={"lyrics": ""})
            await client.post("/api/gen", content=b"{", headers={"content-type": "application/json"})
        assert "Rejected GET /api/gen: kind=method_not_allowed" in caplog.text
        assert "Rejected GET /api/nope: kind=not_found" in caplog.text
        assert "Rejected POST /api/rewrite: kind=validation error=missing lyrics" in caplog.text
        assert "Rejected POST /api/gen: kind=bad_json" in caplog.text

    async def test_ref_is_get_only(self, client) -> None:
        resp = await client.post("/api/ref")
        assert resp.status_code == 404

    async def test_reference_preview(self, client) -> None:
        resp = await client.get("/api/ref")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "chars": len(REFERENCE_TEXT), "preview": REFERENCE_TEXT}

    async def test_reference_preview_is_bounded(self, client, tmp_path) -> None:
        path = tmp_path / "big.txt"
        path.write_text("z" * 5000, encoding="utf-8")
        app.dependency_overrides[get_reference_loader] = lambda: ReferenceLoader(path)
        body = (await client.get("/api/ref")).json()
        assert body["chars"] == 5000
        assert body["preview"] == "z" * 1200

    async def test_reference_preview_when_missing(self, client, tmp_path) -> None:
        app.dependency_overrides[get_reference_loader] = lambda: ReferenceLoader(tmp_path / "missing.txt")
        assert (await client.get("/api/ref")).json() == {"ok": True, "chars": 0, "preview": ""}

    async def test_health(self, client) -> None:
        resp = await client.get("/api/health")
        assert resp.json() == {"ok": True}

    async def test_client_shell_fallback(self, client) -> None:
        for path in ("/", "/some/page"):
            resp = await client.get(path)
            assert resp.status_code == 200
            assert resp.headers["content-type"].startswith("text/html")
        script = await client.get("/app.js")
        assert script.status_code == 200
        assert "AbortController" in script.text

    async def test_shell_does_not_escape_public_dir(self, client) -> None:
        resp = await client.get("/..%2F..%2Fpyproject.toml")
        assert resp.headers["content-type"].startswith("text/html")


class TestBodies:
    async def test_oversized_body(self, client, fake_model) -> None:
        resp = await client.post("/api/gen", json={"prompt": "x" * 70000})
        assert resp.status_code == 413
        assert resp.json() == {"ok": False, "error": "payload too large"}
        assert fake_model.calls == []

    async def test_malformed_json(self, client, fake_model) -> None:
        resp = await client.post(
            "/api/gen",
            content=b'{"prompt": "rain"',
            headers={"content-type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json() == {"ok": False, "error": "bad json"}
        assert fake_model.calls == []

    async def test_deeply_nested_json(self, client, fake_model) -> None:
        resp = await client.post(
            "/api/gen",
            content=b"[" * 60000,
            headers={"content-type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json() == {"ok": False, "error": "bad json"}
        assert fake_model.calls == []

    async def test_chunked_body_over_cap_stops_reading(self, client, fake_model) -> None:
        sent = []

        async def chunks():
            for _ in range(200):
                sent.append(1)
                yield b"x" * 1024

        resp = await client.post("/api/gen", content=chunks())
        assert resp.status_code == 413
        assert resp.json() == {"ok": False, "error": "payload too large"}
        assert len(sent) < 200
        assert fake_model.calls == []

    async def test_long_prompt_is_capped(self, client, fake_model) -> None:
        resp = await client.post("/api/gen", json={"prompt": "y" * 5000})
        assert resp.status_code == 200
        prompt = fake_model.calls[0][0]
        assert "y" * 2000 in prompt and "y" * 2001 not in prompt


class TestRateLimits:
    async def test_generation_quota(self, client, fake_model) -> None:
        for _ in range(10):
            resp = await client.post("/api/gen", json={"prompt": "rain"})
            assert resp.status_code == 200
        resp = await client.post("/api/gen", json={"prompt": "rain"})
        assert resp.status_code == 429
        assert resp.json() == {"ok": False, "error": "rate limited"}
        assert len(fake_model.calls) == 10

    async def test_generation_quota_is_shared_across_intents(self, client, fake_model) -> None:
        for index in range(10):
            path, body = [
                ("/api/gen", {"prompt": "rain"}),
                ("/api/rewrite", {"lyrics": "verse"}),
                ("/api/use", {"lyrics": "verse"}),
            ][index % 3]
            assert (await client.post(path, json=body)).status_code == 200
        resp = await client.post("/api/use", json={"lyrics": "verse"})
        assert resp.status_code == 429
        assert len(fake_model.calls) == 10

    async def test_broad_api_quota(self, client) -> None:
        for _ in range(30):
            assert (await client.get("/api/ref")).status_code == 200
        resp = await client.get("/api/ref")
        assert resp.status_code == 429
        assert resp.json() == {"ok": False, "error": "rate limited"}

    async def test_broad_quota_blocks_generation(self, client, fake_model) -> None:
        for _ in range(30):
            await client.get("/api/gen")
        resp = await client.post("/api/gen", json={"prompt": "rain"})
        assert resp.status_code == 429
        assert fake_model.calls == []

    async def test_wrong_method_does_not_use_generation_quota(self, client) -> None:
        for _ in range(12):
            assert (await client.get("/api/gen")).status_code == 405
        assert (await client.post("/api/gen", json={"prompt": "rain"})).status_code == 200

    async def test_health_is_not_limited(self, client) -> None:
        for _ in range(35):
            assert (await client.get("/api/health")).status_code == 200
