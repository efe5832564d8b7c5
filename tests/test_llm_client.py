"""Tests for the Ollama client: payload shape, bounded retries, backoff."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from src.llm.client import OllamaClient, backoff_delay
from src.schemas.events import EventType


def _ok(content: str = "Hallo") -> httpx.Response:
    return httpx.Response(200, json={"message": {"content": content}, "eval_count": 12, "prompt_eval_count": 40})


class _Sequence:
    """Transport handler replaying a list of responses or exceptions."""

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client(handler: _Sequence, max_attempts: int = 3) -> OllamaClient:
    return OllamaClient(
        base_url="http://ollama.test",
        transport=httpx.MockTransport(handler),
        max_attempts=max_attempts,
    )


# ── Happy path ───────────────────────────────────────────────────────


class TestChat:
    @pytest.mark.asyncio
    async def test_payload_and_content(self):
        handler = _Sequence(_ok("Servus"))
        with patch("src.llm.client.emit", new_callable=AsyncMock) as mock_emit:
            text = await _client(handler).chat(
                "system",
                [{"role": "user", "content": "hi"}],
                model="qwen3:8b",
                temperature=0.2,
                max_tokens=64,
                json_mode=True,
            )

        assert text == "Servus"
        body = json.loads(handler.requests[0].content)
        assert handler.requests[0].url.path == "/api/chat"
        assert body["messages"][0] == {"role": "system", "content": "system"}
        assert body["messages"][1] == {"role": "user", "content": "hi"}
        assert body["think"] is False
        assert body["stream"] is False
        assert body["format"] == "json"
        assert body["options"] == {"temperature": 0.2, "num_predict": 64}
        types = [c.args[0].event_type for c in mock_emit.call_args_list]
        assert types == [EventType.LLM_REQUEST, EventType.LLM_RESPONSE]

    @pytest.mark.asyncio
    async def test_no_format_without_json_mode(self):
        handler = _Sequence(_ok())
        with patch("src.llm.client.emit", new_callable=AsyncMock):
            await _client(handler).chat("system", [{"role": "user", "content": "hi"}])
        assert "format" not in json.loads(handler.requests[0].content)


# ── Retries ──────────────────────────────────────────────────────────


class TestRetries:
    @pytest.mark.asyncio
    async def test_timeout_then_success(self):
        handler = _Sequence(httpx.ReadTimeout("slow"), _ok("endlich"))
        with (
            patch("src.llm.client.emit", new_callable=AsyncMock) as mock_emit,
            patch("src.llm.client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep,
        ):
            text = await _client(handler).chat("s", [{"role": "user", "content": "x"}])

        assert text == "endlich"
        assert len(handler.requests) == 2
        mock_sleep.assert_awaited_once()
        types = [c.args[0].event_type for c in mock_emit.call_args_list]
        assert EventType.LLM_RETRY in types

    @pytest.mark.asyncio
    async def test_5xx_retried_until_exhausted(self):
        handler = _Sequence(httpx.Response(503), httpx.Response(502), httpx.Response(500))
        with (
            patch("src.llm.client.emit", new_callable=AsyncMock) as mock_emit,
            patch("src.llm.client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep,
        ):
            with pytest.raises(httpx.HTTPStatusError):
                await _client(handler, max_attempts=3).chat("s", [{"role": "user", "content": "x"}])

        assert len(handler.requests) == 3
        assert mock_sleep.await_count == 2
        assert mock_emit.call_args[0][0].event_type == EventType.LLM_ERROR
        assert mock_emit.call_args[0][0].data["attempts"] == 3

    @pytest.mark.asyncio
    async def test_4xx_not_retried(self):
        handler = _Sequence(httpx.Response(400))
        with (
            patch("src.llm.client.emit", new_callable=AsyncMock),
            patch("src.llm.client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep,
        ):
            with pytest.raises(httpx.HTTPStatusError):
                await _client(handler).chat("s", [{"role": "user", "content": "x"}])

        assert len(handler.requests) == 1
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_429_is_retried(self):
        handler = _Sequence(httpx.Response(429), _ok())
        with (
            patch("src.llm.client.emit", new_callable=AsyncMock),
            patch("src.llm.client.asyncio.sleep", new_callable=AsyncMock),
        ):
            assert await _client(handler).chat("s", [{"role": "user", "content": "x"}]) == "Hallo"


class TestBackoff:
    def test_exponential_with_jitter(self):
        for attempt, base_delay in [(1, 0.5), (2, 1.0), (3, 2.0)]:
            delay = backoff_delay(attempt, base=0.5, ceiling=8.0)
            assert base_delay <= delay <= base_delay * 1.5

    def test_capped(self):
        assert backoff_delay(10, base=0.5, ceiling=4.0) <= 6.0
