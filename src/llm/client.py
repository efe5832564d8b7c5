"""Ollama LLM client with bounded transport retries.

Uses Ollama's native /api/chat endpoint (not OpenAI-compat) so we can
disable Qwen3's thinking mode via think=false. Every call has a hard timeout;
timeouts, connection errors, 429 and 5xx responses are retried with
exponential backoff plus jitter, then re-raised to the caller.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import random
import time
from typing import Any

import httpx

from src.admin.events import emit
from src.config import settings
from src.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _RETRYABLE_STATUS
    return False


def backoff_delay(attempt: int, base: float | None = None, ceiling: float | None = None) -> float:
    """Delay before retry number ``attempt`` (1-based): base * 2^(n-1), capped, plus jitter."""
    base = settings.llm.backoff_base_seconds if base is None else base
    ceiling = settings.llm.backoff_max_seconds if ceiling is None else ceiling
    delay = min(base * (2 ** (attempt - 1)), ceiling)
    return delay + random.uniform(0, delay / 2)


class OllamaClient:
    """Async client for Ollama's native /api/chat endpoint.

    Uses think=false to disable Qwen3's chain-of-thought reasoning,
    which wastes tokens and dramatically slows responses.
    """

    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self._base_url = base_url or settings.llm.ollama_base_url
        self._max_attempts = max_attempts or settings.llm.max_attempts
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(float(settings.llm.conversation_timeout), connect=10.0),
            transport=transport,
        )

    async def chat(
        self,
        system_prompt: str,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        json_mode: bool = False,
        timeout: float | None = None,
        session_id: str | None = None,
    ) -> str:
        """Send a chat request to Ollama's native API (non-streaming, no thinking).

        Args:
            system_prompt: System-level instructions for the LLM.
            messages: List of {"role": "user"|"assistant", "content": "..."}.
            model: Model name override. Defaults to conversation model.
            temperature: Sampling temperature.
            max_tokens: Max response tokens. Defaults to config value.
            json_mode: Ask Ollama to constrain output to JSON.
            timeout: Per-attempt timeout override in seconds.
            session_id: Attached to emitted events for the audit trail.

        Returns:
            The LLM's text response.

        Raises:
            httpx.HTTPError: After all attempts failed, or immediately for
                non-retryable HTTP errors.
        """
        model = model or settings.llm.conversation_model
        if max_tokens is None:
            max_tokens = settings.llm.conversation_max_tokens
        if timeout is None:
            timeout = float(settings.llm.conversation_timeout)

        api_messages: list[dict[str, str]] = [
            {"role": "system", "content": system_prompt},
            *messages,
        ]
        payload: dict[str, Any] = {
            "model": model,
            "messages": api_messages,
            "stream": False,
            "think": False,
            "keep_alive": settings.llm.keep_alive,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }
        if json_mode:
            payload["format"] = "json"

        prompt_hash = hashlib.md5(system_prompt.encode()).hexdigest()[:8]

        await emit(SystemEvent(
            event_type=EventType.LLM_REQUEST,
            session_id=session_id,
            data={
                "model": model,
                "prompt_hash": prompt_hash,
                "message_count": len(messages),
                "json_mode": json_mode,
            },
            source_module="llm.client",
        ))

        attempt = 0
        while True:
            attempt += 1
            start = time.monotonic()
            try:
                response = await self._client.post("/api/chat", json=payload, timeout=timeout)
                response.raise_for_status()
                data: dict[str, Any] = response.json()
            except httpx.HTTPError as exc:
                elapsed_ms = int((time.monotonic() - start) * 1000)
                if _is_retryable(exc) and attempt < self._max_attempts:
                    delay = backoff_delay(attempt)
                    logger.warning(
                        "LLM attempt %d/%d failed (%s), retrying in %.1fs",
                        attempt,
                        self._max_attempts,
                        type(exc).__name__,
                        delay,
                    )
                    await emit(SystemEvent(
                        event_type=EventType.LLM_RETRY,
                        session_id=session_id,
                        data={"model": model, "attempt": attempt, "error": type(exc).__name__},
                        source_module="llm.client",
                    ))
                    await asyncio.sleep(delay)
                    continue

                await emit(SystemEvent(
                    event_type=EventType.LLM_ERROR,
                    session_id=session_id,
                    data={
                        "model": model,
                        "error": type(exc).__name__,
                        "attempts": attempt,
                        "latency_ms": elapsed_ms,
                    },
                    source_module="llm.client",
                ))
                logger.error("LLM call failed after %d attempt(s) for model %s: %s", attempt, model, exc)
                raise

            elapsed_ms = int((time.monotonic() - start) * 1000)
            content: str = data.get("message", {}).get("content", "")
            completion_tokens = data.get("eval_count", 0)

            await emit(SystemEvent(
                event_type=EventType.LLM_RESPONSE,
                session_id=session_id,
                data={
                    "model": model,
                    "latency_ms": elapsed_ms,
                    "prompt_tokens": data.get("prompt_eval_count", 0),
                    "completion_tokens": completion_tokens,
                    "attempts": attempt,
                },
                source_module="llm.client",
            ))
            logger.info(
                "LLM response: model=%s latency=%dms tokens=%d",
                model,
                elapsed_ms,
                completion_tokens,
            )
            return content

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


# Module-level singleton
llm_client = OllamaClient()
