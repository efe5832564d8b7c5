"""Typed adapter around the LLM client.

All oracle I/O in the interview goes through this module. Callers receive an
``Ok`` or an ``Err`` and never see an exception or an untyped payload:

- transport failures (after the client's own retries) -> Err(kind="transport")
- output that contains no JSON object                 -> Err(kind="parse")
- JSON that does not fit the requested pydantic model  -> Err(kind="schema")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ValidationError

from src.llm.client import OllamaClient, llm_client
from src.llm.parsing import parse_json_object

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class OracleError:
    kind: Literal["transport", "parse", "schema"]
    detail: str = ""


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: Literal[True] = True


@dataclass(frozen=True)
class Err:
    error: OracleError
    ok: Literal[False] = False


class Oracle:
    """Narrow prompt-in / text-or-JSON-out interface to the LLM."""

    def __init__(self, client: OllamaClient | None = None) -> None:
        self._client = client or llm_client

    async def ask(
        self,
        system_prompt: str,
        user_message: str,
        *,
        history: list[dict[str, str]] | None = None,
        temperature: float = 0.3,
        max_tokens: int | None = None,
        timeout: float | None = None,
        json_mode: bool = False,
        session_id: str | None = None,
    ) -> Ok[str] | Err:
        messages = [*(history or []), {"role": "user", "content": user_message}]
        try:
            text = await self._client.chat(
                system_prompt=system_prompt,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                json_mode=json_mode,
                timeout=timeout,
                session_id=session_id,
            )
        except Exception as exc:  # noqa: BLE001 - every client failure becomes a typed Err
            logger.warning("Oracle transport failure: %s", exc)
            return Err(OracleError("transport", str(exc) or type(exc).__name__))
        return Ok(text)

    async def ask_json(
        self,
        system_prompt: str,
        user_message: str,
        *,
        schema: type[M] | None = None,
        temperature: float = 0.0,
        timeout: float | None = None,
        session_id: str | None = None,
    ) -> Ok[Any] | Err:
        """Ask for a JSON object; optionally validate it into ``schema``."""
        result = await self.ask(
            system_prompt,
            user_message,
            temperature=temperature,
            timeout=timeout,
            json_mode=True,
            session_id=session_id,
        )
        if isinstance(result, Err):
            return result

        parsed = parse_json_object(result.value)
        if parsed is None:
            return Err(OracleError("parse", result.value[:200]))
        if schema is None:
            return Ok(parsed)
        try:
            return Ok(schema.model_validate(parsed))
        except ValidationError as exc:
            logger.warning("Oracle output does not match %s: %s", schema.__name__, exc.errors()[:3])
            return Err(OracleError("schema", str(exc.errors()[:3])))


# Module-level singleton
oracle = Oracle()
