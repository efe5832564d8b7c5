"""Extraction step: one oracle call that pulls raw field values out of free text.

Extraction and validation are separate phases. This module only proposes
raw candidates; every value still goes through the FieldValidator.

Malformed oracle output is expected, not exceptional: parse and schema
failures yield an empty extraction so the turn simply re-asks. Only a
transport failure is reported to the caller, which then keeps the FormState
unchanged.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel

from src.conversation.prompts.extraction import (
    build_extraction_message,
    build_extraction_prompt,
    build_modification_message,
    build_modification_prompt,
)
from src.llm.oracle import Err, Ok, Oracle, oracle
from src.validation.schemas import FIELD_SPECS

logger = logging.getLogger(__name__)


class ModificationRequest(BaseModel):
    """Which field the user wants to change in the summary, and to what."""

    field: str | None = None
    value: Any = None


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip()) and value.strip().lower() not in {"null", "none", "unknown"}
    return True


async def extract(
    utterance: str,
    missing_fields: list[str],
    context: list[str],
    session_id: str | None = None,
    client: Oracle | None = None,
) -> Ok[dict[str, Any]] | Err:
    """Return raw candidates keyed by field name, restricted to ``missing_fields``.

    Returns:
        Ok with a possibly empty mapping, or Err(kind="transport").
    """
    if not missing_fields:
        return Ok({})

    result = await (client or oracle).ask_json(
        build_extraction_prompt(missing_fields),
        build_extraction_message(utterance, context),
        session_id=session_id,
    )
    if isinstance(result, Err):
        if result.error.kind == "transport":
            return result
        logger.info("Extraction output unusable (%s), treating as empty", result.error.kind)
        return Ok({})

    allowed = set(missing_fields)
    extracted = {k: v for k, v in result.value.items() if k in allowed and _is_present(v)}
    dropped = set(result.value) - set(extracted)
    if dropped:
        logger.debug("Extraction dropped keys %s (session=%s)", sorted(dropped), session_id)
    return Ok(extracted)


async def extract_modification(
    utterance: str,
    summary: str,
    session_id: str | None = None,
    client: Oracle | None = None,
) -> Ok[ModificationRequest | None] | Err:
    """Identify the single field a summary correction targets.

    Returns:
        Ok(None) if nothing usable was identified, Ok(request) otherwise,
        Err(kind="transport") if the oracle could not be reached.
    """
    result = await (client or oracle).ask_json(
        build_modification_prompt(),
        build_modification_message(utterance, summary),
        schema=ModificationRequest,
        session_id=session_id,
    )
    if isinstance(result, Err):
        if result.error.kind == "transport":
            return result
        return Ok(None)

    request: ModificationRequest = result.value
    if request.field not in FIELD_SPECS or not _is_present(request.value):
        logger.info("Modification target not identified: %r", request.field)
        return Ok(None)
    return Ok(request)
