"""Quick-reply suggestion chips derived from the interview state.

Mostly a static mapping: confirmation chips in the summary, the field's own
chip table while collecting data, and the validator's option list verbatim
on escalation. Only fields without a chip table (the job title) ask the
oracle, bounded by a short timeout; any failure means no chips.
"""

from __future__ import annotations

import asyncio
import logging

from src.config import settings
from src.conversation.prompts.suggestions import SUGGESTION_PROMPT, build_suggestion_message
from src.llm.oracle import Err, Oracle, oracle
from src.llm.parsing import parse_json_array
from src.schemas.form import FormState, Section
from src.validation.schemas import get_field_spec

logger = logging.getLogger(__name__)

SUMMARY_CHIPS: tuple[str, ...] = ("Ja", "Etwas ändern")
MAX_CHIPS = 4
MAX_CHIP_LENGTH = 30


def static_chips(form_state: FormState) -> list[str] | None:
    """Chips known without an oracle call. None means the field is open-ended."""
    if form_state.section == Section.COMPLETED:
        return []
    if form_state.section == Section.SUMMARY:
        return list(SUMMARY_CHIPS)
    if not form_state.missing_fields:
        return []
    chips = get_field_spec(form_state.missing_fields[0]).chips
    if chips:
        return list(chips[:MAX_CHIPS])
    return None


def generate_escalation_chips(field: str, valid_options: list[str]) -> list[str]:
    """Escalation chips are the validator's options, verbatim."""
    logger.debug("Escalation chips for %s: %s", field, valid_options)
    return list(valid_options)


async def generate(
    form_state: FormState,
    last_response_text: str,
    session_id: str | None = None,
    client: Oracle | None = None,
) -> list[str]:
    """Return up to four quick replies for the reply just composed."""
    chips = static_chips(form_state)
    if chips is not None:
        return chips
    return await _oracle_chips(last_response_text, session_id, client or oracle)


async def _oracle_chips(last_response_text: str, session_id: str | None, client: Oracle) -> list[str]:
    budget = settings.llm.suggestion_timeout
    try:
        result = await asyncio.wait_for(
            client.ask(
                SUGGESTION_PROMPT,
                build_suggestion_message(last_response_text),
                temperature=0.5,
                max_tokens=80,
                timeout=budget,
                session_id=session_id,
            ),
            timeout=budget,
        )
    except asyncio.TimeoutError:
        logger.info("Suggestion chips timed out after %.1fs", budget)
        return []
    if isinstance(result, Err):
        return []

    parsed = parse_json_array(result.value) or []
    chips = [s.strip() for s in parsed if isinstance(s, str) and s.strip()]
    return [c for c in chips if len(c) <= MAX_CHIP_LENGTH][:MAX_CHIPS]
