"""Intent classifier: deterministic keyword pass first, oracle fallback second.

The keyword pass handles short templated answers without a network round
trip. Only when it is inconclusive (no pattern, or confirmation and
correction words in the same summary reply) is the oracle asked. An oracle
failure of any kind falls back to ``data_provision``, because the common case
is the user answering the question just asked.
"""

from __future__ import annotations

import logging
import re

from pydantic import BaseModel, Field

from src.admin.events import emit
from src.conversation.prompts.intent import INTENT_PROMPT, build_intent_message
from src.llm.oracle import Err, Oracle, oracle
from src.schemas.events import EventType, SystemEvent
from src.schemas.form import FormState, Section, UserIntent

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\w", re.UNICODE)
_INTERROGATIVE_RE = re.compile(
    r"^\s*(was|wie|wieso|warum|weshalb|wann|wo|woher|welche[rsnm]?|wer|erkläre?|erklär|kannst du|gibt es)\b",
    re.IGNORECASE,
)
_CONFIRMATION_RE = re.compile(
    r"\b(ja|jap|jo|yes|okay|ok|klar|los|go|genau|stimmt|richtig|korrekt|passt|berechne\w*|rechne\w*|weiter)\b",
    re.IGNORECASE,
)
_MODIFICATION_RE = re.compile(
    r"\b(änder\w*|aender\w*|korrigier\w*|falsch|eigentlich|doch|nein|nicht|stopp?|warte|moment)\b",
    re.IGNORECASE,
)

_MAX_CONFIRMATION_LENGTH = 30
_MAX_ANSWER_LENGTH = 100


class IntentAnalysis(BaseModel):
    """Classifier output. ``source`` is "keywords", "oracle" or "fallback"."""

    intent: UserIntent
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    reasoning: str = ""
    source: str = "keywords"


def is_question(utterance: str) -> bool:
    """A question mark or a leading interrogative, with at least one word character."""
    if not _WORD_RE.search(utterance):
        return False
    return "?" in utterance or bool(_INTERROGATIVE_RE.search(utterance))


def detect_by_keywords(utterance: str, form_state: FormState) -> IntentAnalysis | None:
    """Phase-aware deterministic classification. None means inconclusive."""
    text = utterance.strip()

    if is_question(text):
        return IntentAnalysis(intent=UserIntent.QUESTION, confidence=0.9, reasoning="question pattern")

    if form_state.section == Section.COMPLETED:
        return IntentAnalysis(
            intent=UserIntent.QUESTION,
            confidence=0.6,
            reasoning="follow-up on the finished result",
        )

    if form_state.section == Section.SUMMARY:
        confirms = bool(_CONFIRMATION_RE.search(text)) and len(text) < _MAX_CONFIRMATION_LENGTH
        modifies = bool(_MODIFICATION_RE.search(text))
        if confirms and modifies:
            return None
        if confirms:
            return IntentAnalysis(intent=UserIntent.CONFIRMATION, confidence=0.85, reasoning="confirmation term")
        if modifies:
            return IntentAnalysis(intent=UserIntent.MODIFICATION, confidence=0.8, reasoning="correction term")
        return None

    if form_state.missing_fields and text and len(text) < _MAX_ANSWER_LENGTH:
        return IntentAnalysis(
            intent=UserIntent.DATA_PROVISION,
            confidence=0.75,
            reasoning="short answer while fields are missing",
        )
    return None


async def classify(
    utterance: str,
    form_state: FormState,
    session_id: str | None = None,
    client: Oracle | None = None,
) -> IntentAnalysis:
    """Classify ``utterance`` against the current state. Never raises."""
    analysis = detect_by_keywords(utterance, form_state)
    if analysis is None:
        analysis = await _classify_with_oracle(utterance, form_state, session_id, client or oracle)

    logger.debug(
        "Intent %s (%.2f, %s) for session %s",
        analysis.intent.value,
        analysis.confidence,
        analysis.source,
        session_id,
    )
    await emit(SystemEvent(
        event_type=EventType.INTENT_CLASSIFIED,
        session_id=session_id,
        data={
            "intent": analysis.intent.value,
            "confidence": analysis.confidence,
            "source": analysis.source,
            "section": form_state.section.value,
        },
        source_module="conversation.intent",
    ))
    return analysis


async def _classify_with_oracle(
    utterance: str,
    form_state: FormState,
    session_id: str | None,
    client: Oracle,
) -> IntentAnalysis:
    result = await client.ask_json(
        INTENT_PROMPT,
        build_intent_message(utterance, form_state.section.value, form_state.missing_fields),
        schema=IntentAnalysis,
        session_id=session_id,
    )
    if isinstance(result, Err):
        logger.info("Intent oracle failed (%s), defaulting to data_provision", result.error.kind)
        return IntentAnalysis(
            intent=UserIntent.DATA_PROVISION,
            confidence=0.0,
            reasoning=f"oracle {result.error.kind} failure",
            source="fallback",
        )
    return result.value.model_copy(update={"source": "oracle"})
