"""Field validator with bounded retries and escalation.

Wraps the field registry with per-session retry tracking:

1. A field that already failed ``max_retries`` times is escalated: the new
   value is not even parsed, the caller gets the discrete option list so the
   UI can switch to multiple choice. Answers to the escalated question go
   through ``accept_option`` instead.
2. Otherwise the raw value is parsed. A missing prerequisite (group before
   tarif) is a failure of the dependent field and costs one retry.
3. A failure increments the counter and carries a near-miss suggestion.
4. A success resets the counter to zero.

Retry counters live in an expiring counter store keyed by
``"{session_id}:{field}"``; after ``retry_ttl_seconds`` of inactivity a field
starts fresh.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from src.config import settings
from src.schemas.form import FormState
from src.schemas.validation import FieldError, ValidationFailure, ValidationResult, ValidationSuccess
from src.validation.schemas import FieldParseError, get_field_spec
from src.validation.store import CounterStore, build_counter_store

logger = logging.getLogger(__name__)

ESCALATION_MESSAGE = "Kein Problem, das ist manchmal verwirrend. Hier sind die Optionen:"


def _flat_context(form_state: FormState | Mapping[str, Any] | None) -> dict[str, Any]:
    if form_state is None:
        return {}
    if isinstance(form_state, FormState):
        return {**form_state.data.job_details, **form_state.data.tax_details}
    return dict(form_state)


class FieldValidator:
    """Validates one raw answer at a time and decides pass / retry / escalate."""

    def __init__(self, store: CounterStore | None = None, max_retries: int | None = None) -> None:
        self._store = store if store is not None else build_counter_store()
        self._max_retries = max_retries if max_retries is not None else settings.interview.max_retries

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @staticmethod
    def _key(session_id: str, field: str) -> str:
        return f"{session_id}:{field}"

    def valid_options(self, field: str) -> list[str]:
        """Discrete choices offered once a field is escalated."""
        return list(get_field_spec(field).options)

    async def is_escalated(self, field: str, session_id: str) -> bool:
        return await self._store.get_count(self._key(session_id, field)) >= self._max_retries

    async def validate(
        self,
        field: str,
        raw: Any,
        session_id: str,
        form_state: FormState | Mapping[str, Any] | None = None,
    ) -> ValidationResult:
        """Validate ``raw`` for ``field`` in the scope of ``session_id``.

        ``form_state`` supplies already-collected values for cross-field rules.
        """
        spec = get_field_spec(field)
        key = self._key(session_id, field)
        received = str(raw)

        count = await self._store.get_count(key)
        if count >= self._max_retries:
            logger.info("Field %s escalated for session %s (retries=%d)", field, session_id, count)
            return ValidationFailure(
                error=FieldError(
                    message=ESCALATION_MESSAGE,
                    field=field,
                    received=received,
                    valid_options=self.valid_options(field),
                ),
                retry_count=count,
                should_escalate=True,
            )

        context = _flat_context(form_state)
        if spec.depends_on and context.get(spec.depends_on) in (None, ""):
            return await self._fail(key, field, received, spec.dependency_message, suggestion=None)

        try:
            value = spec.parse(raw, context)
        except FieldParseError as exc:
            return await self._fail(key, field, received, exc.message, suggestion=spec.near_miss.suggest(raw))

        await self._store.reset(key)
        return ValidationSuccess(normalized_value=value)

    async def accept_option(
        self,
        field: str,
        choice: str,
        session_id: str,
        form_state: FormState | Mapping[str, Any] | None = None,
    ) -> ValidationResult:
        """Resolve an answer given while ``field`` is escalated.

        Escalation changes how the question is asked, not which answers are
        correct: a tapped chip and any typed value the field parses (Sachsen,
        4 Kinder, P12) are accepted alike. A match resets the counter; anything
        else keeps the field escalated without costing another retry.
        """
        spec = get_field_spec(field)
        try:
            value = spec.parse(choice, _flat_context(form_state))
        except FieldParseError:
            value = None
        if value is not None:
            await self._store.reset(self._key(session_id, field))
            logger.info("Escalated field %s resolved by option %r (session=%s)", field, choice, session_id)
            return ValidationSuccess(normalized_value=value)
        return ValidationFailure(
            error=FieldError(
                message=ESCALATION_MESSAGE,
                field=field,
                received=choice,
                valid_options=self.valid_options(field),
            ),
            retry_count=await self._store.get_count(self._key(session_id, field)),
            should_escalate=True,
        )

    async def reset(self, session_id: str, field: str | None = None) -> None:
        """Forget retry state for one field, or for the whole session."""
        if field is not None:
            await self._store.reset(self._key(session_id, field))
        else:
            await self._store.reset_session(session_id)

    async def _fail(
        self,
        key: str,
        field: str,
        received: str,
        message: str,
        suggestion: str | None,
    ) -> ValidationFailure:
        count = await self._store.record_failure(key, message)
        escalate = count >= self._max_retries
        logger.info(
            "Validation failed: field=%s retry=%d/%d escalate=%s",
            field,
            count,
            self._max_retries,
            escalate,
        )
        if escalate:
            logger.info("Escalating %s after: %s", field, await self._store.recent_errors(key))
        return ValidationFailure(
            error=FieldError(
                message=message,
                field=field,
                received=received,
                suggestion=suggestion,
                valid_options=self.valid_options(field) if escalate else None,
            ),
            retry_count=count,
            should_escalate=escalate,
        )


# Module-level singleton
field_validator = FieldValidator()
