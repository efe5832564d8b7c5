"""Conversation orchestrator: the brain of Tarifbot.

Receives one user message plus the client's FormState, classifies the
intent, runs extraction and validation, evaluates phase transitions and
composes the reply. The core is stateless between turns: everything except
the per-field retry counters travels inside the FormState.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from src.admin.events import emit
from src.calculators.service import SalaryCalculationService, result_payload, salary_service
from src.config import settings
from src.conversation import phrasing
from src.conversation.extraction import extract, extract_modification
from src.conversation.fsm import FSM
from src.conversation.intent import classify
from src.conversation.prompts.answer import GROUNDED_ANSWER_PROMPT, RESULT_QA_PROMPT
from src.conversation.states import (
    ADVANCE_TRIGGERS,
    COLLECTION_PHASES,
    all_collection_complete,
    compute_missing_fields,
    is_phase_complete,
    progress,
)
from src.conversation.suggestions import SUMMARY_CHIPS, generate, generate_escalation_chips, static_chips
from src.llm.oracle import Err, Oracle, oracle
from src.llm.parsing import strip_citation_markers, strip_progress_markers
from src.persistence.inquiries import InquiryRepository, inquiry_repository
from src.retrieval.gateway import (
    RetrievalGateway,
    build_grounding_context,
    citations_from_chunks,
    consolidate_citations,
    retrieval_gateway,
)
from src.schemas.events import EventType, SystemEvent
from src.schemas.form import Citation, FormState, Section, TurnRequest, TurnResponse, UserIntent
from src.schemas.validation import FieldError, ValidationFailure, ValidationResult
from src.validation.schemas import get_field_spec
from src.validation.validator import FieldValidator, field_validator

logger = logging.getLogger(__name__)

APOLOGY = (
    "Entschuldige, da ist bei mir gerade etwas schiefgelaufen. "
    "Kannst du deine letzte Nachricht bitte noch einmal schicken?"
)
NO_INFORMATION = "Dazu habe ich in meinen Unterlagen leider keine Informationen gefunden."
CALCULATION_FAILED = (
    "Entschuldige, mit diesen Angaben konnte ich dein Gehalt leider nicht berechnen. "
    "Du kannst es noch einmal versuchen oder eine Angabe ändern."
)
PERSIST_FAILED_NOTE = (
    "Hinweis: Dein Ergebnis konnte gerade nicht gespeichert werden. Die Berechnung oben ist trotzdem gültig."
)


@dataclass
class _Turn:
    """Everything one turn works on. ``state`` is the working copy."""

    session_id: str
    tenant_id: str | None
    message: str
    prior: FormState
    state: FormState
    fsm: FSM
    citations: list[Citation] = field(default_factory=list)


def _reconciled_section(form_state: FormState) -> Section:
    """Earliest phase the collected data actually supports."""
    section = form_state.section
    data = form_state.data
    if section == Section.JOB_DETAILS:
        return section
    if not is_phase_complete(Section.JOB_DETAILS, data):
        return Section.JOB_DETAILS
    if section == Section.TAX_DETAILS:
        return section
    if not is_phase_complete(Section.TAX_DETAILS, data):
        return Section.TAX_DETAILS
    if section == Section.COMPLETED and data.calculation_result is None:
        return Section.SUMMARY
    return section


def _missing_for(form_state: FormState) -> list[str]:
    if form_state.section in COLLECTION_PHASES:
        return compute_missing_fields(form_state.section, form_state.data)
    return []


def _store_value(form_state: FormState, field_name: str, value: Any) -> None:
    phase = get_field_spec(field_name).phase
    if phase == Section.JOB_DETAILS:
        form_state.data.job_details[field_name] = value
    else:
        form_state.data.tax_details[field_name] = value


def _bare_answer(field_name: str, message: str) -> dict[str, str]:
    """Read a message the oracle found nothing in as a direct answer to ``field_name``.

    Only a single token ("TVöD", "P8", "3") or one of the field's own option
    labels counts. A sentence without anything extractable is not an answer
    to the current question and must not be validated as one.
    """
    text = message.strip()
    spec = get_field_spec(field_name)
    labels = {label.lower() for label in (*spec.options, *spec.chips)}
    if len(text.split()) == 1 or text.lower() in labels:
        return {field_name: text}
    return {}


class ConversationEngine:
    """Runs one interview turn: FormState in, reply plus new FormState out."""

    def __init__(
        self,
        validator: FieldValidator | None = None,
        calculator: SalaryCalculationService | None = None,
        repository: InquiryRepository | None = None,
        gateway: RetrievalGateway | None = None,
        client: Oracle | None = None,
    ) -> None:
        self._validator = validator or field_validator
        self._calculator = calculator or salary_service
        self._repository = repository or inquiry_repository
        self._gateway = gateway or retrieval_gateway
        self._oracle = client or oracle

    async def process_turn(self, request: TurnRequest) -> TurnResponse:
        """Process one user message and return the reply.

        This is the main entry point called by the HTTP layer. It never
        raises: any unexpected failure returns an apology together with the
        FormState the client sent, so no progress is lost.
        """
        session_id = request.session_id or f"anon-{uuid.uuid4().hex[:12]}"
        prior = request.current_form_state

        await emit(SystemEvent(
            event_type=EventType.TURN_RECEIVED,
            session_id=session_id,
            tenant_id=request.tenant_id,
            data={"text_length": len(request.message), "section": prior.section.value},
            source_module="conversation.engine",
        ))

        turn = self._start_turn(request, session_id)
        try:
            response = await self._run(turn)
        except Exception:
            logger.exception("Turn failed for session %s", session_id)
            await emit(SystemEvent(
                event_type=EventType.TURN_FAILED,
                session_id=session_id,
                tenant_id=request.tenant_id,
                data={"section": prior.section.value},
                source_module="conversation.engine",
            ))
            return self._fallback(turn)

        if request.session_id:
            await self._mirror_draft(request.session_id, request.tenant_id, response.form_state)

        await emit(SystemEvent(
            event_type=EventType.TURN_ANSWERED,
            session_id=session_id,
            tenant_id=request.tenant_id,
            data={
                "section": response.form_state.section.value,
                "intent": response.form_state.user_intent.value if response.form_state.user_intent else None,
                "progress": response.progress,
                "escalated": response.should_escalate,
            },
            source_module="conversation.engine",
        ))
        return response

    # ── Turn setup ───────────────────────────────────────────────────

    def _start_turn(self, request: TurnRequest, session_id: str) -> _Turn:
        prior = request.current_form_state
        state = prior.model_copy(deep=True)

        window = settings.interview.context_window
        state.conversation_context = [*state.conversation_context, request.message][-window:]
        state.validation_errors = {}

        section = _reconciled_section(state)
        if section != state.section:
            logger.warning(
                "FormState section %s not supported by its data, continuing at %s (session=%s)",
                state.section.value,
                section.value,
                session_id,
            )
            state.section = section
        if state.section != Section.COMPLETED:
            state.data.calculation_result = None
        state.missing_fields = _missing_for(state)

        return _Turn(
            session_id=session_id,
            tenant_id=request.tenant_id,
            message=request.message,
            prior=prior,
            state=state,
            fsm=FSM(session_id=session_id, initial_state=state.section),
        )

    async def _run(self, turn: _Turn) -> TurnResponse:
        state = turn.state
        analysis = await classify(turn.message, state, session_id=turn.session_id, client=self._oracle)
        state.user_intent = analysis.intent
        intent = analysis.intent

        if turn.fsm.is_terminal:
            return await self._answer_result_question(turn)

        if intent == UserIntent.QUESTION:
            return await self._answer_question(turn)

        if state.section == Section.SUMMARY:
            if intent == UserIntent.CONFIRMATION:
                return await self._confirm(turn)
            if intent in (UserIntent.MODIFICATION, UserIntent.DATA_PROVISION):
                return await self._modify(turn)
            return await self._respond(
                turn,
                phrasing.compose(phrasing.render_summary(state), phrasing.SUMMARY_REMINDER),
            )

        return await self._collect(turn)

    # ── Side conversations ──────────────────────────────────────────

    async def _answer_question(self, turn: _Turn) -> TurnResponse:
        """Grounded answer from retrieved excerpts, then back to the interview."""
        chunks = await self._gateway.retrieve(turn.message, turn.tenant_id, session_id=turn.session_id)
        if not chunks:
            answer = NO_INFORMATION
        else:
            result = await self._oracle.ask(
                GROUNDED_ANSWER_PROMPT + build_grounding_context(chunks),
                turn.message,
                max_tokens=settings.llm.conversation_max_tokens,
                session_id=turn.session_id,
            )
            if isinstance(result, Err):
                return self._fallback(turn)
            answer = strip_citation_markers(strip_progress_markers(result.value))
            self._record_citations(turn, citations_from_chunks(chunks))

        return await self._respond(turn, phrasing.compose(answer, self._current_question(turn.state)))

    async def _answer_result_question(self, turn: _Turn) -> TurnResponse:
        """Follow-up on the finished calculation. No extraction, no transitions."""
        result_data = turn.state.data.calculation_result or {}
        system_prompt = RESULT_QA_PROMPT + json.dumps(result_data, ensure_ascii=False, indent=2)

        chunks = await self._gateway.retrieve(turn.message, turn.tenant_id, session_id=turn.session_id)
        if chunks:
            system_prompt += "\n\n## Document excerpts\n" + build_grounding_context(chunks)

        result = await self._oracle.ask(
            system_prompt,
            turn.message,
            max_tokens=settings.llm.conversation_max_tokens,
            session_id=turn.session_id,
        )
        if isinstance(result, Err):
            return self._fallback(turn)
        if chunks:
            self._record_citations(turn, citations_from_chunks(chunks))
        return await self._respond(turn, strip_citation_markers(strip_progress_markers(result.value)))

    # ── Summary ─────────────────────────────────────────────────────

    async def _confirm(self, turn: _Turn) -> TurnResponse:
        state = turn.state
        if not all_collection_complete(state.data):
            logger.warning("Confirmation with incomplete data (session=%s)", turn.session_id)
            return await self._respond(
                turn,
                phrasing.compose(phrasing.render_summary(state), phrasing.SUMMARY_REMINDER),
            )

        try:
            result = await self._calculator.calculate(
                state.data,
                tenant_id=turn.tenant_id,
                session_id=turn.session_id,
            )
        except Exception as exc:
            logger.warning("Calculation failed for session %s: %s", turn.session_id, exc)
            await emit(SystemEvent(
                event_type=EventType.CALCULATION_FAILED,
                session_id=turn.session_id,
                tenant_id=turn.tenant_id,
                data={"error": str(exc), "error_type": type(exc).__name__},
                source_module="conversation.engine",
            ))
            state.data.calculation_result = None
            return await self._respond(turn, CALCULATION_FAILED, chips=list(SUMMARY_CHIPS))

        state.data.calculation_result = result_payload(result)
        state.section = await turn.fsm.transition("confirmed", state)
        state.missing_fields = []

        await emit(SystemEvent(
            event_type=EventType.CALCULATION_COMPLETED,
            session_id=turn.session_id,
            tenant_id=turn.tenant_id,
            data={
                "tarif": result.tarif,
                "group": result.group,
                "stufe": result.stufe,
                "netto": float(result.netto),
                "source": result.source,
            },
            source_module="conversation.engine",
        ))

        text = phrasing.render_result(state.data.calculation_result)
        try:
            await self._repository.save_result(
                turn.session_id,
                turn.tenant_id,
                state,
                consolidate_citations(state.rag_citations),
            )
        except Exception as exc:
            logger.exception("Failed to persist result for session %s", turn.session_id)
            await emit(SystemEvent(
                event_type=EventType.RESULT_PERSIST_FAILED,
                session_id=turn.session_id,
                tenant_id=turn.tenant_id,
                data={"error_type": type(exc).__name__},
                source_module="conversation.engine",
            ))
            text = phrasing.compose(text, PERSIST_FAILED_NOTE)

        return await self._respond(turn, text)

    async def _modify(self, turn: _Turn) -> TurnResponse:
        """Single-field correction in the summary. The section does not change."""
        state = turn.state
        outcome = await extract_modification(
            turn.message,
            phrasing.render_summary(state),
            session_id=turn.session_id,
            client=self._oracle,
        )
        if isinstance(outcome, Err):
            return self._fallback(turn)

        request = outcome.value
        if request is None:
            return await self._respond(turn, phrasing.MODIFICATION_UNCLEAR, chips=list(SUMMARY_CHIPS))

        result = await self._check(turn, request.field, request.value)
        if isinstance(result, ValidationFailure):
            state.validation_errors[request.field] = result.error.message
            await self._report_failure(turn, result)
            return await self._reprompt(turn, result, captured={})

        previous = state.value_of(request.field)
        _store_value(state, request.field, result.normalized_value)
        logger.info("Modified %s in summary (session=%s)", request.field, turn.session_id)
        await emit(SystemEvent(
            event_type=EventType.DATA_MODIFIED,
            session_id=turn.session_id,
            tenant_id=turn.tenant_id,
            data={"field": request.field, "previous": previous, "value": result.normalized_value},
            source_module="conversation.engine",
        ))

        return await self._respond(
            turn,
            phrasing.compose(
                phrasing.acknowledge({request.field: result.normalized_value}),
                phrasing.render_summary(state),
                phrasing.SUMMARY_QUESTION,
            ),
        )

    # ── Collection phases ───────────────────────────────────────────

    async def _collect(self, turn: _Turn) -> TurnResponse:
        state = turn.state
        missing = list(state.missing_fields)
        outcomes: list[tuple[str, ValidationResult]] = []

        if missing and await self._validator.is_escalated(missing[0], turn.session_id):
            result = await self._validator.accept_option(missing[0], turn.message, turn.session_id, state)
            if result.valid:
                _store_value(state, missing[0], result.normalized_value)
            outcomes.append((missing[0], result))
        elif missing:
            extraction = await extract(
                turn.message,
                missing,
                state.conversation_context[:-1],
                session_id=turn.session_id,
                client=self._oracle,
            )
            if isinstance(extraction, Err):
                return self._fallback(turn)
            candidates = extraction.value or _bare_answer(missing[0], turn.message)

            # Registry order, so a dependent field sees a value merged earlier in this turn
            for name in missing:
                if name not in candidates:
                    continue
                result = await self._validator.validate(name, candidates[name], turn.session_id, state)
                if result.valid:
                    _store_value(state, name, result.normalized_value)
                outcomes.append((name, result))

            if not outcomes:
                logger.info(
                    "Nothing extracted for %s, asking again (session=%s)", missing[0], turn.session_id,
                )
                return await self._respond(
                    turn, phrasing.compose(phrasing.NOT_UNDERSTOOD, self._current_question(state)),
                )

        captured: dict[str, Any] = {}
        failures: list[ValidationFailure] = []
        for name, result in outcomes:
            if isinstance(result, ValidationFailure):
                state.validation_errors[name] = result.error.message
                failures.append(result)
            else:
                captured[name] = result.normalized_value

        if captured:
            await emit(SystemEvent(
                event_type=EventType.DATA_EXTRACTED,
                session_id=turn.session_id,
                tenant_id=turn.tenant_id,
                data={"fields": sorted(captured), "section": state.section.value},
                source_module="conversation.engine",
            ))

        state.missing_fields = _missing_for(state)

        if failures:
            for failure in failures:
                await self._report_failure(turn, failure)
            return await self._reprompt(turn, failures[0], captured)

        entered: list[Section] = []
        while True:
            trigger = ADVANCE_TRIGGERS.get(state.section)
            if trigger is None or not turn.fsm.can_transition(trigger, state):
                break
            state.section = await turn.fsm.transition(trigger, state)
            state.missing_fields = _missing_for(state)
            entered.append(state.section)

        if state.section == Section.SUMMARY:
            text = phrasing.compose(
                phrasing.acknowledge(captured),
                phrasing.render_summary(state),
                phrasing.SUMMARY_QUESTION,
            )
        else:
            intros = [phrasing.PHASE_INTROS.get(s, "") for s in entered]
            text = phrasing.compose(
                phrasing.acknowledge(captured),
                *intros,
                self._current_question(state),
            )
        return await self._respond(turn, text)

    # ── Helpers ─────────────────────────────────────────────────────

    async def _check(self, turn: _Turn, field_name: str, raw: Any) -> ValidationResult:
        """Validate one value, honouring an escalation already in place."""
        if await self._validator.is_escalated(field_name, turn.session_id):
            return await self._validator.accept_option(field_name, str(raw), turn.session_id, turn.state)
        return await self._validator.validate(field_name, raw, turn.session_id, turn.state)

    async def _report_failure(self, turn: _Turn, failure: ValidationFailure) -> None:
        event_type = EventType.VALIDATION_ESCALATED if failure.should_escalate else EventType.VALIDATION_FAILED
        await emit(SystemEvent(
            event_type=event_type,
            session_id=turn.session_id,
            tenant_id=turn.tenant_id,
            data={"field": failure.error.field, "retry_count": failure.retry_count},
            source_module="conversation.engine",
        ))

    async def _reprompt(
        self,
        turn: _Turn,
        failure: ValidationFailure,
        captured: dict[str, Any],
    ) -> TurnResponse:
        """Ask again for the first failing field only."""
        error = failure.error
        if failure.should_escalate:
            options = error.valid_options or self._validator.valid_options(error.field)
            return await self._respond(
                turn,
                phrasing.compose(phrasing.acknowledge(captured), error.message),
                chips=generate_escalation_chips(error.field, options),
                escalation=FieldError(
                    message=error.message,
                    field=error.field,
                    received=error.received,
                    valid_options=options,
                ),
            )
        return await self._respond(
            turn,
            phrasing.compose(phrasing.acknowledge(captured), phrasing.reprompt(error)),
        )

    def _current_question(self, form_state: FormState) -> str:
        if form_state.section == Section.SUMMARY:
            return phrasing.SUMMARY_REMINDER
        if form_state.missing_fields:
            return phrasing.question_for(form_state.missing_fields[0])
        return ""

    @staticmethod
    def _record_citations(turn: _Turn, citations: list[Citation]) -> None:
        turn.citations.extend(citations)
        turn.state.rag_citations = consolidate_citations([*turn.state.rag_citations, *citations])

    async def _respond(
        self,
        turn: _Turn,
        text: str,
        chips: list[str] | None = None,
        escalation: FieldError | None = None,
    ) -> TurnResponse:
        state = turn.state
        if chips is None:
            chips = await generate(state, text, session_id=turn.session_id, client=self._oracle)
        return TurnResponse(
            text=text,
            form_state=state,
            progress=progress(state),
            suggestions=chips,
            citations_for_audit=consolidate_citations(turn.citations),
            should_escalate=escalation is not None,
            valid_options=escalation.valid_options if escalation is not None else None,
        )

    def _fallback(self, turn: _Turn) -> TurnResponse:
        """Apology with the FormState exactly as the client sent it."""
        prior = turn.prior
        return TurnResponse(
            text=APOLOGY,
            form_state=prior,
            progress=progress(prior),
            suggestions=static_chips(prior) or [],
        )

    async def _mirror_draft(self, session_id: str, tenant_id: str | None, form_state: FormState) -> None:
        if not settings.interview.draft_mirror_enabled:
            return
        try:
            if form_state.section == Section.COMPLETED:
                await self._repository.delete_draft(session_id)
            else:
                await self._repository.save_draft(session_id, tenant_id, form_state)
        except Exception:
            logger.exception("Failed to mirror draft for session %s", session_id)


# Module-level singleton
conversation_engine = ConversationEngine()
