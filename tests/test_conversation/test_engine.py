"""Tests for the conversation engine: one turn in, reply and new FormState out.

The oracle, retrieval, calculator and repository are mocked; the field
validator is real, backed by an in-memory counter store.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.config import settings
from src.conversation import phrasing
from src.conversation.engine import (
    APOLOGY,
    CALCULATION_FAILED,
    NO_INFORMATION,
    PERSIST_FAILED_NOTE,
    ConversationEngine,
)
from src.conversation.extraction import ModificationRequest
from src.conversation.intent import IntentAnalysis
from src.conversation.suggestions import SUMMARY_CHIPS
from src.llm.oracle import Err, Ok, OracleError
from src.retrieval.schemas import ChunkMetadata, RankedChunk
from src.schemas.calculators import SalaryResult, SocialSecurityBreakdown, TaxBreakdown
from src.schemas.events import EventType
from src.schemas.form import Citation, FormData, FormState, Section, TurnRequest, UserIntent
from src.validation.store import InMemoryCounterStore
from src.validation.validator import FieldValidator

JOB = {"tarif": "tvoed", "group": "P7", "experience": "3", "hours": 38.5, "state": "Bayern"}
TAX = {"taxClass": 1, "churchTax": False, "numberOfChildren": 0}


def salary_result() -> SalaryResult:
    return SalaryResult(
        brutto=Decimal("3447.24"),
        netto=Decimal("2306.98"),
        taxes=TaxBreakdown(lohnsteuer=Decimal("400.83"), soli=Decimal("0"), kirchensteuer=Decimal("0")),
        social_security=SocialSecurityBreakdown(
            kv=Decimal("294.74"), rv=Decimal("320.59"), av=Decimal("44.81"), pv=Decimal("79.29"),
        ),
        tarif="tvoed",
        group="P7",
        stufe="3",
        hours=38.5,
        year=2025,
        yearly_gross=Decimal("41366.88"),
    )


def chunk(content: str = "Die Entgeltgruppe richtet sich nach der Ausbildung.") -> RankedChunk:
    return RankedChunk(
        content=content,
        similarity=0.82,
        metadata=ChunkMetadata(document_id="doc-1", document_name="TVöD-P Entgeltordnung", page_start=4),
    )


@pytest.fixture()
def oracle() -> MagicMock:
    client = MagicMock()
    client.ask_json = AsyncMock(return_value=Ok({}))
    client.ask = AsyncMock(return_value=Ok("[]"))
    return client


@pytest.fixture()
def calculator() -> MagicMock:
    service = MagicMock()
    service.calculate = AsyncMock(return_value=salary_result())
    return service


@pytest.fixture()
def repository() -> MagicMock:
    repo = MagicMock()
    repo.save_result = AsyncMock()
    repo.save_draft = AsyncMock()
    repo.delete_draft = AsyncMock()
    return repo


@pytest.fixture()
def gateway() -> MagicMock:
    gw = MagicMock()
    gw.retrieve = AsyncMock(return_value=[])
    return gw


@pytest.fixture()
def store() -> InMemoryCounterStore:
    return InMemoryCounterStore(ttl_seconds=1800)


@pytest.fixture()
def engine(oracle, calculator, repository, gateway, store) -> ConversationEngine:
    return ConversationEngine(
        validator=FieldValidator(store=store, max_retries=3),
        calculator=calculator,
        repository=repository,
        gateway=gateway,
        client=oracle,
    )


@pytest.fixture()
def mock_emit():
    with (
        patch("src.conversation.engine.emit", new_callable=AsyncMock) as engine_emit,
        patch("src.conversation.intent.emit", new_callable=AsyncMock),
        patch("src.conversation.fsm.emit", new_callable=AsyncMock),
    ):
        yield engine_emit


def emitted(mock_emit: AsyncMock) -> list[EventType]:
    return [c.args[0].event_type for c in mock_emit.call_args_list]


def turn(message: str, form_state: FormState | None = None, session_id: str | None = "s1") -> TurnRequest:
    return TurnRequest(message=message, current_form_state=form_state or FormState(), session_id=session_id)


# ── Collection phases ────────────────────────────────────────────────


class TestCollection:
    @pytest.mark.asyncio
    async def test_multi_field_sentence_completes_job_phase(self, engine, oracle, mock_emit):
        oracle.ask_json.return_value = Ok(
            {"group": "7", "experience": "5 Jahre", "hours": "Vollzeit", "state": "Bayern"}
        )
        state = FormState(data=FormData(job_details={"tarif": "tvoed"}))

        response = await engine.process_turn(
            turn("Ich bin Pflegefachkraft mit 5 Jahren Erfahrung, Vollzeit, in Bayern", state)
        )

        fs = response.form_state
        assert fs.data.job_details == JOB
        assert fs.section == Section.TAX_DETAILS
        assert fs.missing_fields == ["taxClass", "churchTax", "numberOfChildren"]
        assert fs.user_intent == UserIntent.DATA_PROVISION
        assert phrasing.PHASE_INTROS[Section.TAX_DETAILS] in response.text
        assert response.text.endswith(phrasing.question_for("taxClass"))
        assert response.suggestions == ["1", "3", "4", "5"]
        assert response.progress == 62
        assert EventType.DATA_EXTRACTED in emitted(mock_emit)

    @pytest.mark.asyncio
    async def test_prompt_only_offers_missing_fields(self, engine, oracle, mock_emit):
        oracle.ask_json.return_value = Ok({"state": "Bayern"})
        state = FormState(data=FormData(job_details={k: v for k, v in JOB.items() if k != "state"}))

        await engine.process_turn(turn("Bayern", state))

        system_prompt = oracle.ask_json.call_args.args[0]
        allowed = system_prompt.split("Allowed keys:")[1]
        assert '"state"' in allowed
        assert '"tarif"' not in allowed

    @pytest.mark.asyncio
    async def test_tax_phase_completes_into_summary(self, engine, oracle, mock_emit):
        oracle.ask_json.return_value = Ok({"taxClass": "ledig", "churchTax": "nein", "numberOfChildren": "keine"})
        state = FormState(section=Section.TAX_DETAILS, data=FormData(job_details=dict(JOB)))

        response = await engine.process_turn(turn("ledig, keine Kirche, keine Kinder", state))

        assert response.form_state.section == Section.SUMMARY
        assert response.form_state.data.tax_details == TAX
        assert response.form_state.missing_fields == []
        assert response.text.endswith(phrasing.SUMMARY_QUESTION)
        assert "- Steuerklasse: 1" in response.text
        assert response.suggestions == list(SUMMARY_CHIPS)
        assert response.progress == 100

    @pytest.mark.asyncio
    async def test_bare_answer_without_extraction(self, engine, oracle, mock_emit):
        oracle.ask_json.return_value = Ok({})

        response = await engine.process_turn(turn("TVöD"))

        assert response.form_state.data.job_details == {"tarif": "tvoed"}
        assert response.form_state.missing_fields[0] == "group"

    @pytest.mark.asyncio
    async def test_bare_option_label_without_extraction(self, engine, oracle, mock_emit):
        state = FormState(data=FormData(job_details={k: v for k, v in JOB.items() if k != "hours"}))

        response = await engine.process_turn(turn("Teilzeit (20 Std.)", state))

        assert response.form_state.data.job_details["hours"] == 20.0

    @pytest.mark.asyncio
    async def test_unknown_bare_answer_counts_as_failure(self, engine, oracle, store, mock_emit):
        response = await engine.process_turn(turn("Metall"))

        assert "'Metall'" in response.form_state.validation_errors["tarif"]
        assert await store.get_count("s1:tarif") == 1
        assert EventType.VALIDATION_FAILED in emitted(mock_emit)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("message", "oracle_result", "form_state", "asked"),
        [
            (
                "Ich habe 5 Jahre Erfahrung",
                Err(OracleError("parse", "no JSON object")),
                FormState(data=FormData(job_details={"tarif": "tvoed"})),
                "group",
            ),
            (
                "Ich habe zwei Kinder",
                Err(OracleError("parse", "no JSON object")),
                FormState(section=Section.TAX_DETAILS, data=FormData(job_details=dict(JOB))),
                "taxClass",
            ),
            ("Hallo zusammen", Ok({}), FormState(), "tarif"),
        ],
        ids=["parse-failure-job", "parse-failure-tax", "nothing-extracted"],
    )
    async def test_sentence_without_extraction_asks_again(
        self, engine, oracle, store, mock_emit, message, oracle_result, form_state, asked
    ):
        oracle.ask_json.return_value = oracle_result
        before = form_state.data.model_copy(deep=True)

        response = await engine.process_turn(turn(message, form_state))

        fs = response.form_state
        assert fs.data == before
        assert fs.validation_errors == {}
        assert fs.missing_fields[0] == asked
        assert response.text == phrasing.compose(phrasing.NOT_UNDERSTOOD, phrasing.question_for(asked))
        assert response.should_escalate is False
        assert await store.get_count(f"s1:{asked}") == 0
        assert EventType.VALIDATION_FAILED not in emitted(mock_emit)

    @pytest.mark.asyncio
    async def test_context_keeps_raw_utterances(self, engine, oracle, mock_emit):
        state = FormState(conversation_context=[f"m{i}" for i in range(settings.interview.context_window)])

        response = await engine.process_turn(turn("TVöD", state))

        context = response.form_state.conversation_context
        assert len(context) == settings.interview.context_window
        assert context[-1] == "TVöD"
        assert "m0" not in context


# ── Validation failures and escalation ───────────────────────────────


class TestValidationFailures:
    @staticmethod
    def _hours_missing() -> FormState:
        return FormState(data=FormData(job_details={k: v for k, v in JOB.items() if k != "hours"}))

    @pytest.mark.asyncio
    async def test_invalid_value_reprompts_same_field(self, engine, oracle, mock_emit):
        oracle.ask_json.return_value = Ok({"hours": "60"})

        response = await engine.process_turn(turn("60", self._hours_missing()))

        fs = response.form_state
        assert "hours" not in fs.data.job_details
        assert fs.section == Section.JOB_DETAILS
        assert fs.missing_fields == ["hours"]
        assert "60 Stunden" in fs.validation_errors["hours"]
        assert "60 Stunden" in response.text
        assert response.should_escalate is False
        assert EventType.VALIDATION_FAILED in emitted(mock_emit)

    @pytest.mark.asyncio
    async def test_third_failure_escalates_to_options(self, engine, oracle, mock_emit):
        oracle.ask_json.return_value = Ok({"hours": "60"})
        state = self._hours_missing()

        for _ in range(3):
            response = await engine.process_turn(turn("60", state))
            state = response.form_state

        options = ["Vollzeit (38,5 Std.)", "Teilzeit (20 Std.)", "30 Stunden"]
        assert response.should_escalate is True
        assert response.valid_options == options
        assert response.suggestions == options
        assert EventType.VALIDATION_ESCALATED in emitted(mock_emit)

    @pytest.mark.asyncio
    async def test_escalated_field_accepts_chip(self, engine, oracle, mock_emit):
        oracle.ask_json.return_value = Ok({"hours": "60"})
        state = self._hours_missing()
        for _ in range(3):
            state = (await engine.process_turn(turn("60", state))).form_state
        oracle.ask_json.reset_mock()

        response = await engine.process_turn(turn("Vollzeit (38,5 Std.)", state))

        assert response.form_state.data.job_details["hours"] == 38.5
        assert response.form_state.section == Section.TAX_DETAILS
        assert response.should_escalate is False
        oracle.ask_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unclear_tax_class_escalates_to_all_classes(self, engine, oracle, mock_emit):
        state = FormState(section=Section.TAX_DETAILS, data=FormData(job_details=dict(JOB)))

        for message in ("weiß nicht", "?", "k.A."):
            oracle.ask_json.return_value = Ok({"taxClass": message})
            response = await engine.process_turn(turn(message, state))
            state = response.form_state

        classes = ["1", "2", "3", "4", "5", "6"]
        assert response.should_escalate is True
        assert response.valid_options == classes
        assert response.suggestions == classes
        assert "taxClass" not in state.data.tax_details
        assert EventType.VALIDATION_ESCALATED in emitted(mock_emit)

    @pytest.mark.asyncio
    async def test_escalated_field_accepts_typed_value(self, engine, oracle, mock_emit):
        state = FormState(section=Section.TAX_DETAILS, data=FormData(job_details=dict(JOB)))
        for message in ("weiß nicht", "?", "k.A."):
            oracle.ask_json.return_value = Ok({"taxClass": message})
            state = (await engine.process_turn(turn(message, state))).form_state

        response = await engine.process_turn(turn("Steuerklasse vier", state))

        assert response.form_state.data.tax_details["taxClass"] == 4
        assert response.should_escalate is False

    @pytest.mark.asyncio
    async def test_valid_fields_kept_when_another_fails(self, engine, oracle, mock_emit):
        oracle.ask_json.return_value = Ok({"hours": "60", "state": "Bayern"})
        state = FormState(data=FormData(job_details={"tarif": "tvoed", "group": "P7", "experience": "3"}))

        response = await engine.process_turn(turn("60 Stunden in Bayern", state))

        assert response.form_state.data.job_details["state"] == "Bayern"
        assert response.form_state.missing_fields == ["hours"]
        assert response.text.startswith("Danke, notiert: Bundesland Bayern")


# ── Questions ────────────────────────────────────────────────────────


class TestQuestions:
    @pytest.mark.asyncio
    async def test_grounded_answer_keeps_phase(self, engine, oracle, gateway, mock_emit):
        gateway.retrieve.return_value = [chunk()]
        oracle.ask.return_value = Ok("Die Entgeltgruppe hängt von deiner Ausbildung ab. [Quelle: TVöD-P]")
        state = FormState(data=FormData(job_details={"tarif": "tvoed"}))

        response = await engine.process_turn(turn("Was ist eine Entgeltgruppe?", state))

        fs = response.form_state
        assert fs.section == Section.JOB_DETAILS
        assert fs.data.job_details == {"tarif": "tvoed"}
        assert fs.user_intent == UserIntent.QUESTION
        assert "Quelle" not in response.text
        assert response.text.startswith("Die Entgeltgruppe hängt von deiner Ausbildung ab.")
        assert response.text.endswith(phrasing.question_for("group"))
        assert [c.document_id for c in response.citations_for_audit] == ["doc-1"]
        assert [c.document_id for c in fs.rag_citations] == ["doc-1"]
        oracle.ask_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_chunks_means_no_information(self, engine, oracle, gateway, mock_emit):
        response = await engine.process_turn(turn("Wie hoch ist die Jahressonderzahlung?"))

        assert response.text.startswith(NO_INFORMATION)
        assert response.citations_for_audit == []
        oracle.ask.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_result_follow_up_uses_calculation(self, engine, oracle, mock_emit, summary_state):
        summary_state.section = Section.COMPLETED
        summary_state.data.calculation_result = {"brutto": 3447.24, "netto": 2306.98}
        oracle.ask.return_value = Ok("Die Lohnsteuer hängt von deiner Steuerklasse ab.")

        response = await engine.process_turn(turn("Warum ist die Lohnsteuer so hoch?", summary_state))

        assert response.form_state.section == Section.COMPLETED
        assert response.text == "Die Lohnsteuer hängt von deiner Steuerklasse ab."
        assert '"netto": 2306.98' in oracle.ask.call_args.args[0]
        assert response.suggestions == []


# ── Summary ──────────────────────────────────────────────────────────


class TestSummary:
    @pytest.mark.asyncio
    async def test_confirmation_calculates_and_completes(
        self, engine, calculator, repository, mock_emit, summary_state
    ):
        response = await engine.process_turn(turn("Ja", summary_state))

        fs = response.form_state
        assert fs.section == Section.COMPLETED
        assert fs.data.calculation_result["netto"] == 2306.98
        assert fs.data.calculation_result["socialSecurity"]["pv"] == 79.29
        assert "**Netto:** 2.306,98 € im Monat" in response.text
        assert response.progress == 100
        calculator.calculate.assert_awaited_once()
        repository.save_result.assert_awaited_once()
        repository.delete_draft.assert_awaited_once_with("s1")
        assert EventType.CALCULATION_COMPLETED in emitted(mock_emit)

    @pytest.mark.asyncio
    async def test_calculation_failure_stays_in_summary(self, engine, calculator, mock_emit, summary_state):
        calculator.calculate.side_effect = ValueError("no tariff row")

        response = await engine.process_turn(turn("Ja", summary_state))

        assert response.form_state.section == Section.SUMMARY
        assert response.form_state.data.calculation_result is None
        assert response.text == CALCULATION_FAILED
        assert response.suggestions == list(SUMMARY_CHIPS)
        assert EventType.CALCULATION_FAILED in emitted(mock_emit)

    @pytest.mark.asyncio
    async def test_persist_failure_still_returns_result(self, engine, repository, mock_emit, summary_state):
        repository.save_result.side_effect = RuntimeError("db down")

        response = await engine.process_turn(turn("Ja", summary_state))

        assert response.form_state.section == Section.COMPLETED
        assert response.text.endswith(PERSIST_FAILED_NOTE)
        assert EventType.RESULT_PERSIST_FAILED in emitted(mock_emit)

    @pytest.mark.asyncio
    async def test_earlier_citations_saved_with_result(
        self, engine, oracle, gateway, repository, mock_emit, summary_state
    ):
        summary_state.rag_citations = [
            Citation(document_id="doc-1", document_name="TVöD-P Entgeltordnung", pages="S. 5", similarity=0.75),
            Citation(document_id="doc-2", document_name="Lohnsteuertabelle", pages="S. 2", similarity=0.71),
        ]
        gateway.retrieve.return_value = [chunk()]
        oracle.ask.return_value = Ok("Die Entgeltgruppe hängt von deiner Ausbildung ab.")
        asked = await engine.process_turn(turn("Was ist eine Entgeltgruppe?", summary_state))

        await engine.process_turn(turn("Ja", asked.form_state))

        saved = repository.save_result.call_args.args[3]
        assert saved == [
            Citation(document_id="doc-1", document_name="TVöD-P Entgeltordnung", pages="S. 4-5", similarity=0.82),
            Citation(document_id="doc-2", document_name="Lohnsteuertabelle", pages="S. 2", similarity=0.71),
        ]

    @pytest.mark.asyncio
    async def test_conflicting_terms_ask_the_oracle(self, engine, oracle, calculator, mock_emit, summary_state):
        oracle.ask_json.side_effect = [
            Ok(IntentAnalysis(intent=UserIntent.MODIFICATION, confidence=0.8)),
            Ok(ModificationRequest(field="numberOfChildren", value="2")),
        ]

        response = await engine.process_turn(turn("Stimmt nicht, 2 Kinder", summary_state))

        assert oracle.ask_json.call_args_list[0].kwargs["schema"] is IntentAnalysis
        assert response.form_state.user_intent == UserIntent.MODIFICATION
        assert response.form_state.data.tax_details["numberOfChildren"] == 2
        assert response.form_state.section == Section.SUMMARY
        calculator.calculate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_oracle_settles_conflict_as_confirmation(
        self, engine, oracle, calculator, mock_emit, summary_state
    ):
        oracle.ask_json.return_value = Ok(IntentAnalysis(intent=UserIntent.CONFIRMATION, confidence=0.9))

        response = await engine.process_turn(turn("Ja genau, nichts ändern", summary_state))

        assert response.form_state.section == Section.COMPLETED
        calculator.calculate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_intent_oracle_failure_falls_back_to_modification(
        self, engine, oracle, calculator, mock_emit, summary_state
    ):
        oracle.ask_json.side_effect = [
            Err(OracleError("parse", "no JSON object")),
            Ok(ModificationRequest(field=None, value=None)),
        ]

        response = await engine.process_turn(turn("Das stimmt nicht", summary_state))

        assert response.form_state.user_intent == UserIntent.DATA_PROVISION
        assert response.text == phrasing.MODIFICATION_UNCLEAR
        assert response.form_state.data.tax_details == TAX
        assert response.form_state.section == Section.SUMMARY
        calculator.calculate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unclear_message_repeats_summary(self, engine, oracle, calculator, mock_emit, summary_state):
        oracle.ask_json.return_value = Ok(IntentAnalysis(intent=UserIntent.UNCLEAR, confidence=0.4))

        response = await engine.process_turn(turn("Hmm", summary_state))

        assert response.text.startswith("Hier ist deine Zusammenfassung:")
        assert response.text.endswith(phrasing.SUMMARY_REMINDER)
        assert response.suggestions == list(SUMMARY_CHIPS)
        assert response.form_state.section == Section.SUMMARY
        calculator.calculate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_modification_changes_one_field(self, engine, oracle, mock_emit, summary_state):
        oracle.ask_json.return_value = Ok(ModificationRequest(field="taxClass", value="3"))

        response = await engine.process_turn(turn("Die Steuerklasse ist falsch, eigentlich 3", summary_state))

        fs = response.form_state
        assert fs.section == Section.SUMMARY
        assert fs.user_intent == UserIntent.MODIFICATION
        assert fs.data.tax_details["taxClass"] == 3
        assert fs.data.job_details == JOB
        assert "- Steuerklasse: 3" in response.text
        assert response.text.endswith(phrasing.SUMMARY_QUESTION)
        assert EventType.DATA_MODIFIED in emitted(mock_emit)

    @pytest.mark.asyncio
    async def test_unidentified_modification(self, engine, oracle, mock_emit, summary_state):
        oracle.ask_json.return_value = Ok(ModificationRequest(field=None, value=None))

        response = await engine.process_turn(turn("Das ist falsch", summary_state))

        assert response.text == phrasing.MODIFICATION_UNCLEAR
        assert response.form_state.data.tax_details == TAX

    @pytest.mark.asyncio
    async def test_invalid_modification_keeps_old_value(self, engine, oracle, mock_emit, summary_state):
        oracle.ask_json.return_value = Ok(ModificationRequest(field="taxClass", value="9"))

        response = await engine.process_turn(turn("Steuerklasse ist falsch, es ist 9", summary_state))

        assert response.form_state.data.tax_details["taxClass"] == 1
        assert "taxClass" in response.form_state.validation_errors
        assert response.form_state.section == Section.SUMMARY


# ── Robustness ───────────────────────────────────────────────────────


class TestRobustness:
    @pytest.mark.asyncio
    async def test_transport_error_returns_prior_state(self, engine, oracle, mock_emit):
        oracle.ask_json.return_value = Err(OracleError("transport", "timeout"))
        prior = FormState(data=FormData(job_details={"tarif": "tvoed"}), conversation_context=["TVöD"])

        response = await engine.process_turn(turn("Pflegefachkraft", prior))

        assert response.text == APOLOGY
        assert response.form_state == prior
        assert response.form_state.conversation_context == ["TVöD"]

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_contained(self, engine, gateway, mock_emit):
        gateway.retrieve.side_effect = RuntimeError("boom")
        prior = FormState()

        response = await engine.process_turn(turn("Was ist der TVöD?", prior))

        assert response.text == APOLOGY
        assert response.form_state == prior
        assert EventType.TURN_FAILED in emitted(mock_emit)

    @pytest.mark.asyncio
    async def test_client_missing_fields_are_recomputed(self, engine, oracle, mock_emit):
        oracle.ask_json.return_value = Ok({"tarif": "TVöD"})
        tampered = FormState(missing_fields=["numberOfChildren"])

        response = await engine.process_turn(turn("TVöD", tampered))

        assert response.form_state.data.job_details == {"tarif": "tvoed"}
        assert response.form_state.missing_fields == ["group", "experience", "hours", "state"]

    @pytest.mark.asyncio
    async def test_unsupported_section_is_reconciled(self, engine, oracle, mock_emit):
        oracle.ask_json.return_value = Ok({"tarif": "TVöD"})
        tampered = FormState(section=Section.SUMMARY)

        response = await engine.process_turn(turn("TVöD", tampered))

        assert response.form_state.section == Section.JOB_DETAILS
        assert response.form_state.data.job_details == {"tarif": "tvoed"}

    @pytest.mark.asyncio
    async def test_client_result_cleared_outside_completed(self, engine, oracle, mock_emit):
        tampered = FormState(data=FormData(calculation_result={"netto": 99999}))

        response = await engine.process_turn(turn("TVöD", tampered))

        assert response.form_state.data.calculation_result is None


# ── Draft mirroring ──────────────────────────────────────────────────


class TestDraftMirror:
    @pytest.mark.asyncio
    async def test_draft_saved_for_known_session(self, engine, repository, mock_emit, monkeypatch):
        monkeypatch.setattr(settings.interview, "draft_mirror_enabled", True)

        response = await engine.process_turn(turn("TVöD"))

        repository.save_draft.assert_awaited_once_with("s1", None, response.form_state)

    @pytest.mark.asyncio
    async def test_no_draft_for_anonymous_session(self, engine, repository, mock_emit):
        await engine.process_turn(turn("TVöD", session_id=None))

        repository.save_draft.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_draft_failure_does_not_break_turn(self, engine, repository, mock_emit, monkeypatch):
        monkeypatch.setattr(settings.interview, "draft_mirror_enabled", True)
        repository.save_draft.side_effect = RuntimeError("db down")

        response = await engine.process_turn(turn("TVöD"))

        assert response.form_state.data.job_details == {"tarif": "tvoed"}
