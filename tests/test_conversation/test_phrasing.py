"""Tests for deterministic German phrasing."""

from __future__ import annotations

from decimal import Decimal

from src.conversation.phrasing import (
    DISCLAIMER,
    acknowledge,
    format_euro,
    question_for,
    render_result,
    render_summary,
    reprompt,
)
from src.schemas.form import FormData, FormState, Section
from src.schemas.validation import FieldError


class TestFormatEuro:
    def test_thousands_and_cents(self):
        assert format_euro(Decimal("3447.24")) == "3.447,24 €"

    def test_float_input(self):
        assert format_euro(2306.98) == "2.306,98 €"

    def test_small_amount(self):
        assert format_euro(0) == "0,00 €"

    def test_millions(self):
        assert format_euro(Decimal("1234567.5")) == "1.234.567,50 €"


class TestQuestions:
    def test_question_avoids_jargon(self):
        assert question_for("experience") == "Wie lange arbeitest du schon in diesem Beruf?"
        assert "Steuerklasse" not in question_for("taxClass").split("?")[0]

    def test_acknowledge_uses_labels(self):
        text = acknowledge({"tarif": "tvoed", "hours": 38.5})
        assert text == "Danke, notiert: Tarifvertrag TVöD, Wochenstunden 38,5 Std."

    def test_acknowledge_nothing(self):
        assert acknowledge({}) == ""


class TestReprompt:
    def test_short_suggestion_is_a_question(self):
        error = FieldError(message="Hmm.", field="tarif", received="TVÖ", suggestion="TVöD")
        assert reprompt(error) == "Hmm. Meintest du TVöD?"

    def test_sentence_suggestion_is_appended(self):
        error = FieldError(
            message="Steuerklasse '0' gibt es nicht.",
            field="taxClass",
            received="keine Ahnung",
            suggestion="Die Steuerklasse steht auf deiner Gehaltsabrechnung. Ledig ist meist 1.",
        )
        assert reprompt(error) == (
            "Steuerklasse '0' gibt es nicht. "
            "Die Steuerklasse steht auf deiner Gehaltsabrechnung. Ledig ist meist 1."
        )

    def test_no_suggestion(self):
        error = FieldError(message="Bitte nochmal.", field="state", received="x")
        assert reprompt(error) == "Bitte nochmal."


class TestSummaryAndResult:
    def test_summary_lists_every_field(self, summary_state):
        text = render_summary(summary_state)
        assert "- Tarifvertrag: TVöD" in text
        assert "- Entgeltgruppe: P7" in text
        assert "- Erfahrungsstufe: Stufe 3" in text
        assert "- Wochenstunden: 38,5 Std." in text
        assert "- Bundesland: Bayern" in text
        assert "- Steuerklasse: 1" in text
        assert "- Kirchensteuer: nein" in text
        assert "- Kinder: 0" in text

    def test_summary_marks_missing_values(self):
        text = render_summary(FormState(section=Section.SUMMARY, data=FormData()))
        assert "- Tarifvertrag: –" in text

    def test_result_message(self):
        result = {
            "brutto": 3447.24,
            "netto": 2306.98,
            "taxes": {"lohnsteuer": 400.83, "soli": 0.0, "kirchensteuer": 0.0},
            "socialSecurity": {"kv": 294.74, "rv": 320.59, "av": 44.81, "pv": 79.29},
            "tarif": "tvoed",
            "group": "P7",
            "stufe": "3",
            "hours": 38.5,
        }
        text = render_result(result)
        assert "(TVöD P7, Stufe 3, 38,5 Std.)" in text
        assert "**Brutto:** 3.447,24 € im Monat" in text
        assert "**Netto:** 2.306,98 € im Monat" in text
        assert "- Lohnsteuer: 400,83 €" in text
        assert "- Pflegeversicherung: 79,29 €" in text
        assert DISCLAIMER in text
