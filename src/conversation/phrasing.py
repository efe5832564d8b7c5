"""Deterministic German phrasing for the interview.

Translates canonical field names and values into natural questions,
acknowledgements, the summary and the result message. No LLM call: the
same state always produces the same text.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from src.schemas.form import FormState, Section
from src.schemas.validation import FieldError
from src.validation.schemas import TARIF_LABELS, fields_for_phase, get_field_spec

PHASE_INTROS: dict[Section, str] = {
    Section.TAX_DETAILS: (
        "Super, die Angaben zu deinem Job habe ich. Für die Netto-Berechnung brauche ich jetzt "
        "noch ein paar Angaben zu deinen Steuern."
    ),
}

SUMMARY_QUESTION = (
    "Stimmt alles so? Dann berechne ich dein Nettogehalt. Wenn du etwas ändern möchtest, sag es mir einfach."
)
NOT_UNDERSTOOD = "Das habe ich leider nicht ganz verstanden."
SUMMARY_REMINDER = "Soll ich mit diesen Angaben rechnen? Antworte mit 'Ja' oder sag mir, was ich ändern soll."
MODIFICATION_UNCLEAR = (
    "Was möchtest du ändern? Nenne mir einfach die Angabe und den neuen Wert, zum Beispiel 'Steuerklasse 3'."
)
DISCLAIMER = (
    "⚠️ Das ist eine unverbindliche Schätzung auf Basis der Tariftabellen. "
    "Dein tatsächliches Gehalt kann durch Zulagen, Zuschläge oder Freibeträge abweichen."
)


def format_euro(amount: Decimal | float | int) -> str:
    """Format an amount as German currency: 3.447,24 €"""
    value = Decimal(str(amount)).quantize(Decimal("0.01"))
    sign = "-" if value < 0 else ""
    integer_part, _, cents = f"{abs(value):.2f}".partition(".")
    int_str = f"{int(integer_part):,}".replace(",", ".")
    return f"{sign}{int_str},{cents} €"


def display_value(field: str, value: Any) -> str:
    return get_field_spec(field).display(value)


def question_for(field: str) -> str:
    return get_field_spec(field).question


def acknowledge(captured: Mapping[str, Any]) -> str:
    """'Danke, notiert: Entgeltgruppe P7, Bundesland Bayern.'"""
    if not captured:
        return ""
    listed = ", ".join(f"{get_field_spec(f).label} {display_value(f, v)}" for f, v in captured.items())
    return f"Danke, notiert: {listed}" if listed.endswith(".") else f"Danke, notiert: {listed}."


def reprompt(error: FieldError) -> str:
    """Targeted correction request for a single field."""
    text = error.message
    suggestion = error.suggestion
    if suggestion:
        if " " in suggestion and len(suggestion) > 25:
            text += f" {suggestion.rstrip('.')}."
        else:
            text += f" Meintest du {suggestion}?"
    return text


def compose(*parts: str) -> str:
    return "\n\n".join(p for p in parts if p)


def render_summary(form_state: FormState) -> str:
    """Structured summary of every collected value."""
    lines = ["Hier ist deine Zusammenfassung:", "", "**Job**"]
    for field in fields_for_phase(Section.JOB_DETAILS):
        value = form_state.data.job_details.get(field)
        lines.append(f"- {get_field_spec(field).label}: {display_value(field, value) if value is not None else '–'}")
    lines.extend(["", "**Steuern**"])
    for field in fields_for_phase(Section.TAX_DETAILS):
        value = form_state.data.tax_details.get(field)
        lines.append(f"- {get_field_spec(field).label}: {display_value(field, value) if value is not None else '–'}")
    return "\n".join(lines)


def render_result(result: Mapping[str, Any]) -> str:
    """Build the deterministic result message from a stored calculation result."""
    taxes = result.get("taxes", {})
    social = result.get("socialSecurity", {})
    tarif = TARIF_LABELS.get(str(result.get("tarif")), str(result.get("tarif", "")))
    hours = get_field_spec("hours").display(result.get("hours", 38.5))

    parts = [
        f"Hier ist dein Ergebnis ({tarif} {result.get('group', '')}, Stufe {result.get('stufe', '')}, {hours}):",
        "",
        f"**Brutto:** {format_euro(result['brutto'])} im Monat",
        f"**Netto:** {format_euro(result['netto'])} im Monat",
        "",
        "Abzüge pro Monat:",
        f"- Lohnsteuer: {format_euro(taxes.get('lohnsteuer', 0))}",
        f"- Solidaritätszuschlag: {format_euro(taxes.get('soli', 0))}",
        f"- Kirchensteuer: {format_euro(taxes.get('kirchensteuer', 0))}",
        f"- Krankenversicherung: {format_euro(social.get('kv', 0))}",
        f"- Rentenversicherung: {format_euro(social.get('rv', 0))}",
        f"- Arbeitslosenversicherung: {format_euro(social.get('av', 0))}",
        f"- Pflegeversicherung: {format_euro(social.get('pv', 0))}",
        "",
        DISCLAIMER,
        "",
        "Hast du noch Fragen zu deinem Ergebnis?",
    ]
    return "\n".join(parts)
