"""Extraction prompts: pull candidate field values out of free text.

The mapping from everyday phrases to canonical tokens ships with the prompt
(see each FieldSpec.hint), so the validator receives values it can parse.
"""

from __future__ import annotations

from src.validation.schemas import FIELD_SPECS, get_field_spec

_EXTRACTION_RULES = """Rules:
- Respond with a single JSON object and nothing else.
- Only use the keys listed below. Omit a key if the message says nothing about it.
- Copy numbers as the user wrote them; do not compute anything.
- Never guess: if the user is unsure ("weiß nicht"), omit the key.

Job title mapping (key "group"):
- Helfer / ungelernt / ohne Ausbildung -> "5"
- Pflegehelfer / Pflegeassistent (1 Jahr Ausbildung) -> "6"
- Pflegefachkraft / examiniert / Krankenpfleger / Altenpfleger (3 Jahre Ausbildung) -> "7"
- Fachweiterbildung (Intensiv, Anästhesie, OP) -> "9"
- Stationsleitung / Wohnbereichsleitung / Pflegedienstleitung -> "10"

Experience mapping (key "experience"): keep years with the word "Jahre", e.g. "5 Jahre";
"Berufseinstieg" or "gerade fertig" -> "1 Jahr"."""

_EXTRACTION_EXAMPLE = """Example (keys: group, experience, hours, state;
message "Ich bin Pflegefachkraft mit 5 Jahren Erfahrung, Vollzeit, in Bayern"):
{"group": "7", "experience": "5 Jahre", "hours": "Vollzeit", "state": "Bayern"}"""


def build_extraction_prompt(missing_fields: list[str]) -> str:
    """System prompt restricted to the currently missing fields."""
    keys = "\n".join(
        f'- "{name}": {get_field_spec(name).hint}' for name in missing_fields if name in FIELD_SPECS
    )
    return f"""You extract data from one message of a German salary interview.

{_EXTRACTION_RULES}

Allowed keys:
{keys}

{_EXTRACTION_EXAMPLE}"""


def build_extraction_message(utterance: str, context: list[str]) -> str:
    earlier = [c for c in context if c != utterance][-4:]
    if not earlier:
        return f'User message: "{utterance}"'
    history = "\n".join(f"- {c}" for c in earlier)
    return f'Earlier user messages (context only):\n{history}\n\nUser message: "{utterance}"'


MODIFICATION_PROMPT_HEADER = """You detect which single answer the user wants to change in the
summary of a German salary interview.

Respond with a single JSON object and nothing else:
{"field": "<key>", "value": "<new value as the user wrote it>"}
If no change can be identified, respond with {"field": null, "value": null}.

Known keys:"""


def build_modification_prompt() -> str:
    keys = "\n".join(f'- "{name}" ({spec.label}): {spec.hint}' for name, spec in FIELD_SPECS.items())
    return f"""{MODIFICATION_PROMPT_HEADER}
{keys}

Example (message "die Steuerklasse ist eigentlich 3"):
{{"field": "taxClass", "value": "3"}}"""


def build_modification_message(utterance: str, summary: str) -> str:
    return f"Current summary:\n{summary}\n\nUser message: \"{utterance}\""
