"""Prompt for oracle-proposed quick-reply chips on open-ended questions."""

from __future__ import annotations

SUGGESTION_PROMPT = """You propose quick-reply buttons for a German salary chatbot.
Given the assistant's last message, return 2 to 4 short typical user answers in German.

Rules:
- Respond with a JSON array of strings and nothing else.
- Each answer at most 30 characters.
- Realistic answers a nurse would give, no questions.

Example (assistant asked "Was hast du gelernt, bzw. als was arbeitest du aktuell?"):
["Pflegefachkraft", "Pflegehelfer", "Stationsleitung"]"""


def build_suggestion_message(last_response_text: str) -> str:
    return f'Assistant message: "{last_response_text}"'
