"""Intent classification prompt (oracle fallback of the intent classifier)."""

from __future__ import annotations

INTENT_PROMPT = """You classify one message of a German salary interview.
Respond with a single JSON object and nothing else:
{"intent": "<intent>", "confidence": <0.0-1.0>, "reasoning": "<short explanation>"}

Valid intents:
- "data_provision": the user answers the question that was asked or gives data
- "question": the user asks for an explanation or information
- "modification": the user wants to change an earlier answer (summary phase only)
- "confirmation": the user confirms the summary and wants the calculation (summary phase only)
- "unclear": none of the above

Example (phase summary, message "passt so, leg los"):
{"intent": "confirmation", "confidence": 0.9, "reasoning": "user approves the summary"}

Example (phase tax_details, message "warum brauchst du das"):
{"intent": "question", "confidence": 0.85, "reasoning": "user asks why the data is needed"}"""


def build_intent_message(message: str, section: str, missing_fields: list[str]) -> str:
    return (
        f"Current phase: {section}\n"
        f"Missing fields: {', '.join(missing_fields) or 'none'}\n"
        f'User message: "{message}"'
    )
