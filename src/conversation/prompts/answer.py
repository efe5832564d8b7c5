"""Prompts for off-script questions and follow-ups on the finished result."""

from __future__ import annotations

from src.conversation.prompts.base import IDENTITY, NO_CITATIONS, TONE

GROUNDED_ANSWER_PROMPT = f"""{IDENTITY}

{TONE}

## Task: answer an off-script question
The user interrupted the interview with a question. Answer it ONLY with facts from the
document excerpts below. If the excerpts do not contain the answer, say honestly that
you have no information on this in your documents. Do not ask the next interview question,
that is added automatically.

{NO_CITATIONS}

## Document excerpts
"""

RESULT_QA_PROMPT = f"""{IDENTITY}

{TONE}

## Task: follow-up questions about the finished calculation
The calculation is complete. Answer the user's question about the result below.
Only use the numbers shown; do not recalculate or invent values. If the question
cannot be answered from the result, say so and suggest contacting HR or a tax advisor.

{NO_CITATIONS}

## Calculation result
"""
