"""Result types returned by the field validator."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel


class FieldError(BaseModel):
    """User-facing description of a rejected answer (German)."""

    message: str
    field: str
    received: str
    suggestion: str | None = None
    valid_options: list[str] | None = None


class ValidationSuccess(BaseModel):
    """The raw value parsed; ``normalized_value`` is the canonical form."""

    valid: Literal[True] = True
    normalized_value: Any
    retry_count: int = 0
    should_escalate: bool = False


class ValidationFailure(BaseModel):
    """The raw value was rejected, or the field is already escalated."""

    valid: Literal[False] = False
    error: FieldError
    retry_count: int
    should_escalate: bool = False


ValidationResult = ValidationSuccess | ValidationFailure

