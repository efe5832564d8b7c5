"""Wire and in-process schemas for the salary interview.

FormState is the single aggregate threaded through every turn. It travels to
the client and back, so it serializes with camelCase keys (``missingFields``,
``validationErrors`` ...) while Python code uses snake_case attributes.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Section(str, Enum):
    """Interview phases, strictly forward."""

    JOB_DETAILS = "job_details"
    TAX_DETAILS = "tax_details"
    SUMMARY = "summary"
    COMPLETED = "completed"


class UserIntent(str, Enum):
    """Five-way classification of a user utterance."""

    DATA_PROVISION = "data_provision"
    QUESTION = "question"
    MODIFICATION = "modification"
    CONFIRMATION = "confirmation"
    UNCLEAR = "unclear"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Citation(_CamelModel):
    """Admin-facing retrieval citation. Never rendered to the end user."""

    document_id: str
    document_name: str
    pages: str | None = None
    similarity: float = 0.0


class FormData(BaseModel):
    """Collected values partitioned by phase.

    Keys are the canonical field names (``tarif``, ``taxClass`` ...) and the
    slot names stay snake_case on the wire.
    """

    model_config = ConfigDict(populate_by_name=True)

    job_details: dict[str, Any] = Field(default_factory=dict)
    tax_details: dict[str, Any] = Field(default_factory=dict)
    calculation_result: dict[str, Any] | None = None


class FormState(_CamelModel):
    """The conversation aggregate. Copied per turn, never mutated in place."""

    section: Section = Section.JOB_DETAILS
    data: FormData = Field(default_factory=FormData)
    missing_fields: list[str] = Field(default_factory=list)
    user_intent: UserIntent | None = None
    validation_errors: dict[str, str] = Field(default_factory=dict)
    conversation_context: list[str] = Field(default_factory=list)
    rag_citations: list[Citation] = Field(default_factory=list)

    def value_of(self, field: str) -> Any:
        """Return the collected value for a canonical field, or None."""
        if field in self.data.job_details:
            return self.data.job_details[field]
        return self.data.tax_details.get(field)


class TurnRequest(_CamelModel):
    """One incoming user message plus the state the client holds."""

    message: str
    current_form_state: FormState = Field(default_factory=FormState)
    session_id: str | None = None
    tenant_id: str | None = None


class TurnResponse(_CamelModel):
    """Reply for one turn. ``form_state`` is authoritative for the next turn."""

    text: str
    form_state: FormState
    progress: int = 0
    suggestions: list[str] = Field(default_factory=list)
    citations_for_audit: list[Citation] = Field(default_factory=list)
    should_escalate: bool = False
    valid_options: list[str] | None = None
