"""SystemEvent schema: the event type that flows through the interview engine.

Every turn, transition, validation failure and oracle call emits a SystemEvent.
Subscribers (currently the audit log writer) consume these asynchronously.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """All event types emitted by the system."""

    # Turns
    TURN_RECEIVED = "turn.received"
    TURN_ANSWERED = "turn.answered"
    TURN_FAILED = "turn.failed"

    # Interview flow
    INTENT_CLASSIFIED = "interview.intent_classified"
    PHASE_CHANGED = "interview.phase_changed"
    DATA_EXTRACTED = "data.extracted"
    DATA_MODIFIED = "data.modified"

    # Validation
    VALIDATION_FAILED = "validation.failed"
    VALIDATION_ESCALATED = "validation.escalated"

    # Retrieval
    RETRIEVAL_QUERIED = "retrieval.queried"

    # Calculation & persistence
    CALCULATION_COMPLETED = "calculation.completed"
    CALCULATION_FAILED = "calculation.failed"
    RESULT_PERSISTED = "result.persisted"
    RESULT_PERSIST_FAILED = "result.persist_failed"

    # LLM
    LLM_REQUEST = "llm.request"
    LLM_RESPONSE = "llm.response"
    LLM_RETRY = "llm.retry"
    LLM_ERROR = "llm.error"

    # Admin
    ADMIN_ACCESS = "admin.access"

    # System
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"


class SystemEvent(BaseModel):
    """Core event emitted by the interview engine.

    Immutable once created. Consumed by:
    - audit_on_event → writes to audit_log table
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Context (optional, not every event has a session)
    session_id: str | None = None
    tenant_id: str | None = None
    actor_id: str | None = None
    actor_role: str | None = None

    # Flexible payload
    data: dict[str, Any] = Field(default_factory=dict)

    # Metadata
    source_module: str | None = Field(default=None, description="Module that emitted this event")

    model_config = {"frozen": True}
