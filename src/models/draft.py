"""FormDraft model: server-side mirror of the client's FormState.

One row per session, overwritten every turn. Only used for crash recovery;
the FormState returned to the client stays authoritative.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TimestampMixin


class FormDraft(TimestampMixin, Base):
    """Latest FormState of an unfinished interview."""

    __tablename__ = "form_drafts"

    session_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    tenant_id: Mapped[str | None] = mapped_column(String(100))
    section: Mapped[str] = mapped_column(String(20), nullable=False)
    form_state: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)

    def __repr__(self) -> str:
        return f"<FormDraft session={self.session_id} section={self.section}>"
