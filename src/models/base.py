"""SQLAlchemy declarative base and the shared id / timestamp columns.

All three tables (audit_log, salary_inquiries, form_drafts) key rows by a
UUID. The id is generated in Python on flush so a saved inquiry id can be
reported before the session closes; the server default covers rows written
by migrations or by hand.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for the Tarifbot tables."""


class TimestampMixin:
    """UUID primary key plus created_at / updated_at set by PostgreSQL."""

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
