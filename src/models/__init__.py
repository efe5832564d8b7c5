"""SQLAlchemy ORM models for Tarifbot.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from src.models.audit import AuditLog
from src.models.base import Base
from src.models.draft import FormDraft
from src.models.inquiry import SalaryInquiry

__all__ = [
    # Base
    "Base",
    # Models
    "AuditLog",
    "FormDraft",
    "SalaryInquiry",
]
