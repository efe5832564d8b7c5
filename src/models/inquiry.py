"""SalaryInquiry model: one completed salary calculation.

Amounts use Numeric(12,2) / Decimal. The full result, the final FormState
and the consolidated retrieval citations are kept as JSONB; citations are
admin-only and never shown to the end user.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import Integer, Numeric, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TimestampMixin


class SalaryInquiry(TimestampMixin, Base):
    """Persisted result of a finished interview."""

    __tablename__ = "salary_inquiries"

    session_id: Mapped[str | None] = mapped_column(String(100), index=True)
    tenant_id: Mapped[str | None] = mapped_column(String(100), index=True, comment="Project / widget public key")

    # Tariff classification
    tarif: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    gruppe: Mapped[str] = mapped_column(String(10), nullable=False)
    stufe: Mapped[str] = mapped_column(String(5), nullable=False)
    jahr: Mapped[int] = mapped_column(Integer, nullable=False)

    # Monthly amounts
    brutto: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    netto: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    details: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, comment="Full calculation result")
    form_state: Mapped[dict[str, Any] | None] = mapped_column(JSONB)
    citations: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<SalaryInquiry {self.tarif} {self.gruppe}/{self.stufe} netto={self.netto}>"
