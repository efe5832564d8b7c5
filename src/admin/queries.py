"""Database query functions for the admin endpoints."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.audit import AuditLog
from src.models.inquiry import SalaryInquiry

logger = logging.getLogger(__name__)


def inquiry_summary(inquiry: SalaryInquiry) -> dict[str, Any]:
    """Row shape for the inquiry list."""
    return {
        "id": str(inquiry.id),
        "session_id": inquiry.session_id,
        "tenant_id": inquiry.tenant_id,
        "tarif": inquiry.tarif,
        "gruppe": inquiry.gruppe,
        "stufe": inquiry.stufe,
        "jahr": inquiry.jahr,
        "brutto": float(inquiry.brutto),
        "netto": float(inquiry.netto),
        "citation_count": len(inquiry.citations or []),
        "created_at": inquiry.created_at.isoformat() if inquiry.created_at else None,
    }


async def get_recent_inquiries(
    db: AsyncSession,
    page: int = 1,
    per_page: int = 25,
    tarif: str | None = None,
    tenant_id: str | None = None,
) -> tuple[list[SalaryInquiry], int]:
    """Paginated inquiries, newest first. Returns (rows, total count)."""
    query = select(SalaryInquiry)
    count_query = select(func.count(SalaryInquiry.id))
    if tarif:
        query = query.where(SalaryInquiry.tarif == tarif)
        count_query = count_query.where(SalaryInquiry.tarif == tarif)
    if tenant_id:
        query = query.where(SalaryInquiry.tenant_id == tenant_id)
        count_query = count_query.where(SalaryInquiry.tenant_id == tenant_id)

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(
        query.order_by(SalaryInquiry.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def get_inquiry(db: AsyncSession, inquiry_id: uuid.UUID) -> SalaryInquiry | None:
    result = await db.execute(select(SalaryInquiry).where(SalaryInquiry.id == inquiry_id))
    return result.scalar_one_or_none()


async def get_session_audit_trail(db: AsyncSession, session_id: str, limit: int = 200) -> list[AuditLog]:
    """All audit events of one interview session in chronological order."""
    result = await db.execute(
        select(AuditLog)
        .where(AuditLog.session_id == session_id)
        .order_by(AuditLog.created_at.asc())
        .limit(limit)
    )
    return list(result.scalars().all())
