"""Admin JSON endpoints: salary inquiries and their retrieval citations.

Citations are never shown to the interview user; this router is the only
place they surface. All routes require HTTP Basic Auth via verify_admin.
"""
# ruff: noqa: B008

from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.admin.auth import verify_admin
from src.admin.events import emit
from src.admin.queries import get_inquiry, get_recent_inquiries, get_session_audit_trail, inquiry_summary
from src.db.engine import get_session
from src.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

PER_PAGE = 25


async def _emit_access(admin: str, page: str) -> None:
    """Emit ADMIN_ACCESS audit event for each request."""
    await emit(SystemEvent(
        event_type=EventType.ADMIN_ACCESS,
        actor_id=admin,
        actor_role="admin",
        data={"page": page, "interface": "web"},
        source_module="admin.web",
    ))


def _parse_uuid(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=404, detail="Inquiry not found") from None


@router.get("/inquiries")
async def inquiries_list(
    page: int = Query(1, ge=1),
    tarif: str | None = Query(None),
    tenant_id: str | None = Query(None, alias="tenantId"),
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> dict[str, Any]:
    """Paginated list of finished calculations, newest first."""
    await _emit_access(admin, "inquiries")

    rows, total = await get_recent_inquiries(
        db, page=page, per_page=PER_PAGE, tarif=tarif or None, tenant_id=tenant_id or None
    )
    return {
        "items": [inquiry_summary(row) for row in rows],
        "total": total,
        "page": page,
        "total_pages": max(1, (total + PER_PAGE - 1) // PER_PAGE),
    }


@router.get("/inquiries/{inquiry_id}")
async def inquiry_detail(
    inquiry_id: str,
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> dict[str, Any]:
    """Full calculation details, final FormState and consolidated citations."""
    await _emit_access(admin, "inquiry_detail")

    inquiry = await get_inquiry(db, _parse_uuid(inquiry_id))
    if inquiry is None:
        raise HTTPException(status_code=404, detail="Inquiry not found")

    return {
        **inquiry_summary(inquiry),
        "details": inquiry.details,
        "form_state": inquiry.form_state,
        "citations": inquiry.citations or [],
    }


@router.get("/inquiries/{inquiry_id}/citations")
async def inquiry_citations(
    inquiry_id: str,
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> list[dict[str, Any]]:
    """The documents and pages that grounded answers during the interview."""
    await _emit_access(admin, "inquiry_citations")

    inquiry = await get_inquiry(db, _parse_uuid(inquiry_id))
    if inquiry is None:
        raise HTTPException(status_code=404, detail="Inquiry not found")
    return inquiry.citations or []


@router.get("/sessions/{session_id}/audit")
async def session_audit(
    session_id: str,
    db: AsyncSession = Depends(get_session),
    admin: str = Depends(verify_admin),
) -> list[dict[str, Any]]:
    """Chronological event trail of one interview session."""
    await _emit_access(admin, "session_audit")

    entries = await get_session_audit_trail(db, session_id)
    return [
        {
            "event_type": entry.event_type,
            "source_module": entry.source_module,
            "data": entry.data,
            "created_at": entry.created_at.isoformat() if entry.created_at else None,
        }
        for entry in entries
    ]
