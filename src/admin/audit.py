"""Audit log subscriber: persists every SystemEvent to the audit_log table.

Registered as a global subscriber (receives ALL events). Turns, phase
changes, validation escalations and calculations all end up here, which
makes it the trail for debugging a single interview after the fact.

Never raises. Failures are logged and do not propagate to the event system.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.engine import async_session_factory
from src.models.audit import AuditLog
from src.schemas.events import SystemEvent

logger = logging.getLogger(__name__)


def build_audit_subscriber(session_factory: async_sessionmaker[AsyncSession] | None = None):
    """Return an event handler writing to the given session factory."""
    factory = session_factory or async_session_factory

    async def audit_on_event(event: SystemEvent) -> None:
        try:
            async with factory() as db:
                db.add(AuditLog(
                    event_type=event.event_type.value,
                    source_module=event.source_module,
                    session_id=event.session_id,
                    tenant_id=event.tenant_id,
                    actor_id=event.actor_id,
                    actor_role=event.actor_role,
                    data=event.data,
                ))
                await db.commit()
        except Exception:
            logger.exception(
                "Failed to persist audit event: %s (session=%s)",
                event.event_type.value,
                event.session_id,
            )

    return audit_on_event


audit_on_event = build_audit_subscriber()
