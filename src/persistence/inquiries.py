"""Persistence for finished calculations and FormState drafts.

Each write opens its own session from the factory, so persistence never
shares a transaction with the caller. Writes raise on failure; the
interview engine decides how to degrade.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.admin.events import emit
from src.db.engine import async_session_factory
from src.models.draft import FormDraft
from src.models.inquiry import SalaryInquiry
from src.schemas.events import EventType, SystemEvent
from src.schemas.form import Citation, FormState

logger = logging.getLogger(__name__)


class InquiryRepository:
    """Writes salary inquiries and mirrors drafts."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or async_session_factory

    async def save_result(
        self,
        session_id: str | None,
        tenant_id: str | None,
        form_state: FormState,
        citations: list[Citation],
    ) -> uuid.UUID:
        """Persist a completed calculation with its consolidated citations.

        Raises:
            ValueError: If ``form_state`` carries no calculation result.
            sqlalchemy.exc.SQLAlchemyError: On database failure.
        """
        result = form_state.data.calculation_result
        if result is None:
            msg = "Cannot persist an inquiry without a calculation result"
            raise ValueError(msg)

        citation_rows = [c.model_dump(mode="json", by_alias=True) for c in citations]
        inquiry = SalaryInquiry(
            session_id=session_id,
            tenant_id=tenant_id,
            tarif=str(result.get("tarif", form_state.data.job_details.get("tarif", ""))),
            gruppe=str(result.get("group", form_state.data.job_details.get("group", ""))),
            stufe=str(result.get("stufe", form_state.data.job_details.get("experience", ""))),
            jahr=int(result.get("year", 0)),
            brutto=Decimal(str(result["brutto"])),
            netto=Decimal(str(result["netto"])),
            details={
                **result,
                "job_details": form_state.data.job_details,
                "tax_details": form_state.data.tax_details,
            },
            form_state=form_state.model_dump(mode="json", by_alias=True),
            citations=citation_rows,
        )
        async with self._session_factory() as db:
            db.add(inquiry)
            await db.commit()
            inquiry_id = inquiry.id

        logger.info("Saved salary inquiry %s (session=%s, citations=%d)", inquiry_id, session_id, len(citations))
        await emit(SystemEvent(
            event_type=EventType.RESULT_PERSISTED,
            session_id=session_id,
            tenant_id=tenant_id,
            data={"inquiry_id": str(inquiry_id), "citation_count": len(citations)},
            source_module="persistence.inquiries",
        ))
        return inquiry_id

    async def save_draft(self, session_id: str, tenant_id: str | None, form_state: FormState) -> None:
        """Upsert the draft row for ``session_id``."""
        payload = form_state.model_dump(mode="json", by_alias=True)
        stmt = insert(FormDraft).values(
            id=uuid.uuid4(),
            session_id=session_id,
            tenant_id=tenant_id,
            section=form_state.section.value,
            form_state=payload,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[FormDraft.session_id],
            set_={"section": stmt.excluded.section, "form_state": stmt.excluded.form_state},
        )
        async with self._session_factory() as db:
            await db.execute(stmt)
            await db.commit()

    async def load_draft(self, session_id: str) -> FormState | None:
        """Return the mirrored FormState, or None if there is no draft."""
        async with self._session_factory() as db:
            result = await db.execute(select(FormDraft).where(FormDraft.session_id == session_id))
            draft = result.scalar_one_or_none()
        if draft is None:
            return None
        return FormState.model_validate(draft.form_state)

    async def delete_draft(self, session_id: str) -> None:
        async with self._session_factory() as db:
            await db.execute(delete(FormDraft).where(FormDraft.session_id == session_id))
            await db.commit()


# Module-level singleton
inquiry_repository = InquiryRepository()
