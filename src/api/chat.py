"""Chat HTTP adapter: one POST per interview turn.

The client holds the FormState and sends it back with every message; the
response carries the new, authoritative FormState. Wire format is camelCase.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from src.conversation.engine import conversation_engine
from src.persistence.inquiries import inquiry_repository
from src.schemas.form import FormState, TurnRequest, TurnResponse

logger = logging.getLogger(__name__)

chat_router = APIRouter(prefix="/api", tags=["chat"])


@chat_router.post("/chat", response_model=TurnResponse)
async def chat_turn(request: TurnRequest) -> TurnResponse:
    """Process one user message against the supplied FormState."""
    return await conversation_engine.process_turn(request)


@chat_router.get("/chat/{session_id}/draft", response_model=FormState)
async def chat_draft(session_id: str) -> FormState:
    """Return the mirrored FormState of an unfinished interview (crash recovery)."""
    draft = await inquiry_repository.load_draft(session_id)
    if draft is None:
        raise HTTPException(status_code=404, detail="No draft for this session")
    return draft
