"""Pydantic schemas for the external retrieval service."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ChunkMetadata(BaseModel):
    """Where a chunk comes from. Accepts camelCase or snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    document_id: str
    document_name: str = Field(default="Unbenanntes Dokument")
    page_start: int | None = None
    page_end: int | None = None
    chunk_index: int = 0


class RankedChunk(BaseModel):
    """One retrieved text chunk with its similarity score."""

    content: str
    similarity: float
    metadata: ChunkMetadata


class RetrievalResponse(BaseModel):
    results: list[RankedChunk] = Field(default_factory=list)
