"""Async httpx gateway to the external retrieval (RAG) service.

Endpoint: POST {retrieval_url}/query  {"query", "tenant_id", "top_k"}
Response: {"results": [{"content", "similarity", "metadata": {...}}]}

The interview never depends on retrieval: an unconfigured URL, a timeout, an
HTTP error or a malformed payload all degrade to an empty result list.
"""

from __future__ import annotations

import logging
import re

import httpx
from pydantic import ValidationError

from src.admin.events import emit
from src.config import settings
from src.retrieval.schemas import RankedChunk, RetrievalResponse
from src.schemas.events import EventType, SystemEvent
from src.schemas.form import Citation

logger = logging.getLogger(__name__)

_PAGE_RE = re.compile(r"\d+")


def _page_label(chunk: RankedChunk) -> str | None:
    start, end = chunk.metadata.page_start, chunk.metadata.page_end
    if start is None:
        return None
    if end is None or end == start:
        return f"S. {start}"
    return f"S. {start}-{end}"


def _pages_of(label: str | None) -> set[int]:
    """Expand "S. 5-7, S. 9" into {5, 6, 7, 9}."""
    if not label:
        return set()
    pages: set[int] = set()
    for part in label.split(","):
        numbers = [int(n) for n in _PAGE_RE.findall(part)]
        if len(numbers) >= 2:
            pages.update(range(min(numbers[0], numbers[1]), max(numbers[0], numbers[1]) + 1))
        elif numbers:
            pages.add(numbers[0])
    return pages


def _format_pages(pages: set[int]) -> str | None:
    if not pages:
        return None
    ordered = sorted(pages)
    ranges: list[str] = []
    start = prev = ordered[0]
    for page in ordered[1:]:
        if page == prev + 1:
            prev = page
            continue
        ranges.append(f"S. {start}" if start == prev else f"S. {start}-{prev}")
        start = prev = page
    ranges.append(f"S. {start}" if start == prev else f"S. {start}-{prev}")
    return ", ".join(ranges)


def filter_chunks(
    chunks: list[RankedChunk],
    floor: float | None = None,
    top_k: int | None = None,
) -> list[RankedChunk]:
    """Drop chunks below the similarity floor and keep the best ``top_k``."""
    floor = settings.retrieval.similarity_floor if floor is None else floor
    top_k = settings.retrieval.top_k if top_k is None else top_k
    kept = [c for c in chunks if c.similarity >= floor]
    kept.sort(key=lambda c: c.similarity, reverse=True)
    return kept[:top_k]


def build_grounding_context(chunks: list[RankedChunk]) -> str:
    """Render chunks as a context block for a grounded-answer prompt."""
    if not chunks:
        return ""
    blocks: list[str] = []
    for i, chunk in enumerate(chunks, start=1):
        header = f"### Auszug {i}: {chunk.metadata.document_name}"
        pages = _page_label(chunk)
        if pages:
            header += f" ({pages})"
        blocks.append(f"{header}\n{chunk.content.strip()}")
    return "\n\n".join(blocks)


def citations_from_chunks(chunks: list[RankedChunk]) -> list[Citation]:
    return [
        Citation(
            document_id=c.metadata.document_id,
            document_name=c.metadata.document_name,
            pages=_page_label(c),
            similarity=c.similarity,
        )
        for c in chunks
    ]


def consolidate_citations(citations: list[Citation]) -> list[Citation]:
    """Merge citations per document: union of pages, best similarity.

    Order follows the first appearance of each document.
    """
    merged: dict[str, tuple[Citation, set[int]]] = {}
    for citation in citations:
        pages = _pages_of(citation.pages)
        if citation.document_id not in merged:
            merged[citation.document_id] = (citation, pages)
            continue
        best, seen = merged[citation.document_id]
        merged[citation.document_id] = (
            best if best.similarity >= citation.similarity else citation,
            seen | pages,
        )
    return [
        Citation(
            document_id=doc_id,
            document_name=best.document_name,
            pages=_format_pages(pages),
            similarity=best.similarity,
        )
        for doc_id, (best, pages) in merged.items()
    ]


class RetrievalGateway:
    """Thin async wrapper around the retrieval service."""

    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (settings.retrieval.retrieval_url if base_url is None else base_url).rstrip("/")
        self._timeout = httpx.Timeout(settings.retrieval.retrieval_timeout, connect=5.0)
        self._transport = transport

    @property
    def _bypass_mode(self) -> bool:
        """Return True if no retrieval service is configured."""
        return not self._base_url

    async def query_with_metadata(
        self,
        text: str,
        tenant_id: str | None,
        top_k: int | None = None,
        session_id: str | None = None,
    ) -> list[RankedChunk]:
        """Query the retrieval service. Never raises; failures return []."""
        if self._bypass_mode:
            logger.debug("Retrieval bypass mode active (no retrieval_url configured)")
            return []

        top_k = settings.retrieval.top_k if top_k is None else top_k
        error: str | None = None
        chunks: list[RankedChunk] = []
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self._base_url}/query",
                    json={"query": text, "tenant_id": tenant_id, "top_k": top_k},
                )
                response.raise_for_status()
                chunks = RetrievalResponse.model_validate(response.json()).results
        except httpx.TimeoutException:
            logger.warning("Retrieval timeout (tenant=%s)", tenant_id)
            error = "timeout"
        except httpx.HTTPStatusError as exc:
            logger.warning("Retrieval HTTP error %s (tenant=%s)", exc.response.status_code, tenant_id)
            error = f"http_{exc.response.status_code}"
        except httpx.HTTPError as exc:
            logger.warning("Retrieval transport error: %s", exc)
            error = type(exc).__name__
        except (ValidationError, ValueError) as exc:
            logger.warning("Malformed retrieval payload: %s", exc)
            error = "malformed_payload"

        await emit(SystemEvent(
            event_type=EventType.RETRIEVAL_QUERIED,
            session_id=session_id,
            tenant_id=tenant_id,
            data={
                "result_count": len(chunks),
                "top_similarity": max((c.similarity for c in chunks), default=None),
                "error": error,
            },
            source_module="retrieval.gateway",
        ))
        return chunks

    async def retrieve(
        self,
        text: str,
        tenant_id: str | None,
        session_id: str | None = None,
    ) -> list[RankedChunk]:
        """Query, then apply the configured similarity floor and top-K cap."""
        chunks = await self.query_with_metadata(text, tenant_id, session_id=session_id)
        return filter_chunks(chunks)


# Module-level singleton
retrieval_gateway = RetrievalGateway()
