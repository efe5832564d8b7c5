"""FastAPI application entry point: wires everything together.

Usage:
    python -m src.main

Serves the chat endpoint, the admin JSON endpoints and a health check.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
import uvicorn
from fastapi import FastAPI

from src.admin.audit import audit_on_event
from src.admin.events import start_event_system, stop_event_system, subscribe, unsubscribe
from src.admin.web import router as admin_router
from src.api.chat import chat_router
from src.config import settings
from src.db.engine import db_lifespan
from src.llm.client import llm_client

# ── Logging setup ────────────────────────────────────────────────────

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    stream=sys.stdout,
)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = logging.getLogger(__name__)

# ── FastAPI lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    logger.info("Starting %s (env=%s)", settings.branding.bot_name, settings.environment)
    app.state.started_at = datetime.now(UTC)

    # 1. Database
    async with db_lifespan():
        logger.info("Database initialized")

        # 2. Event system
        await start_event_system()
        logger.info("Event system started")

        # 3. Audit logging, always active (global subscriber)
        subscribe(audit_on_event)
        logger.info("Audit logging subscriber registered")

        if not settings.retrieval.retrieval_url:
            logger.warning("RETRIEVAL_URL not set, questions will be answered without documents")

        try:
            yield
        finally:
            # Shutdown in reverse order
            logger.info("Shutting down %s...", settings.branding.bot_name)

            unsubscribe(audit_on_event)

            await llm_client.close()
            logger.info("LLM client closed")

            await stop_event_system()
            logger.info("Event system stopped")

    logger.info("%s shutdown complete", settings.branding.bot_name)


# ── FastAPI app ──────────────────────────────────────────────────────

app = FastAPI(
    title="Tarifbot API",
    description="Guided German salary interview with tariff-based net calculation",
    version="0.1.0",
    lifespan=lifespan,
)
app.include_router(chat_router)
app.include_router(admin_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "ok",
        "environment": settings.environment,
        "bot_name": settings.branding.bot_name,
    }


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
