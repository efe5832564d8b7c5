"""Event emitter and subscriber registry.

Async pub/sub for SystemEvents. The interview engine emits an event for every
turn, transition, validation failure and oracle call; the audit subscriber
persists them so an operator can reconstruct any conversation afterwards.

Usage:
    from src.admin.events import emit

    await emit(SystemEvent(
        event_type=EventType.PHASE_CHANGED,
        session_id=session_id,
        data={"from": "job_details", "to": "tax_details"},
    ))

    # At startup:
    subscribe(audit_on_event)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from src.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[SystemEvent], Coroutine[Any, Any, None]]

# ── Internal state ───────────────────────────────────────────────────

_subscribers: list[EventHandler] = []
_type_subscribers: dict[EventType, list[EventHandler]] = {}
_queue: asyncio.Queue[SystemEvent] | None = None
_worker_task: asyncio.Task[None] | None = None


# ── Public API ───────────────────────────────────────────────────────


def subscribe(handler: EventHandler, event_types: list[EventType] | None = None) -> None:
    """Register an event handler.

    Args:
        handler: Async function that accepts a SystemEvent.
        event_types: Restrict the handler to these types. None means all events.
    """
    if event_types is None:
        _subscribers.append(handler)
        logger.info("Registered global event subscriber: %s", handler.__name__)
        return
    for et in event_types:
        _type_subscribers.setdefault(et, []).append(handler)
    logger.info(
        "Registered event subscriber %s for types: %s",
        handler.__name__,
        [t.value for t in event_types],
    )


def unsubscribe(handler: EventHandler) -> None:
    """Remove a previously registered handler."""
    if handler in _subscribers:
        _subscribers.remove(handler)
    for handlers in _type_subscribers.values():
        if handler in handlers:
            handlers.remove(handler)


async def emit(event: SystemEvent) -> None:
    """Queue a SystemEvent for delivery.

    Never blocks the turn on slow subscribers: delivery happens on a
    background worker that is started lazily on first use.
    """
    global _queue
    if _queue is None:
        _queue = asyncio.Queue()
        _ensure_worker()

    await _queue.put(event)
    logger.debug("Event emitted: %s (session=%s)", event.event_type.value, event.session_id)


# ── Background worker ────────────────────────────────────────────────


def _ensure_worker() -> None:
    global _worker_task
    if _worker_task is None or _worker_task.done():
        _worker_task = asyncio.create_task(_event_worker())
        logger.info("Event worker started")


async def _event_worker() -> None:
    """Drain the queue and fan each event out to its subscribers."""
    if _queue is None:
        return

    while True:
        try:
            event = await _queue.get()
            await _dispatch(event)
            _queue.task_done()
        except asyncio.CancelledError:
            logger.info("Event worker shutting down")
            break
        except Exception:
            logger.exception("Error in event worker")


async def _dispatch(event: SystemEvent) -> None:
    handlers: list[EventHandler] = list(_subscribers)
    handlers.extend(_type_subscribers.get(event.event_type, []))
    if not handlers:
        return

    results = await asyncio.gather(
        *[handler(event) for handler in handlers],
        return_exceptions=True,
    )
    for handler, result in zip(handlers, results):
        if isinstance(result, Exception):
            logger.error(
                "Handler %s failed for event %s: %s",
                handler.__name__,
                event.event_type.value,
                result,
            )


# ── Lifecycle ────────────────────────────────────────────────────────


async def start_event_system() -> None:
    """Initialize the event queue and worker. Called from the FastAPI lifespan."""
    global _queue
    _queue = asyncio.Queue()
    _ensure_worker()
    logger.info(
        "Event system started with %d global + %d typed subscribers",
        len(_subscribers),
        sum(len(v) for v in _type_subscribers.values()),
    )


async def stop_event_system() -> None:
    """Drain pending events, then stop the worker."""
    global _worker_task, _queue

    if _queue is not None:
        await _queue.join()

    if _worker_task is not None and not _worker_task.done():
        _worker_task.cancel()
        try:
            await _worker_task
        except asyncio.CancelledError:
            pass

    _worker_task = None
    _queue = None
    logger.info("Event system stopped")
