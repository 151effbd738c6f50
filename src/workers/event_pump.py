"""
Inbound Event Pump
==================

Drains job events into the flow context's dispatcher, one at a time.

Producers
---------
* ``enqueue`` -- called by the HTTP/WebSocket surface.
* Redis pub/sub -- optional; every message published on
  ``<event_channel_prefix>:*`` is enqueued as-is.

Messages are JSON envelopes ``{"event": "job:accepted", "data": {...}}``.
A single consumer preserves arrival order; no reordering is attempted and
stale or out-of-order events are left to the auto-navigation engine to
drop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from src.config import settings
from src.infrastructure.redis_client import get_redis
from src.services.context import FlowContext

logger = logging.getLogger(__name__)

RawEnvelope = Union[str, bytes, Mapping[str, Any]]

_context: Optional[FlowContext] = None
_queue: Optional[asyncio.Queue] = None
_task: Optional[asyncio.Task] = None
_subscriber: Optional[asyncio.Task] = None
_stop_event: Optional[asyncio.Event] = None


class EventEnvelope(BaseModel):
    event: str
    data: dict[str, Any] = Field(default_factory=dict)


def parse_envelope(raw: RawEnvelope) -> EventEnvelope:
    """Raises ``ValidationError`` (or ``ValueError`` for bad JSON)."""
    if isinstance(raw, (str, bytes)):
        return EventEnvelope.model_validate_json(raw)
    return EventEnvelope.model_validate(raw)


def dispatch(context: FlowContext, envelope: EventEnvelope) -> int:
    """Hand one envelope to the dispatcher.  Returns how many listeners ran."""
    return context.dispatcher.emit(envelope.event, envelope.data)


# ── Public API ────────────────────────────────────────────────────────


async def start_event_pump(context: FlowContext, *, subscribe: bool = True) -> None:
    global _context, _queue, _task, _subscriber, _stop_event
    _context = context
    _queue = asyncio.Queue(maxsize=settings.event_queue_maxsize)
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_consume())
    if subscribe:
        _subscriber = asyncio.create_task(_subscribe_loop())
    logger.info(
        "Event pump started (queue=%d, redis=%s)", settings.event_queue_maxsize, subscribe
    )


async def stop_event_pump() -> None:
    global _task, _subscriber, _context, _queue
    if _stop_event:
        _stop_event.set()
    for task in (_subscriber, _task):
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
    _task = _subscriber = None
    _context = _queue = None
    logger.info("Event pump stopped")


def enqueue(raw: RawEnvelope) -> bool:
    """Queue a raw envelope.  False when the pump is down or the queue is full."""
    if _queue is None:
        logger.warning("Event pump not running; dropping event")
        return False
    try:
        _queue.put_nowait(raw)
    except asyncio.QueueFull:
        logger.warning("Event queue full (%d); dropping event", _queue.maxsize)
        return False
    return True


async def drain() -> None:
    """Wait until every queued event has been processed."""
    if _queue is not None:
        await _queue.join()


def is_running() -> bool:
    return _task is not None and not _task.done()


# ── Internals ─────────────────────────────────────────────────────────


async def _consume() -> None:
    assert _queue is not None and _stop_event is not None
    while not _stop_event.is_set():
        raw = await _queue.get()
        try:
            process(raw)
        except Exception:
            logger.exception("Unhandled error processing inbound event")
        finally:
            _queue.task_done()


def process(raw: RawEnvelope) -> int:
    if _context is None:
        return 0
    try:
        envelope = parse_envelope(raw)
    except (ValidationError, ValueError):
        logger.warning("Malformed event envelope dropped: %r", raw)
        return 0
    return dispatch(_context, envelope)


async def _subscribe_loop() -> None:
    """Feed the queue from Redis pub/sub until stopped, reconnecting on error."""
    assert _stop_event is not None
    pattern = f"{settings.event_channel_prefix}:*"
    while not _stop_event.is_set():
        pubsub = None
        try:
            redis = await get_redis()
            pubsub = redis.pubsub()
            await pubsub.psubscribe(pattern)
            logger.info("Subscribed to %s", pattern)
            while not _stop_event.is_set():
                message = await pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=1.0
                )
                if message and message.get("type") == "pmessage":
                    enqueue(message["data"])
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Redis subscription failed; retrying")
            try:
                await asyncio.wait_for(_stop_event.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                pass
        finally:
            if pubsub is not None:
                await pubsub.aclose()
