"""
Inbound job events
==================

POST /api/v1/flow/events -- deliver one event and return what it did
WS   /api/v1/flow/ws     -- stream events in, flow state out

Events posted over HTTP are dispatched immediately so the caller gets the
navigation result back.  Events received on the socket go through the event
pump's queue when it is running, so they are processed in arrival order
alongside events from Redis.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect

from src.api.dependencies import get_flow_context
from src.api.middleware import limiter
from src.api.schemas import (
    EventRequest,
    EventResponse,
    FlowResponse,
    NavigationResultResponse,
)
from src.domain.entities import FlowState
from src.services.context import FlowContext
from src.workers import event_pump

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/flow", tags=["events"])


@router.post("/events", response_model=EventResponse, summary="Deliver a job event")
@limiter.limit("300/minute")
async def post_event(
    request: Request,
    body: EventRequest,
    context: FlowContext = Depends(get_flow_context),
):
    envelope = event_pump.EventEnvelope(event=body.event, data=body.data)
    delivered = event_pump.dispatch(context, envelope)

    result = None
    if delivered and context.navigator.recent:
        result = NavigationResultResponse(**context.navigator.recent[-1].to_dict())
    return EventResponse(delivered=delivered, result=result)


def _state_message(state: FlowState) -> dict:
    return {
        "type": "state",
        "data": FlowResponse(**state.to_dict()).model_dump(mode="json"),
    }


@router.websocket("/ws")
async def flow_socket(websocket: WebSocket):
    context: FlowContext = websocket.app.state.flow
    await websocket.accept()

    updates: asyncio.Queue[FlowState] = asyncio.Queue()
    unsubscribe = context.store.subscribe(lambda new, old: updates.put_nowait(new))

    async def push() -> None:
        while True:
            state = await updates.get()
            await websocket.send_json(_state_message(state))

    pusher = asyncio.create_task(push())
    try:
        await websocket.send_json(_state_message(context.store.state))
        while True:
            raw = await websocket.receive_text()
            if event_pump.is_running():
                if not event_pump.enqueue(raw):
                    await websocket.send_json({"type": "error", "detail": "event dropped"})
                continue
            try:
                envelope = event_pump.parse_envelope(raw)
            except ValueError:
                await websocket.send_json({"type": "error", "detail": "malformed event"})
                continue
            event_pump.dispatch(context, envelope)
    except WebSocketDisconnect:
        logger.debug("Flow socket closed")
    finally:
        unsubscribe()
        pusher.cancel()
        try:
            await pusher
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Flow socket push failed")
