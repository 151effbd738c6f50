"""
Flow navigation endpoints
=========================

GET   /api/v1/flow          -- current flow state
POST  /api/v1/flow/start    -- enter service selection for a role
POST  /api/v1/flow/service  -- enter a service at its first step
POST  /api/v1/flow/next     -- one step forward
POST  /api/v1/flow/back     -- one step back
POST  /api/v1/flow/goto     -- jump to a step of the active flow
POST  /api/v1/flow/stop     -- deactivate, keep role/service
POST  /api/v1/flow/reset    -- back to defaults
POST  /api/v1/flow/job      -- track a job (DELETE to stop tracking)
POST  /api/v1/flow/matching -- start the matching timer (DELETE to stop it)
POST  /api/v1/flow/acceptance -- start the acceptance timer (DELETE to stop it)
PATCH /api/v1/flow/details  -- origin, destination, phone, ride type, tier
GET   /api/v1/flow/render   -- the screen to show for the current step
GET   /api/v1/flow/quote    -- fare per tier for the confirmed trip

Invalid navigation in strict mode is answered with 409.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from src.api.dependencies import get_flow_context
from src.api.middleware import limiter
from src.api.schemas import (
    DetailsRequest,
    FlowResponse,
    GoToRequest,
    JobRequest,
    QuoteResponse,
    ServiceRequest,
    StartRequest,
    TimerRequest,
    ViewResponse,
)
from src.domain.entities import FlowState, Location
from src.domain.pricing import PricingEngine
from src.services.context import FlowContext

router = APIRouter(prefix="/flow", tags=["flow"])


def _flow(state: FlowState) -> FlowResponse:
    return FlowResponse(**state.to_dict())


@router.get("", response_model=FlowResponse, summary="Current flow state")
async def get_flow(context: FlowContext = Depends(get_flow_context)):
    return _flow(context.store.state)


@router.post("/start", response_model=FlowResponse, summary="Start a flow for a role")
@limiter.limit("100/minute")
async def start_flow(
    request: Request,
    body: StartRequest,
    context: FlowContext = Depends(get_flow_context),
):
    return _flow(context.store.start(body.role))


@router.post("/service", response_model=FlowResponse, summary="Enter a service")
@limiter.limit("100/minute")
async def start_service(
    request: Request,
    body: ServiceRequest,
    context: FlowContext = Depends(get_flow_context),
):
    if body.wait_for_reference_data:
        await context.store.open_service(body.service, body.role)
    else:
        context.store.start_service(body.service, body.role)
    return _flow(context.store.state)


@router.post("/next", response_model=FlowResponse, summary="Advance one step")
@limiter.limit("100/minute")
async def next_step(request: Request, context: FlowContext = Depends(get_flow_context)):
    context.store.next()
    return _flow(context.store.state)


@router.post("/back", response_model=FlowResponse, summary="Go back one step")
@limiter.limit("100/minute")
async def previous_step(
    request: Request, context: FlowContext = Depends(get_flow_context)
):
    context.store.back()
    return _flow(context.store.state)


@router.post("/goto", response_model=FlowResponse, summary="Jump to a step")
@limiter.limit("100/minute")
async def go_to_step(
    request: Request,
    body: GoToRequest,
    context: FlowContext = Depends(get_flow_context),
):
    return _flow(context.store.go_to_step(body.step))


@router.post("/stop", response_model=FlowResponse, summary="Deactivate the flow")
async def stop_flow(context: FlowContext = Depends(get_flow_context)):
    return _flow(context.store.stop())


@router.post("/reset", response_model=FlowResponse, summary="Reset the flow")
async def reset_flow(context: FlowContext = Depends(get_flow_context)):
    return _flow(context.store.reset())


@router.post("/job", response_model=FlowResponse, summary="Track a job")
async def set_job(body: JobRequest, context: FlowContext = Depends(get_flow_context)):
    return _flow(context.store.set_job(body.job_id, body.status))


@router.delete("/job", response_model=FlowResponse, summary="Stop tracking the job")
async def clear_job(context: FlowContext = Depends(get_flow_context)):
    return _flow(context.store.clear_job())


@router.post(
    "/matching", response_model=FlowResponse, summary="Start searching for an agent"
)
async def start_matching(
    body: TimerRequest, context: FlowContext = Depends(get_flow_context)
):
    return _flow(context.store.start_matching(body.timeout_seconds))


@router.delete("/matching", response_model=FlowResponse, summary="Stop searching")
async def stop_matching(context: FlowContext = Depends(get_flow_context)):
    return _flow(context.store.stop_matching())


@router.post(
    "/acceptance", response_model=FlowResponse, summary="Wait for the agent to accept"
)
async def start_acceptance_timer(
    body: TimerRequest, context: FlowContext = Depends(get_flow_context)
):
    return _flow(context.store.start_acceptance_timer(body.timeout_seconds))


@router.delete("/acceptance", response_model=FlowResponse, summary="Stop waiting")
async def stop_acceptance_timer(context: FlowContext = Depends(get_flow_context)):
    return _flow(context.store.stop_acceptance_timer())


@router.patch("/details", response_model=FlowResponse, summary="Update trip details")
async def update_details(
    body: DetailsRequest, context: FlowContext = Depends(get_flow_context)
):
    store = context.store
    sent = body.model_fields_set

    if "confirmed_origin" in sent:
        store.set_confirmed_origin(_location(body.confirmed_origin))
    if "confirmed_destination" in sent:
        store.set_confirmed_destination(_location(body.confirmed_destination))
    if "phone_number" in sent:
        store.set_phone_number(body.phone_number)
    if "ride_type" in sent and body.ride_type is not None:
        store.set_ride_type(body.ride_type)
    if "selected_tier_id" in sent:
        store.set_selected_tier(body.selected_tier_id)
    return _flow(store.state)


@router.get("/render", response_model=ViewResponse, summary="Screen for the current step")
async def render(context: FlowContext = Depends(get_flow_context)):
    return ViewResponse(**context.render().to_dict())


@router.get(
    "/quote",
    response_model=list[QuoteResponse],
    summary="Fare per tier for the confirmed trip",
)
@limiter.limit("100/minute")
async def quote(
    request: Request,
    active_requests: int = Query(1, ge=0),
    available_agents: int = Query(1, ge=0),
    context: FlowContext = Depends(get_flow_context),
):
    state = context.store.state
    if state.service is None:
        raise HTTPException(status_code=409, detail="No service selected")
    if state.confirmed_origin is None or state.confirmed_destination is None:
        raise HTTPException(
            status_code=409, detail="Origin and destination must be confirmed"
        )

    settings = context.settings
    engine = PricingEngine(settings.base_fare, settings.rate_per_km)
    tiers = context.store.reference_data(state.service) or [
        engine.default_tier(state.service)
    ]
    return engine.quote(
        state.confirmed_origin,
        state.confirmed_destination,
        tiers,
        active_requests=active_requests,
        available_agents=available_agents,
    )


def _location(body) -> Location | None:
    if body is None:
        return None
    return Location(body.latitude, body.longitude, body.address)
