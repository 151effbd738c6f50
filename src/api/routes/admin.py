"""
Admin / observability endpoints
===============================

GET /api/v1/admin/health           -- simple health check
GET /api/v1/admin/registry         -- screen coverage of the step catalog
GET /api/v1/admin/registry/{step}  -- registrations for one step
GET /api/v1/admin/tiers/{service}  -- active tiers straight from the database
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, get_flow_context
from src.api.middleware import limiter
from src.api.schemas import (
    HealthResponse,
    RegistrationResponse,
    RegistryResponse,
    TierResponse,
)
from src.domain.enums import ServiceType
from src.domain.steps import all_steps, parse_step
from src.infrastructure.repositories import ServiceTierRepository
from src.services.context import FlowContext
from src.workers import event_pump

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(context: FlowContext = Depends(get_flow_context)):
    return HealthResponse(
        strict_navigation=context.store.strict,
        event_pump=event_pump.is_running(),
    )


@router.get("/registry", response_model=RegistryResponse, summary="Screen coverage")
async def registry_coverage(context: FlowContext = Depends(get_flow_context)):
    report = context.registry.validate_coverage(all_steps())
    stats = context.registry.stats()
    return RegistryResponse(
        complete=report.complete,
        missing=[step.value for step in report.missing],
        total_steps=stats.total_steps,
        total_registrations=stats.total_registrations,
        fallback_registrations=stats.fallback_registrations,
    )


@router.get(
    "/registry/{step}",
    response_model=list[RegistrationResponse],
    summary="Registrations for one step, in resolution order",
)
async def step_registrations(
    step: str, context: FlowContext = Depends(get_flow_context)
):
    member = parse_step(step)
    if member is None:
        raise HTTPException(status_code=404, detail="Unknown step")
    return [r.describe() for r in context.registry.all_registrations(member)]


@router.get(
    "/tiers/{service}",
    response_model=list[TierResponse],
    summary="Active tiers for a service",
)
@limiter.limit("100/minute")
async def list_tiers(
    request: Request,
    service: ServiceType,
    db: AsyncSession = Depends(get_db),
):
    return await ServiceTierRepository(db).list_active(service)
