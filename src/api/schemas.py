"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from src.domain.enums import FlowRole, JobStatus, RideType, ServiceType, VehicleType


# ── Requests ──────────────────────────────────────────────────────────


class StartRequest(BaseModel):
    role: FlowRole


class ServiceRequest(BaseModel):
    service: ServiceType
    role: Optional[FlowRole] = None
    wait_for_reference_data: bool = Field(
        True,
        description="Await the service's prefetch when its data gates the first step.",
    )


class GoToRequest(BaseModel):
    step: str = Field(..., examples=["customer.transport.select_vehicle"])


class JobRequest(BaseModel):
    job_id: int
    status: JobStatus = JobStatus.PENDING


class TimerRequest(BaseModel):
    timeout_seconds: Optional[float] = Field(
        None, gt=0, description="Defaults to the configured timeout."
    )


class LocationIn(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: Optional[str] = Field(None, max_length=255)


class DetailsRequest(BaseModel):
    """Partial update; only the fields sent are applied."""

    confirmed_origin: Optional[LocationIn] = None
    confirmed_destination: Optional[LocationIn] = None
    phone_number: Optional[str] = Field(None, max_length=32)
    ride_type: Optional[RideType] = None
    selected_tier_id: Optional[int] = None


class EventRequest(BaseModel):
    event: str = Field(..., examples=["job:accepted"])
    data: dict[str, Any] = Field(default_factory=dict)


# ── Responses ─────────────────────────────────────────────────────────


class PanelResponse(BaseModel):
    visible: bool
    min_extent: int
    max_extent: int
    initial_extent: int
    draggable: bool

    model_config = {"from_attributes": True}


class FlowResponse(BaseModel):
    role: Optional[FlowRole] = None
    service: Optional[ServiceType] = None
    step: str
    is_active: bool
    job_id: Optional[int] = None
    job_status: Optional[JobStatus] = None
    matched_agent_id: Optional[int] = None
    eta_minutes: Optional[float] = None
    is_matching: bool = False
    matching_timeout: Optional[float] = None
    matching_started_at: Optional[datetime] = None
    acceptance_timeout: Optional[float] = None
    acceptance_started_at: Optional[datetime] = None
    confirmed_origin: Optional[LocationIn] = None
    confirmed_destination: Optional[LocationIn] = None
    phone_number: Optional[str] = None
    ride_type: RideType
    selected_tier_id: Optional[int] = None
    history: list[str] = []
    panel: PanelResponse


class ViewResponse(BaseModel):
    screen: str
    step: str
    role: Optional[FlowRole] = None
    service: Optional[ServiceType] = None
    props: dict[str, Any] = {}


class QuoteResponse(BaseModel):
    tier_id: Optional[int] = None
    tier_name: str
    distance_km: float
    duration_minutes: float
    price: float

    model_config = {"from_attributes": True}


class NavigationResultResponse(BaseModel):
    outcome: str
    kind: str
    job_id: Optional[int] = None
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    step: Optional[str] = None


class EventResponse(BaseModel):
    delivered: int
    result: Optional[NavigationResultResponse] = None


class RegistrationResponse(BaseModel):
    role: Optional[str] = None
    service: Optional[str] = None
    is_fallback: bool
    priority: int


class RegistryResponse(BaseModel):
    complete: bool
    missing: list[str]
    total_steps: int
    total_registrations: int
    fallback_registrations: int


class HealthResponse(BaseModel):
    status: str = "ok"
    strict_navigation: bool = False
    event_pump: bool = False


class ErrorResponse(BaseModel):
    detail: str


class TierResponse(BaseModel):
    id: int
    service: ServiceType
    name: str
    vehicle_type: Optional[VehicleType] = None
    base_fare: float
    per_km_rate: float
    per_minute_rate: float

    model_config = {"from_attributes": True}
