"""
Domain entities for the flow engine.

``FlowState`` is an immutable value: the store replaces it wholesale on
every mutation, so a reader never observes a half-applied change.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

from .enums import FlowRole, JobStatus, RideType, ServiceType, VehicleType
from .panels import PanelConfig, default_panel
from .steps import GenericStep, StepId


class InvalidNavigation(Exception):
    """Raised (in strict mode) when a jump targets a step outside the active flow."""


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    address: Optional[str] = None


# ── Aggregate ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FlowState:
    role: Optional[FlowRole] = None
    service: Optional[ServiceType] = None
    step: StepId = GenericStep.IDLE
    is_active: bool = False

    job_id: Optional[int] = None
    job_status: Optional[JobStatus] = None
    matched_agent_id: Optional[int] = None
    eta_minutes: Optional[float] = None

    # Local timers (seconds); a timer is running while its start time is set.
    is_matching: bool = False
    matching_timeout: Optional[float] = None
    matching_started_at: Optional[datetime] = None
    acceptance_timeout: Optional[float] = None
    acceptance_started_at: Optional[datetime] = None

    confirmed_origin: Optional[Location] = None
    confirmed_destination: Optional[Location] = None
    phone_number: Optional[str] = None
    ride_type: RideType = RideType.NORMAL
    selected_tier_id: Optional[int] = None

    history: tuple[StepId, ...] = ()
    panel: PanelConfig = field(default_factory=lambda: default_panel(GenericStep.IDLE))

    def __post_init__(self) -> None:
        if not self.is_active and (self.step is not GenericStep.IDLE or self.job_id is not None):
            raise ValueError("inactive flow must be idle with no job")
        if not self.is_active and (self.is_matching or self.acceptance_started_at is not None):
            raise ValueError("inactive flow cannot run timers")
        if self.service is not None and self.role is None:
            raise ValueError("a service needs a role")

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view for logs and API responses."""
        data = asdict(self)
        data["history"] = [s.value for s in self.history]
        for key in ("role", "service", "step", "job_status", "ride_type"):
            if data[key] is not None:
                data[key] = data[key].value
        return data


# ── Reference data ────────────────────────────────────────────────────


@dataclass(frozen=True)
class ServiceTier:
    """A priced tier offered for a service (e.g. "Comfort" for transport)."""

    id: int
    service: ServiceType
    name: str
    base_fare: float
    per_km_rate: float
    per_minute_rate: float = 0.0
    vehicle_type: Optional[VehicleType] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "service": self.service.value,
            "name": self.name,
            "base_fare": self.base_fare,
            "per_km_rate": self.per_km_rate,
            "per_minute_rate": self.per_minute_rate,
            "vehicle_type": self.vehicle_type.value if self.vehicle_type else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServiceTier":
        vehicle_type = data.get("vehicle_type")
        return cls(
            id=int(data["id"]),
            service=ServiceType(data["service"]),
            name=data["name"],
            base_fare=float(data["base_fare"]),
            per_km_rate=float(data["per_km_rate"]),
            per_minute_rate=float(data.get("per_minute_rate") or 0.0),
            vehicle_type=VehicleType(vehicle_type) if vehicle_type else None,
        )
