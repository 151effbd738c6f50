"""
Step Catalog
============

Closed enumeration of every step a flow can be in, partitioned into
namespaces:

* **generic**          -- ``idle`` and service selection, valid for any role.
* **driver general**   -- driver-only steps that belong to no service.
* **role x service**   -- one enum per (role, service) pair, ordered the way
  the actor walks through that service's lifecycle.

Every enum value carries its namespace as a prefix
(``"customer.transport.matching"``), so a short name shared by two
namespaces never produces the same token.  Referencing a member that was
never declared is an ``AttributeError`` (and a type-checker error), which is
what keeps callers honest about the catalog.

Besides the enums this module holds the read-only tables the rest of the
engine navigates by: per-namespace sequences, the cancellation and search
steps, and the step that mirrors each backend ``JobStatus``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Union

from .enums import FlowRole, JobStatus, ServiceType


# ── Namespaces ────────────────────────────────────────────────────────


class GenericStep(str, enum.Enum):
    IDLE = "idle"
    SERVICE_SELECTION = "service_selection"


class DriverGeneralStep(str, enum.Enum):
    AVAILABILITY = "driver.availability"
    RATING = "driver.rating"


class CustomerTransportStep(str, enum.Enum):
    DEFINE_TRIP = "customer.transport.define_trip"
    CONFIRM_ORIGIN = "customer.transport.confirm_origin"
    CONFIRM_DESTINATION = "customer.transport.confirm_destination"
    SELECT_VEHICLE = "customer.transport.select_vehicle"
    PAYMENT_METHOD = "customer.transport.payment_method"
    MATCHING = "customer.transport.matching"
    AWAIT_ACCEPTANCE = "customer.transport.await_acceptance"
    EN_ROUTE = "customer.transport.en_route"
    ARRIVED = "customer.transport.arrived"
    IN_PROGRESS = "customer.transport.in_progress"
    COMPLETED = "customer.transport.completed"
    CANCELLED = "customer.transport.cancelled"


class DriverTransportStep(str, enum.Enum):
    INCOMING_REQUEST = "driver.transport.incoming_request"
    ACCEPT_OR_REJECT = "driver.transport.accept_or_reject"
    EN_ROUTE_TO_ORIGIN = "driver.transport.en_route_to_origin"
    AT_ORIGIN = "driver.transport.at_origin"
    START_TRIP = "driver.transport.start_trip"
    IN_PROGRESS = "driver.transport.in_progress"
    COMPLETE_TRIP = "driver.transport.complete_trip"
    COMPLETED = "driver.transport.completed"
    CANCELLED = "driver.transport.cancelled"


class CustomerDeliveryStep(str, enum.Enum):
    BUSINESS_SEARCH = "customer.delivery.business_search"
    BUILD_ORDER = "customer.delivery.build_order"
    CHECKOUT = "customer.delivery.checkout"
    MATCHING = "customer.delivery.matching"
    TRACKING = "customer.delivery.tracking"
    COMPLETED = "customer.delivery.completed"
    CANCELLED = "customer.delivery.cancelled"


class DriverDeliveryStep(str, enum.Enum):
    INCOMING_REQUEST = "driver.delivery.incoming_request"
    HEAD_TO_STORE = "driver.delivery.head_to_store"
    PICK_UP_ORDER = "driver.delivery.pick_up_order"
    EN_ROUTE_TO_CUSTOMER = "driver.delivery.en_route_to_customer"
    DELIVER_ORDER = "driver.delivery.deliver_order"
    COMPLETED = "driver.delivery.completed"
    CANCELLED = "driver.delivery.cancelled"


class CustomerErrandStep(str, enum.Enum):
    DETAILS = "customer.errand.details"
    PRICE_AND_PAYMENT = "customer.errand.price_and_payment"
    MATCHING = "customer.errand.matching"
    IN_PROGRESS = "customer.errand.in_progress"
    COMPLETED = "customer.errand.completed"
    CANCELLED = "customer.errand.cancelled"


class DriverErrandStep(str, enum.Enum):
    INCOMING_REQUEST = "driver.errand.incoming_request"
    EN_ROUTE_TO_ORIGIN = "driver.errand.en_route_to_origin"
    COLLECT_ITEMS = "driver.errand.collect_items"
    EN_ROUTE_TO_DESTINATION = "driver.errand.en_route_to_destination"
    DELIVER_ERRAND = "driver.errand.deliver_errand"
    COMPLETED = "driver.errand.completed"
    CANCELLED = "driver.errand.cancelled"


class CustomerParcelStep(str, enum.Enum):
    DETAILS = "customer.parcel.details"
    PRICING_AND_PAYMENT = "customer.parcel.pricing_and_payment"
    MATCHING = "customer.parcel.matching"
    TRACKING = "customer.parcel.tracking"
    DELIVERY_CONFIRMATION = "customer.parcel.delivery_confirmation"
    CANCELLED = "customer.parcel.cancelled"


class DriverParcelStep(str, enum.Enum):
    INCOMING_REQUEST = "driver.parcel.incoming_request"
    EN_ROUTE_TO_ORIGIN = "driver.parcel.en_route_to_origin"
    PICK_UP_PARCEL = "driver.parcel.pick_up_parcel"
    EN_ROUTE_TO_DESTINATION = "driver.parcel.en_route_to_destination"
    DELIVER_PARCEL = "driver.parcel.deliver_parcel"
    COMPLETED = "driver.parcel.completed"
    CANCELLED = "driver.parcel.cancelled"


CustomerServiceStep = Union[
    CustomerTransportStep, CustomerDeliveryStep, CustomerErrandStep, CustomerParcelStep
]
DriverServiceStep = Union[
    DriverTransportStep, DriverDeliveryStep, DriverErrandStep, DriverParcelStep
]
CustomerFlowStep = Union[GenericStep, CustomerServiceStep]
DriverFlowStep = Union[GenericStep, DriverGeneralStep, DriverServiceStep]
TransportStep = Union[CustomerTransportStep, DriverTransportStep]
DeliveryStep = Union[CustomerDeliveryStep, DriverDeliveryStep]
ErrandStep = Union[CustomerErrandStep, DriverErrandStep]
ParcelStep = Union[CustomerParcelStep, DriverParcelStep]

StepId = Union[GenericStep, DriverGeneralStep, CustomerServiceStep, DriverServiceStep]


# ── Namespace membership ──────────────────────────────────────────────


@dataclass(frozen=True)
class StepNamespace:
    """Where a step lives.  ``None`` means "not scoped" on that axis."""

    role: Optional[FlowRole] = None
    service: Optional[ServiceType] = None

    @property
    def is_generic(self) -> bool:
        return self.role is None and self.service is None


NAMESPACE_ENUMS: dict[StepNamespace, type[enum.Enum]] = {
    StepNamespace(): GenericStep,
    StepNamespace(FlowRole.DRIVER): DriverGeneralStep,
    StepNamespace(FlowRole.CUSTOMER, ServiceType.TRANSPORT): CustomerTransportStep,
    StepNamespace(FlowRole.DRIVER, ServiceType.TRANSPORT): DriverTransportStep,
    StepNamespace(FlowRole.CUSTOMER, ServiceType.DELIVERY): CustomerDeliveryStep,
    StepNamespace(FlowRole.DRIVER, ServiceType.DELIVERY): DriverDeliveryStep,
    StepNamespace(FlowRole.CUSTOMER, ServiceType.ERRAND): CustomerErrandStep,
    StepNamespace(FlowRole.DRIVER, ServiceType.ERRAND): DriverErrandStep,
    StepNamespace(FlowRole.CUSTOMER, ServiceType.PARCEL): CustomerParcelStep,
    StepNamespace(FlowRole.DRIVER, ServiceType.PARCEL): DriverParcelStep,
}

_STEP_NAMESPACE: dict[StepId, StepNamespace] = {
    member: namespace
    for namespace, step_enum in NAMESPACE_ENUMS.items()
    for member in step_enum
}

_TOKENS: dict[str, StepId] = {member.value: member for member in _STEP_NAMESPACE}


# ── Navigation tables ─────────────────────────────────────────────────

FlowKey = tuple[FlowRole, ServiceType]

_C, _D = FlowRole.CUSTOMER, FlowRole.DRIVER
_T, _DL, _E, _P = (
    ServiceType.TRANSPORT,
    ServiceType.DELIVERY,
    ServiceType.ERRAND,
    ServiceType.PARCEL,
)

CANCELLATION_STEPS: dict[FlowKey, StepId] = {
    (_C, _T): CustomerTransportStep.CANCELLED,
    (_D, _T): DriverTransportStep.CANCELLED,
    (_C, _DL): CustomerDeliveryStep.CANCELLED,
    (_D, _DL): DriverDeliveryStep.CANCELLED,
    (_C, _E): CustomerErrandStep.CANCELLED,
    (_D, _E): DriverErrandStep.CANCELLED,
    (_C, _P): CustomerParcelStep.CANCELLED,
    (_D, _P): DriverParcelStep.CANCELLED,
}

# Ordered lifecycle per (role, service).  The cancellation step is a terminal
# alternative, reachable by jump only, so it is not part of the sequence.
STEP_SEQUENCES: dict[FlowKey, tuple[StepId, ...]] = {
    key: tuple(
        step
        for step in NAMESPACE_ENUMS[StepNamespace(*key)]
        if step is not CANCELLATION_STEPS[key]
    )
    for key in CANCELLATION_STEPS
}

# Where a rejected job sends the actor so they can try again.
SEARCH_STEPS: dict[FlowKey, StepId] = {
    (_C, _T): CustomerTransportStep.MATCHING,
    (_D, _T): DriverTransportStep.INCOMING_REQUEST,
    (_C, _DL): CustomerDeliveryStep.MATCHING,
    (_D, _DL): DriverDeliveryStep.INCOMING_REQUEST,
    (_C, _E): CustomerErrandStep.MATCHING,
    (_D, _E): DriverErrandStep.INCOMING_REQUEST,
    (_C, _P): CustomerParcelStep.MATCHING,
    (_D, _P): DriverParcelStep.INCOMING_REQUEST,
}

# The step that mirrors each backend job status.  Several statuses may share
# a step (e.g. a customer tracks a delivery on one screen).
STATUS_STEPS: dict[FlowKey, dict[JobStatus, StepId]] = {
    (_C, _T): {
        JobStatus.PENDING: CustomerTransportStep.AWAIT_ACCEPTANCE,
        JobStatus.ACCEPTED: CustomerTransportStep.EN_ROUTE,
        JobStatus.ARRIVED: CustomerTransportStep.ARRIVED,
        JobStatus.IN_PROGRESS: CustomerTransportStep.IN_PROGRESS,
        JobStatus.COMPLETED: CustomerTransportStep.COMPLETED,
        JobStatus.CANCELLED: CustomerTransportStep.CANCELLED,
    },
    (_D, _T): {
        JobStatus.PENDING: DriverTransportStep.ACCEPT_OR_REJECT,
        JobStatus.ACCEPTED: DriverTransportStep.EN_ROUTE_TO_ORIGIN,
        JobStatus.ARRIVED: DriverTransportStep.AT_ORIGIN,
        JobStatus.IN_PROGRESS: DriverTransportStep.IN_PROGRESS,
        JobStatus.COMPLETED: DriverTransportStep.COMPLETED,
        JobStatus.CANCELLED: DriverTransportStep.CANCELLED,
    },
    (_C, _DL): {
        JobStatus.PENDING: CustomerDeliveryStep.MATCHING,
        JobStatus.ACCEPTED: CustomerDeliveryStep.TRACKING,
        JobStatus.ARRIVED: CustomerDeliveryStep.TRACKING,
        JobStatus.IN_PROGRESS: CustomerDeliveryStep.TRACKING,
        JobStatus.COMPLETED: CustomerDeliveryStep.COMPLETED,
        JobStatus.CANCELLED: CustomerDeliveryStep.CANCELLED,
    },
    (_D, _DL): {
        JobStatus.PENDING: DriverDeliveryStep.INCOMING_REQUEST,
        JobStatus.ACCEPTED: DriverDeliveryStep.HEAD_TO_STORE,
        JobStatus.ARRIVED: DriverDeliveryStep.PICK_UP_ORDER,
        JobStatus.IN_PROGRESS: DriverDeliveryStep.EN_ROUTE_TO_CUSTOMER,
        JobStatus.COMPLETED: DriverDeliveryStep.COMPLETED,
        JobStatus.CANCELLED: DriverDeliveryStep.CANCELLED,
    },
    (_C, _E): {
        JobStatus.PENDING: CustomerErrandStep.MATCHING,
        JobStatus.ACCEPTED: CustomerErrandStep.IN_PROGRESS,
        JobStatus.ARRIVED: CustomerErrandStep.IN_PROGRESS,
        JobStatus.IN_PROGRESS: CustomerErrandStep.IN_PROGRESS,
        JobStatus.COMPLETED: CustomerErrandStep.COMPLETED,
        JobStatus.CANCELLED: CustomerErrandStep.CANCELLED,
    },
    (_D, _E): {
        JobStatus.PENDING: DriverErrandStep.INCOMING_REQUEST,
        JobStatus.ACCEPTED: DriverErrandStep.EN_ROUTE_TO_ORIGIN,
        JobStatus.ARRIVED: DriverErrandStep.COLLECT_ITEMS,
        JobStatus.IN_PROGRESS: DriverErrandStep.EN_ROUTE_TO_DESTINATION,
        JobStatus.COMPLETED: DriverErrandStep.COMPLETED,
        JobStatus.CANCELLED: DriverErrandStep.CANCELLED,
    },
    (_C, _P): {
        JobStatus.PENDING: CustomerParcelStep.MATCHING,
        JobStatus.ACCEPTED: CustomerParcelStep.TRACKING,
        JobStatus.ARRIVED: CustomerParcelStep.TRACKING,
        JobStatus.IN_PROGRESS: CustomerParcelStep.TRACKING,
        JobStatus.COMPLETED: CustomerParcelStep.DELIVERY_CONFIRMATION,
        JobStatus.CANCELLED: CustomerParcelStep.CANCELLED,
    },
    (_D, _P): {
        JobStatus.PENDING: DriverParcelStep.INCOMING_REQUEST,
        JobStatus.ACCEPTED: DriverParcelStep.EN_ROUTE_TO_ORIGIN,
        JobStatus.ARRIVED: DriverParcelStep.PICK_UP_PARCEL,
        JobStatus.IN_PROGRESS: DriverParcelStep.EN_ROUTE_TO_DESTINATION,
        JobStatus.COMPLETED: DriverParcelStep.COMPLETED,
        JobStatus.CANCELLED: DriverParcelStep.CANCELLED,
    },
}


# ── Lookups ───────────────────────────────────────────────────────────


def namespace_of(step: StepId) -> StepNamespace:
    """Namespace a catalog step belongs to.  ``KeyError`` if not a catalog step."""
    return _STEP_NAMESPACE[step]


def is_catalog_step(value: object) -> bool:
    return value in _STEP_NAMESPACE


def parse_step(token: str) -> Optional[StepId]:
    """Resolve a wire token (``"customer.transport.matching"``) to its member."""
    return _TOKENS.get(token)


def all_steps() -> list[StepId]:
    return list(_STEP_NAMESPACE)


def steps_for(role: FlowRole, service: ServiceType) -> tuple[StepId, ...]:
    return STEP_SEQUENCES[(role, service)]


def first_step(role: FlowRole, service: ServiceType) -> StepId:
    return STEP_SEQUENCES[(role, service)][0]


def role_steps(role: FlowRole) -> list[StepId]:
    """Every step scoped to *role* (general and per-service), generic excluded."""
    return [s for s, ns in _STEP_NAMESPACE.items() if ns.role is role]


def service_steps(service: ServiceType) -> list[StepId]:
    return [s for s, ns in _STEP_NAMESPACE.items() if ns.service is service]


def belongs_to(
    step: StepId, role: Optional[FlowRole], service: Optional[ServiceType]
) -> bool:
    """
    True if *step* may be active while the flow is scoped to (role, service).

    Generic steps are always allowed; role-general steps need a matching
    role; service steps need both axes to match.
    """
    namespace = _STEP_NAMESPACE.get(step)
    if namespace is None:
        return False
    if namespace.is_generic:
        return True
    if namespace.role is not role:
        return False
    return namespace.service is None or namespace.service is service


def flow_key_of(step: StepId) -> Optional[FlowKey]:
    """(role, service) of a service-scoped step, else ``None``."""
    namespace = _STEP_NAMESPACE.get(step)
    if namespace is None or namespace.role is None or namespace.service is None:
        return None
    return namespace.role, namespace.service
