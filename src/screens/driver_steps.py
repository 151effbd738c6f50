"""Screen registrations for driver flows."""

from __future__ import annotations

import logging

from src.domain.enums import FlowRole, ServiceType
from src.domain.mapper import StepView
from src.domain.registry import StepRegistry
from src.domain.steps import (
    DriverDeliveryStep,
    DriverErrandStep,
    DriverGeneralStep,
    DriverParcelStep,
    DriverTransportStep,
    GenericStep,
)

logger = logging.getLogger(__name__)

DRIVER_GENERAL_SCREENS = {
    GenericStep.SERVICE_SELECTION: "DriverServiceSelection",
    DriverGeneralStep.AVAILABILITY: "DriverAvailability",
    DriverGeneralStep.RATING: "DriverTransportRating",
}

DRIVER_SCREENS: dict[ServiceType, dict] = {
    ServiceType.TRANSPORT: {
        DriverTransportStep.INCOMING_REQUEST: "DriverIncomingRequest",
        DriverTransportStep.ACCEPT_OR_REJECT: "DriverTransportAcceptReject",
        DriverTransportStep.EN_ROUTE_TO_ORIGIN: "DriverNavigateToOrigin",
        DriverTransportStep.AT_ORIGIN: "DriverAtOrigin",
        DriverTransportStep.START_TRIP: "DriverStartTrip",
        DriverTransportStep.IN_PROGRESS: "DriverTransportInProgress",
        DriverTransportStep.COMPLETE_TRIP: "DriverTransportEndPayment",
        DriverTransportStep.COMPLETED: "DriverTransportEarnings",
        DriverTransportStep.CANCELLED: "DriverTripCancelled",
    },
    ServiceType.DELIVERY: {
        DriverDeliveryStep.INCOMING_REQUEST: "DriverIncomingRequest",
        DriverDeliveryStep.HEAD_TO_STORE: "DriverDeliveryToStore",
        DriverDeliveryStep.PICK_UP_ORDER: "DriverDeliveryPickup",
        DriverDeliveryStep.EN_ROUTE_TO_CUSTOMER: "DriverDeliveryToCustomer",
        DriverDeliveryStep.DELIVER_ORDER: "DriverDeliveryConfirmFinish",
        DriverDeliveryStep.COMPLETED: "DriverDeliveryEarnings",
        DriverDeliveryStep.CANCELLED: "DriverTripCancelled",
    },
    ServiceType.ERRAND: {
        DriverErrandStep.INCOMING_REQUEST: "DriverIncomingRequest",
        DriverErrandStep.EN_ROUTE_TO_ORIGIN: "DriverErrandNavigateToOriginChat",
        DriverErrandStep.COLLECT_ITEMS: "DriverErrandCollectItems",
        DriverErrandStep.EN_ROUTE_TO_DESTINATION: "DriverErrandToDestination",
        DriverErrandStep.DELIVER_ERRAND: "DriverErrandDeliver",
        DriverErrandStep.COMPLETED: "DriverErrandEarnings",
        DriverErrandStep.CANCELLED: "DriverTripCancelled",
    },
    ServiceType.PARCEL: {
        DriverParcelStep.INCOMING_REQUEST: "DriverIncomingRequest",
        DriverParcelStep.EN_ROUTE_TO_ORIGIN: "DriverParcelToOrigin",
        DriverParcelStep.PICK_UP_PARCEL: "DriverParcelPickup",
        DriverParcelStep.EN_ROUTE_TO_DESTINATION: "DriverParcelToDestination",
        DriverParcelStep.DELIVER_PARCEL: "DriverParcelDeliver",
        DriverParcelStep.COMPLETED: "DriverParcelEarnings",
        DriverParcelStep.CANCELLED: "DriverTripCancelled",
    },
}


def _view(screen, step, service=None):
    def resolver() -> StepView:
        return StepView(screen=screen, step=step, role=FlowRole.DRIVER, service=service)

    return resolver


def register_driver_steps(registry: StepRegistry[StepView]) -> int:
    """Install every driver screen.  Returns the number of registrations."""
    count = 0
    for step, screen in DRIVER_GENERAL_SCREENS.items():
        registry.register(step, _view(screen, step), role=FlowRole.DRIVER)
        count += 1

    for service, screens in DRIVER_SCREENS.items():
        for step, screen in screens.items():
            registry.register(
                step,
                _view(screen, step, service),
                role=FlowRole.DRIVER,
                service=service,
            )
            count += 1

    logger.info("Registered %d driver screens", count)
    return count
