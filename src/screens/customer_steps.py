"""Screen registrations for customer flows."""

from __future__ import annotations

import logging

from src.domain.enums import FlowRole, ServiceType
from src.domain.mapper import StepView
from src.domain.registry import StepRegistry
from src.domain.steps import (
    CustomerDeliveryStep,
    CustomerErrandStep,
    CustomerParcelStep,
    CustomerTransportStep,
    GenericStep,
)

logger = logging.getLogger(__name__)

CUSTOMER_SCREENS: dict[ServiceType, dict] = {
    ServiceType.TRANSPORT: {
        CustomerTransportStep.DEFINE_TRIP: "TransportDefinition",
        CustomerTransportStep.CONFIRM_ORIGIN: "ConfirmOrigin",
        CustomerTransportStep.CONFIRM_DESTINATION: "ConfirmDestination",
        CustomerTransportStep.SELECT_VEHICLE: "TransportVehicleSelection",
        CustomerTransportStep.PAYMENT_METHOD: "PaymentMethodology",
        CustomerTransportStep.MATCHING: "DriverMatching",
        CustomerTransportStep.AWAIT_ACCEPTANCE: "WaitingForAcceptance",
        CustomerTransportStep.EN_ROUTE: "DriverEnRoute",
        CustomerTransportStep.ARRIVED: "DriverArrived",
        CustomerTransportStep.IN_PROGRESS: "RideInProgress",
        CustomerTransportStep.COMPLETED: "RideCompleted",
        CustomerTransportStep.CANCELLED: "RideCancelled",
    },
    ServiceType.DELIVERY: {
        CustomerDeliveryStep.BUSINESS_SEARCH: "DeliveryBusinessSearch",
        CustomerDeliveryStep.BUILD_ORDER: "OrderBuilder",
        CustomerDeliveryStep.CHECKOUT: "DeliveryCheckout",
        CustomerDeliveryStep.MATCHING: "CourierMatching",
        CustomerDeliveryStep.TRACKING: "DeliveryTracking",
        CustomerDeliveryStep.COMPLETED: "DeliveryCompleted",
        CustomerDeliveryStep.CANCELLED: "DeliveryCancelled",
    },
    ServiceType.ERRAND: {
        CustomerErrandStep.DETAILS: "ErrandDetails",
        CustomerErrandStep.PRICE_AND_PAYMENT: "ErrandPriceAndPayment",
        CustomerErrandStep.MATCHING: "ErrandSearching",
        CustomerErrandStep.IN_PROGRESS: "ErrandCommsAndConfirm",
        CustomerErrandStep.COMPLETED: "ErrandFinalize",
        CustomerErrandStep.CANCELLED: "ErrandCancelled",
    },
    ServiceType.PARCEL: {
        CustomerParcelStep.DETAILS: "ParcelDetails",
        CustomerParcelStep.PRICING_AND_PAYMENT: "ParcelPricingAndPayment",
        CustomerParcelStep.MATCHING: "ParcelCourierSearch",
        CustomerParcelStep.TRACKING: "ParcelTracking",
        CustomerParcelStep.DELIVERY_CONFIRMATION: "ParcelDeliveryConfirm",
        CustomerParcelStep.CANCELLED: "ParcelCancelled",
    },
}


def _view(screen, step, service=None):
    def resolver() -> StepView:
        return StepView(screen=screen, step=step, role=FlowRole.CUSTOMER, service=service)

    return resolver


def register_customer_steps(registry: StepRegistry[StepView]) -> int:
    """Install every customer screen.  Returns the number of registrations."""
    registry.register(
        GenericStep.SERVICE_SELECTION,
        _view("ServiceSelection", GenericStep.SERVICE_SELECTION),
        role=FlowRole.CUSTOMER,
    )
    count = 1

    for service, screens in CUSTOMER_SCREENS.items():
        for step, screen in screens.items():
            registry.register(
                step,
                _view(screen, step, service),
                role=FlowRole.CUSTOMER,
                service=service,
            )
            count += 1

    logger.info("Registered %d customer screens", count)
    return count
