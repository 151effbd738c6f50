"""
Per-step panel presets.

The hosting UI shows each step inside a bottom panel.  Extents are in
logical pixels; ``visible=False`` hides the panel entirely (e.g. while
idle).  Steps are grouped by what the actor does on them, and every catalog
step maps to exactly one preset.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from .steps import (
    CustomerDeliveryStep,
    CustomerErrandStep,
    CustomerParcelStep,
    CustomerTransportStep,
    DriverDeliveryStep,
    DriverErrandStep,
    DriverGeneralStep,
    DriverParcelStep,
    DriverTransportStep,
    GenericStep,
    StepId,
)


@dataclass(frozen=True)
class PanelConfig:
    visible: bool = True
    min_extent: int = 100
    max_extent: int = 500
    initial_extent: int = 200
    draggable: bool = True

    def with_overrides(self, **overrides) -> "PanelConfig":
        return replace(self, **overrides)


HIDDEN = PanelConfig(visible=False, min_extent=0, max_extent=0, initial_extent=0)
FORM = PanelConfig(min_extent=300, max_extent=720, initial_extent=520)
PICKER = PanelConfig(min_extent=140, max_extent=420, initial_extent=260)
WAITING = PanelConfig(min_extent=220, max_extent=360, initial_extent=300, draggable=False)
TRACKING = PanelConfig(min_extent=160, max_extent=560, initial_extent=240)
SUMMARY = PanelConfig(min_extent=360, max_extent=640, initial_extent=520, draggable=False)

_PRESETS: dict[StepId, PanelConfig] = {
    GenericStep.IDLE: HIDDEN,
    GenericStep.SERVICE_SELECTION: PICKER,
    DriverGeneralStep.AVAILABILITY: TRACKING,
    DriverGeneralStep.RATING: SUMMARY,
    # customer / transport
    CustomerTransportStep.DEFINE_TRIP: FORM,
    CustomerTransportStep.CONFIRM_ORIGIN: PICKER,
    CustomerTransportStep.CONFIRM_DESTINATION: PICKER,
    CustomerTransportStep.SELECT_VEHICLE: FORM,
    CustomerTransportStep.PAYMENT_METHOD: FORM,
    CustomerTransportStep.MATCHING: WAITING,
    CustomerTransportStep.AWAIT_ACCEPTANCE: WAITING,
    CustomerTransportStep.EN_ROUTE: TRACKING,
    CustomerTransportStep.ARRIVED: TRACKING,
    CustomerTransportStep.IN_PROGRESS: TRACKING,
    CustomerTransportStep.COMPLETED: SUMMARY,
    CustomerTransportStep.CANCELLED: SUMMARY,
    # driver / transport
    DriverTransportStep.INCOMING_REQUEST: WAITING,
    DriverTransportStep.ACCEPT_OR_REJECT: SUMMARY,
    DriverTransportStep.EN_ROUTE_TO_ORIGIN: TRACKING,
    DriverTransportStep.AT_ORIGIN: TRACKING,
    DriverTransportStep.START_TRIP: PICKER,
    DriverTransportStep.IN_PROGRESS: TRACKING,
    DriverTransportStep.COMPLETE_TRIP: PICKER,
    DriverTransportStep.COMPLETED: SUMMARY,
    DriverTransportStep.CANCELLED: SUMMARY,
    # customer / delivery
    CustomerDeliveryStep.BUSINESS_SEARCH: FORM,
    CustomerDeliveryStep.BUILD_ORDER: FORM,
    CustomerDeliveryStep.CHECKOUT: FORM,
    CustomerDeliveryStep.MATCHING: WAITING,
    CustomerDeliveryStep.TRACKING: TRACKING,
    CustomerDeliveryStep.COMPLETED: SUMMARY,
    CustomerDeliveryStep.CANCELLED: SUMMARY,
    # driver / delivery
    DriverDeliveryStep.INCOMING_REQUEST: WAITING,
    DriverDeliveryStep.HEAD_TO_STORE: TRACKING,
    DriverDeliveryStep.PICK_UP_ORDER: PICKER,
    DriverDeliveryStep.EN_ROUTE_TO_CUSTOMER: TRACKING,
    DriverDeliveryStep.DELIVER_ORDER: PICKER,
    DriverDeliveryStep.COMPLETED: SUMMARY,
    DriverDeliveryStep.CANCELLED: SUMMARY,
    # customer / errand
    CustomerErrandStep.DETAILS: FORM,
    CustomerErrandStep.PRICE_AND_PAYMENT: FORM,
    CustomerErrandStep.MATCHING: WAITING,
    CustomerErrandStep.IN_PROGRESS: TRACKING,
    CustomerErrandStep.COMPLETED: SUMMARY,
    CustomerErrandStep.CANCELLED: SUMMARY,
    # driver / errand
    DriverErrandStep.INCOMING_REQUEST: WAITING,
    DriverErrandStep.EN_ROUTE_TO_ORIGIN: TRACKING,
    DriverErrandStep.COLLECT_ITEMS: PICKER,
    DriverErrandStep.EN_ROUTE_TO_DESTINATION: TRACKING,
    DriverErrandStep.DELIVER_ERRAND: PICKER,
    DriverErrandStep.COMPLETED: SUMMARY,
    DriverErrandStep.CANCELLED: SUMMARY,
    # customer / parcel
    CustomerParcelStep.DETAILS: FORM,
    CustomerParcelStep.PRICING_AND_PAYMENT: FORM,
    CustomerParcelStep.MATCHING: WAITING,
    CustomerParcelStep.TRACKING: TRACKING,
    CustomerParcelStep.DELIVERY_CONFIRMATION: SUMMARY,
    CustomerParcelStep.CANCELLED: SUMMARY,
    # driver / parcel
    DriverParcelStep.INCOMING_REQUEST: WAITING,
    DriverParcelStep.EN_ROUTE_TO_ORIGIN: TRACKING,
    DriverParcelStep.PICK_UP_PARCEL: PICKER,
    DriverParcelStep.EN_ROUTE_TO_DESTINATION: TRACKING,
    DriverParcelStep.DELIVER_PARCEL: PICKER,
    DriverParcelStep.COMPLETED: SUMMARY,
    DriverParcelStep.CANCELLED: SUMMARY,
}


def default_panel(step: StepId) -> PanelConfig:
    return _PRESETS[step]
