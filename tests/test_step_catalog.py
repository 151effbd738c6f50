"""Unit tests for the step catalog, its navigation tables and panel presets."""

import pytest

from src.domain.enums import FlowRole, JobStatus, ServiceType
from src.domain.panels import HIDDEN, default_panel
from src.domain.steps import (
    CANCELLATION_STEPS,
    SEARCH_STEPS,
    STATUS_STEPS,
    STEP_SEQUENCES,
    CustomerParcelStep,
    CustomerTransportStep,
    DriverGeneralStep,
    DriverTransportStep,
    GenericStep,
    StepNamespace,
    all_steps,
    belongs_to,
    first_step,
    flow_key_of,
    is_catalog_step,
    namespace_of,
    parse_step,
    role_steps,
    service_steps,
    steps_for,
)

ALL_KEYS = [(role, service) for role in FlowRole for service in ServiceType]


class TestCatalog:
    def test_values_are_unique(self):
        values = [step.value for step in all_steps()]
        assert len(values) == len(set(values))

    def test_same_short_name_differs_across_namespaces(self):
        assert CustomerTransportStep.MATCHING.value != CustomerParcelStep.MATCHING.value
        assert CustomerTransportStep.MATCHING != CustomerParcelStep.MATCHING

    def test_undeclared_member_is_an_error(self):
        with pytest.raises(AttributeError):
            CustomerTransportStep.NOT_A_STEP  # noqa: B018

    def test_namespace_of(self):
        assert namespace_of(GenericStep.IDLE).is_generic
        assert namespace_of(DriverGeneralStep.RATING) == StepNamespace(FlowRole.DRIVER)
        assert namespace_of(CustomerTransportStep.EN_ROUTE) == StepNamespace(
            FlowRole.CUSTOMER, ServiceType.TRANSPORT
        )

    def test_parse_step(self):
        assert parse_step("customer.transport.matching") is CustomerTransportStep.MATCHING
        assert parse_step("idle") is GenericStep.IDLE
        assert parse_step("customer.transport.nope") is None

    def test_is_catalog_step(self):
        assert is_catalog_step(DriverTransportStep.AT_ORIGIN)
        assert not is_catalog_step(object())

    def test_role_and_service_partitions(self):
        customer = set(role_steps(FlowRole.CUSTOMER))
        driver = set(role_steps(FlowRole.DRIVER))
        assert not customer & driver
        assert DriverGeneralStep.AVAILABILITY in driver
        assert GenericStep.IDLE not in customer | driver

        transport = set(service_steps(ServiceType.TRANSPORT))
        assert CustomerTransportStep.MATCHING in transport
        assert DriverTransportStep.START_TRIP in transport
        assert DriverGeneralStep.RATING not in transport

    def test_flow_key_of(self):
        assert flow_key_of(DriverTransportStep.AT_ORIGIN) == (
            FlowRole.DRIVER, ServiceType.TRANSPORT
        )
        assert flow_key_of(DriverGeneralStep.RATING) is None
        assert flow_key_of(GenericStep.SERVICE_SELECTION) is None


class TestMembership:
    def test_generic_steps_belong_everywhere(self):
        assert belongs_to(GenericStep.IDLE, None, None)
        assert belongs_to(GenericStep.SERVICE_SELECTION, FlowRole.DRIVER, ServiceType.ERRAND)

    def test_driver_general_needs_driver_role(self):
        assert belongs_to(DriverGeneralStep.RATING, FlowRole.DRIVER, ServiceType.PARCEL)
        assert belongs_to(DriverGeneralStep.RATING, FlowRole.DRIVER, None)
        assert not belongs_to(DriverGeneralStep.RATING, FlowRole.CUSTOMER, None)

    def test_service_steps_need_both_axes(self):
        step = CustomerTransportStep.SELECT_VEHICLE
        assert belongs_to(step, FlowRole.CUSTOMER, ServiceType.TRANSPORT)
        assert not belongs_to(step, FlowRole.CUSTOMER, ServiceType.DELIVERY)
        assert not belongs_to(step, FlowRole.DRIVER, ServiceType.TRANSPORT)
        assert not belongs_to(step, FlowRole.CUSTOMER, None)


class TestNavigationTables:
    @pytest.mark.parametrize("key", ALL_KEYS)
    def test_sequences_stay_in_their_namespace(self, key):
        sequence = STEP_SEQUENCES[key]
        assert sequence
        assert all(namespace_of(s) == StepNamespace(*key) for s in sequence)
        assert CANCELLATION_STEPS[key] not in sequence

    @pytest.mark.parametrize("key", ALL_KEYS)
    def test_search_step_is_in_sequence(self, key):
        assert SEARCH_STEPS[key] in STEP_SEQUENCES[key]

    @pytest.mark.parametrize("key", ALL_KEYS)
    def test_status_steps_cover_every_non_rejected_status(self, key):
        mapping = STATUS_STEPS[key]
        expected = set(JobStatus) - {JobStatus.REJECTED}
        assert set(mapping) == expected
        assert mapping[JobStatus.CANCELLED] is CANCELLATION_STEPS[key]
        for status, step in mapping.items():
            if status is not JobStatus.CANCELLED:
                assert step in STEP_SEQUENCES[key]

    @pytest.mark.parametrize("key", ALL_KEYS)
    def test_status_steps_never_go_backwards(self, key):
        sequence = STEP_SEQUENCES[key]
        mapping = STATUS_STEPS[key]
        order = [
            JobStatus.PENDING,
            JobStatus.ACCEPTED,
            JobStatus.ARRIVED,
            JobStatus.IN_PROGRESS,
            JobStatus.COMPLETED,
        ]
        positions = [sequence.index(mapping[s]) for s in order]
        assert positions == sorted(positions)

    def test_first_step_and_steps_for(self):
        assert first_step(FlowRole.CUSTOMER, ServiceType.TRANSPORT) is (
            CustomerTransportStep.DEFINE_TRIP
        )
        assert steps_for(FlowRole.DRIVER, ServiceType.TRANSPORT)[-1] is (
            DriverTransportStep.COMPLETED
        )


class TestPanels:
    def test_every_step_has_a_panel(self):
        for step in all_steps():
            assert default_panel(step) is not None

    def test_idle_panel_is_hidden(self):
        assert default_panel(GenericStep.IDLE) == HIDDEN
        assert not HIDDEN.visible

    def test_extents_are_ordered(self):
        for step in all_steps():
            panel = default_panel(step)
            assert panel.min_extent <= panel.initial_extent <= panel.max_extent

    def test_with_overrides_returns_copy(self):
        panel = default_panel(CustomerTransportStep.MATCHING)
        changed = panel.with_overrides(initial_extent=250)
        assert changed.initial_extent == 250
        assert panel.initial_extent == 300
