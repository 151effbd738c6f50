"""Unit tests for the step registry, the mapper and the screen catalog."""

import pytest

from src.domain.enums import FlowRole, ServiceType
from src.domain.mapper import (
    PLACEHOLDER_SCREEN,
    Resolved,
    StepMapper,
    StepView,
    Unregistered,
)
from src.domain.registry import RegistryError, StepRegistry
from src.domain.steps import (
    CustomerTransportStep,
    DriverTransportStep,
    GenericStep,
    all_steps,
)
from src.screens.catalog import build_registry

STEP = DriverTransportStep.AT_ORIGIN
D, C = FlowRole.DRIVER, FlowRole.CUSTOMER
T, DL = ServiceType.TRANSPORT, ServiceType.DELIVERY


def unit(name):
    return lambda: name


class TestResolution:
    def test_fallback_wins_without_arguments(self):
        registry = StepRegistry()
        registry.register(STEP, unit("driver-transport"), role=D, service=T, priority=1)
        registry.register(STEP, unit("fallback"), is_fallback=True)
        assert registry.resolve(STEP) == "fallback"

    def test_exact_match_beats_higher_priority_partial(self):
        registry = StepRegistry()
        registry.register(STEP, unit("role-only"), role=D, priority=100)
        registry.register(STEP, unit("exact"), role=D, service=T)
        assert registry.resolve(STEP, D, T) == "exact"

    @pytest.mark.parametrize("exact_first", [True, False])
    def test_exact_wins_regardless_of_order(self, exact_first):
        registry = StepRegistry()
        entries = [
            (unit("exact"), {"role": D, "service": T}),
            (unit("generic"), {"priority": 50}),
            (unit("service"), {"service": T, "priority": 10}),
        ]
        if not exact_first:
            entries.reverse()
        for resolver, kwargs in entries:
            registry.register(STEP, resolver, **kwargs)
        assert registry.resolve(STEP, D, T) == "exact"

    def test_tier_order(self):
        registry = StepRegistry()
        registry.register(STEP, unit("generic"))
        registry.register(STEP, unit("service"), service=T)
        registry.register(STEP, unit("role"), role=D)
        assert registry.resolve(STEP, D, DL) == "role"
        assert registry.resolve(STEP, C, T) == "service"
        assert registry.resolve(STEP, C, DL) == "generic"

    def test_priority_breaks_ties_within_tier(self):
        registry = StepRegistry()
        registry.register(STEP, unit("low"), role=D, priority=1)
        registry.register(STEP, unit("high"), role=D, priority=5)
        registry.register(STEP, unit("high-later"), role=D, priority=5)
        assert registry.resolve(STEP, D) == "high"
        priorities = [r.priority for r in registry.all_registrations(STEP)]
        assert priorities == [5, 5, 1]

    def test_nothing_registered(self):
        assert StepRegistry().resolve(STEP, D, T) is None

    def test_foreign_constraints_do_not_match(self):
        registry = StepRegistry()
        registry.register(STEP, unit("driver-transport"), role=D, service=T)
        assert registry.resolve(STEP, C, T) is None


class TestFallbacks:
    def test_second_fallback_requires_explicit_replace(self):
        registry = StepRegistry()
        registry.register(STEP, unit("first"), is_fallback=True)
        with pytest.raises(RegistryError):
            registry.register(STEP, unit("second"), is_fallback=True)
        registry.register(STEP, unit("second"), is_fallback=True, replace_fallback=True)
        assert registry.resolve(STEP) == "second"

    def test_fallback_listed_last(self):
        registry = StepRegistry()
        registry.register(STEP, unit("fallback"), is_fallback=True)
        registry.register(STEP, unit("generic"))
        regs = registry.all_registrations(STEP)
        assert [r.is_fallback for r in regs] == [False, True]


class TestDiagnostics:
    def test_coverage_and_stats(self):
        registry = StepRegistry()
        registry.register_batch({GenericStep.IDLE: unit("idle")})
        registry.register(STEP, unit("fallback"), is_fallback=True)

        report = registry.validate_coverage([GenericStep.IDLE, STEP, DriverTransportStep.START_TRIP])
        assert not report.complete
        assert report.missing == [DriverTransportStep.START_TRIP]

        stats = registry.stats()
        assert stats.total_steps == 2
        assert stats.total_registrations == 1
        assert stats.fallback_registrations == 1

    def test_clear_step_and_clear(self):
        registry = StepRegistry()
        registry.register(STEP, unit("a"))
        registry.register(GenericStep.IDLE, unit("b"))
        registry.clear_step(STEP)
        assert not registry.has_registration(STEP)
        assert registry.has_registration(GenericStep.IDLE)
        registry.clear()
        assert registry.registered_steps() == []


class TestMapper:
    def setup_method(self):
        self.registry = StepRegistry()
        self.registry.register(
            STEP, lambda: StepView("DriverAtOrigin", STEP, D, T), role=D, service=T
        )
        self.mapper = StepMapper(self.registry)

    def test_lookup_models_unregistered(self):
        assert isinstance(self.mapper.lookup(STEP, D, T), Resolved)
        missing = self.mapper.lookup(DriverTransportStep.START_TRIP, D, T)
        assert missing == Unregistered(DriverTransportStep.START_TRIP, D, T)

    def test_create_mapper_renders_placeholder(self):
        render = self.mapper.create_mapper(D, T)
        assert render(STEP).screen == "DriverAtOrigin"
        placeholder = render(DriverTransportStep.START_TRIP)
        assert placeholder.screen == PLACEHOLDER_SCREEN
        assert placeholder.props["title"] == "start trip"


class TestScreenCatalog:
    def setup_method(self):
        self.registry = build_registry()

    def test_every_step_has_a_screen(self):
        report = self.registry.validate_coverage(all_steps())
        assert report.complete, report.missing

    def test_role_specific_service_selection(self):
        customer = self.registry.resolve(GenericStep.SERVICE_SELECTION, C)
        driver = self.registry.resolve(GenericStep.SERVICE_SELECTION, D, T)
        assert customer.screen == "ServiceSelection"
        assert driver.screen == "DriverServiceSelection"
        assert self.registry.resolve(GenericStep.SERVICE_SELECTION).screen == PLACEHOLDER_SCREEN

    def test_service_screens_resolve_in_context(self):
        view = self.registry.resolve(CustomerTransportStep.SELECT_VEHICLE, C, T)
        assert view.screen == "TransportVehicleSelection"
        assert view.role is C and view.service is T

    def test_idle_is_generic(self):
        assert self.registry.resolve(GenericStep.IDLE, D, DL).screen == "IdleMap"
