"""Builds the application's step registry from all screen registrations."""

from __future__ import annotations

import logging

from src.domain.mapper import StepView, placeholder_view
from src.domain.registry import StepRegistry
from src.domain.steps import GenericStep, all_steps
from src.screens.customer_steps import register_customer_steps
from src.screens.driver_steps import register_driver_steps

logger = logging.getLogger(__name__)


def build_registry() -> StepRegistry[StepView]:
    registry: StepRegistry[StepView] = StepRegistry()

    # The idle map is shown regardless of role.
    registry.register(
        GenericStep.IDLE,
        lambda: StepView(screen="IdleMap", step=GenericStep.IDLE),
    )
    registry.register(
        GenericStep.SERVICE_SELECTION,
        lambda: placeholder_view(GenericStep.SERVICE_SELECTION, None, None),
        is_fallback=True,
    )
    register_customer_steps(registry)
    register_driver_steps(registry)

    report = registry.validate_coverage(all_steps())
    if not report.complete:
        logger.warning(
            "Steps without a screen: %s", ", ".join(s.value for s in report.missing)
        )
    return registry
