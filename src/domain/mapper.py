"""
Step -> view mapping used by the hosting UI.

``StepMapper`` binds the registry's ``resolve`` to a (role, service) pair
and turns "nothing registered" into an explicit ``Unregistered`` outcome,
rendered as a placeholder view instead of a ``None`` the caller might trip
over.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Union

from .enums import FlowRole, ServiceType
from .registry import StepRegistry
from .steps import StepId

logger = logging.getLogger(__name__)

PLACEHOLDER_SCREEN = "UnregisteredStep"


@dataclass(frozen=True)
class StepView:
    """What the hosting UI should render for a step."""

    screen: str
    step: StepId
    role: Optional[FlowRole] = None
    service: Optional[ServiceType] = None
    props: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "screen": self.screen,
            "step": self.step.value,
            "role": self.role.value if self.role else None,
            "service": self.service.value if self.service else None,
            "props": dict(self.props),
        }


@dataclass(frozen=True)
class Resolved:
    view: StepView


@dataclass(frozen=True)
class Unregistered:
    step: StepId
    role: Optional[FlowRole]
    service: Optional[ServiceType]


StepResolution = Union[Resolved, Unregistered]


def placeholder_view(
    step: StepId, role: Optional[FlowRole], service: Optional[ServiceType]
) -> StepView:
    return StepView(
        screen=PLACEHOLDER_SCREEN,
        step=step,
        role=role,
        service=service,
        props={"title": step.value.rsplit(".", 1)[-1].replace("_", " ")},
    )


class StepMapper:
    def __init__(self, registry: StepRegistry[StepView]):
        self.registry = registry

    def lookup(
        self,
        step: StepId,
        role: Optional[FlowRole] = None,
        service: Optional[ServiceType] = None,
    ) -> StepResolution:
        view = self.registry.resolve(step, role, service)
        if view is None:
            return Unregistered(step, role, service)
        return Resolved(view)

    def map_step(
        self,
        step: StepId,
        role: Optional[FlowRole] = None,
        service: Optional[ServiceType] = None,
    ) -> StepView:
        resolution = self.lookup(step, role, service)
        if isinstance(resolution, Resolved):
            return resolution.view
        logger.warning(
            "Rendering placeholder for unregistered step %s (role=%s service=%s)",
            step, role, service,
        )
        return placeholder_view(step, role, service)

    def create_mapper(
        self,
        role: Optional[FlowRole] = None,
        service: Optional[ServiceType] = None,
    ) -> Callable[[StepId], StepView]:
        """Render function bound to one (role, service) context."""

        def render(step: StepId) -> StepView:
            return self.map_step(step, role, service)

        return render
