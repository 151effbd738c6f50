"""
Composition root.

``FlowContext`` builds the one store of a session together with everything
that reads or drives it: the step registry and mapper, the event
dispatcher and the auto-navigation engine.  The API holds a single context
on ``app.state``; nothing else constructs a ``FlowStore``.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from src.config import Settings, settings as default_settings
from src.domain.enums import ServiceType
from src.domain.mapper import StepMapper, StepView
from src.domain.registry import StepRegistry
from src.infrastructure.event_dispatcher import EventDispatcher
from src.infrastructure.reference_data import ReferenceDataLoader
from src.screens.catalog import build_registry
from src.services.auto_navigation import AutoNavigator
from src.services.flow_store import FlowStore

logger = logging.getLogger(__name__)


class FlowContext:
    def __init__(
        self,
        *,
        settings: Settings = default_settings,
        loaders: Optional[Mapping[ServiceType, ReferenceDataLoader]] = None,
        registry: Optional[StepRegistry[StepView]] = None,
        strict: Optional[bool] = None,
    ):
        self.settings = settings
        self.registry = registry if registry is not None else build_registry()
        self.mapper = StepMapper(self.registry)
        self.dispatcher = EventDispatcher()
        self.store = FlowStore(
            loaders,
            strict=settings.strict_navigation if strict is None else strict,
            settings=settings,
        )
        self.navigator = AutoNavigator(self.store, self.dispatcher, settings)
        self.navigator.attach()
        logger.info(
            "Flow context ready (strict=%s, loaders=%s)",
            self.store.strict,
            sorted(s.value for s in (loaders or {})),
        )

    def render(self) -> StepView:
        """What the hosting UI should show right now."""
        state = self.store.state
        return self.mapper.create_mapper(state.role, state.service)(state.step)

    def close(self) -> None:
        self.store.cancel_timers()
        self.navigator.detach()
        self.dispatcher.clear()
