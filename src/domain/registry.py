"""
Step Registry
=============

Maps (step, role, service) to a renderable unit.

Each step holds an ordered list of *specific* registrations (descending
priority, ties kept in insertion order) plus at most one *fallback*.

Resolution order
----------------
Given ``resolve(step, role, service)``, the specific registrations are
scanned tier by tier, each tier in priority order:

1. registration role == role **and** registration service == service
   (only when both arguments are given);
2. registration role == role, no service constraint;
3. registration service == service, no role constraint;
4. generic registration (no constraint at all).

The first tier with a hit wins; priority only breaks ties *inside* a tier,
so a high-priority role-only default can never pre-empt an exact
role+service registration.  With no hit the step's fallback is returned,
else ``None``.

Complexity: O(k) per lookup, k = registrations for that step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, Mapping, Optional, TypeVar

from .enums import FlowRole, ServiceType
from .steps import StepId

logger = logging.getLogger(__name__)

U = TypeVar("U")


class RegistryError(Exception):
    """Raised when a registration would silently replace an existing fallback."""


@dataclass(frozen=True)
class StepRegistration(Generic[U]):
    resolver: Callable[[], U]
    role: Optional[FlowRole] = None
    service: Optional[ServiceType] = None
    is_fallback: bool = False
    priority: int = 0

    def describe(self) -> dict[str, Any]:
        return {
            "role": self.role.value if self.role else None,
            "service": self.service.value if self.service else None,
            "is_fallback": self.is_fallback,
            "priority": self.priority,
        }


@dataclass(frozen=True)
class CoverageReport:
    complete: bool
    missing: list[StepId]


@dataclass(frozen=True)
class RegistryStats:
    total_steps: int
    total_registrations: int
    fallback_registrations: int


class StepRegistry(Generic[U]):
    def __init__(self) -> None:
        self._specific: dict[StepId, list[StepRegistration[U]]] = {}
        self._fallbacks: dict[StepId, StepRegistration[U]] = {}

    # ── Registration ──────────────────────────────────────────────────

    def register(
        self,
        step: StepId,
        resolver: Callable[[], U],
        *,
        role: Optional[FlowRole] = None,
        service: Optional[ServiceType] = None,
        is_fallback: bool = False,
        priority: int = 0,
        replace_fallback: bool = False,
    ) -> StepRegistration[U]:
        registration = StepRegistration(
            resolver=resolver,
            role=role,
            service=service,
            is_fallback=is_fallback,
            priority=priority,
        )

        if is_fallback:
            if step in self._fallbacks and not replace_fallback:
                raise RegistryError(
                    f"Fallback already registered for {step.value}; "
                    "pass replace_fallback=True to overwrite it"
                )
            self._fallbacks[step] = registration
            return registration

        entries = self._specific.setdefault(step, [])
        # Insert before the first entry with strictly lower priority so that
        # equal priorities keep their insertion order.
        index = next(
            (i for i, existing in enumerate(entries) if existing.priority < priority),
            len(entries),
        )
        entries.insert(index, registration)
        return registration

    def register_batch(self, resolvers: Mapping[StepId, Callable[[], U]]) -> None:
        """Register a generic (unconstrained) resolver for each step."""
        for step, resolver in resolvers.items():
            self.register(step, resolver)

    # ── Lookup ────────────────────────────────────────────────────────

    def find(
        self,
        step: StepId,
        role: Optional[FlowRole] = None,
        service: Optional[ServiceType] = None,
    ) -> Optional[StepRegistration[U]]:
        """Best-matching registration (fallback included) or ``None``."""
        entries = self._specific.get(step, [])

        tiers: list[Callable[[StepRegistration[U]], bool]] = []
        if role is not None and service is not None:
            tiers.append(lambda r: r.role is role and r.service is service)
        if role is not None:
            tiers.append(lambda r: r.role is role and r.service is None)
        if service is not None:
            tiers.append(lambda r: r.role is None and r.service is service)
        tiers.append(lambda r: r.role is None and r.service is None)

        for matches in tiers:
            for registration in entries:
                if matches(registration):
                    return registration

        return self._fallbacks.get(step)

    def resolve(
        self,
        step: StepId,
        role: Optional[FlowRole] = None,
        service: Optional[ServiceType] = None,
    ) -> Optional[U]:
        registration = self.find(step, role, service)
        if registration is None:
            logger.debug(
                "No registration for step=%s role=%s service=%s", step, role, service
            )
            return None
        return registration.resolver()

    def has_registration(self, step: StepId) -> bool:
        return bool(self._specific.get(step)) or step in self._fallbacks

    def all_registrations(self, step: StepId) -> list[StepRegistration[U]]:
        """Specific registrations in resolution order, fallback last."""
        result = list(self._specific.get(step, []))
        if step in self._fallbacks:
            result.append(self._fallbacks[step])
        return result

    def registered_steps(self) -> list[StepId]:
        steps = [s for s, entries in self._specific.items() if entries]
        steps.extend(s for s in self._fallbacks if s not in steps)
        return steps

    # ── Diagnostics ───────────────────────────────────────────────────

    def validate_coverage(self, required_steps: Iterable[StepId]) -> CoverageReport:
        missing = [s for s in required_steps if not self.has_registration(s)]
        return CoverageReport(complete=not missing, missing=missing)

    def stats(self) -> RegistryStats:
        return RegistryStats(
            total_steps=len(self.registered_steps()),
            total_registrations=sum(len(e) for e in self._specific.values()),
            fallback_registrations=len(self._fallbacks),
        )

    def clear(self) -> None:
        self._specific.clear()
        self._fallbacks.clear()

    def clear_step(self, step: StepId) -> None:
        self._specific.pop(step, None)
        self._fallbacks.pop(step, None)
