"""
Flow State Store
================

The single source of truth for "which step is active, for which role and
service, backed by which job".  Every mutation goes through a method on
``FlowStore`` and replaces the frozen ``FlowState`` wholesale, so readers
never lock and never see a half-applied change.

Navigation rules
----------------
* ``next`` / ``back`` move one position inside the active (role, service)
  sequence and are no-ops at either end or outside the sequence.
* ``go_to`` only accepts steps from the generic namespace, the active role's
  general namespace, or the active (role, service) namespace.
* Anything else is *invalid navigation*: ``InvalidNavigation`` is raised when
  the store is strict (development) and a warning is logged otherwise.

Reference data
--------------
Entering a service schedules a prefetch through that service's
``ReferenceDataLoader`` (cached copy first, then a fresh fetch).  At most
one prefetch per service runs at a time; failures are logged and never
undo the navigation that triggered them.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from src.config import Settings, settings as default_settings
from src.domain.entities import FlowState, InvalidNavigation, Location
from src.domain.enums import FlowRole, JobStatus, RideType, ServiceType
from src.domain.panels import PanelConfig, default_panel
from src.domain.steps import (
    SEARCH_STEPS,
    STEP_SEQUENCES,
    CustomerFlowStep,
    DeliveryStep,
    DriverFlowStep,
    ErrandStep,
    GenericStep,
    ParcelStep,
    StepId,
    TransportStep,
    belongs_to,
    first_step,
    is_catalog_step,
    namespace_of,
    parse_step,
)
from src.infrastructure.reference_data import ReferenceDataLoader

logger = logging.getLogger(__name__)

StateListener = Callable[[FlowState, FlowState], None]

HISTORY_LIMIT = 50

_KEEP: Any = object()

_JOB_CLEARED = {"job_id": None, "job_status": None, "matched_agent_id": None, "eta_minutes": None}
_TIMERS_OFF = {"is_matching": False, "matching_started_at": None, "acceptance_started_at": None}


class FlowStore:
    def __init__(
        self,
        loaders: Optional[Mapping[ServiceType, ReferenceDataLoader]] = None,
        *,
        strict: bool = False,
        settings: Settings = default_settings,
    ):
        self.strict = strict
        self.matching_timeout_seconds = settings.matching_timeout_seconds
        self.acceptance_timeout_seconds = settings.acceptance_timeout_seconds
        self._state = FlowState()
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._loaders: dict[ServiceType, ReferenceDataLoader] = dict(loaders or {})
        self._listeners: list[StateListener] = []
        self._reference: dict[ServiceType, Any] = {}
        self._prefetches: dict[ServiceType, asyncio.Task] = {}
        self._panel_overrides: dict[StepId, PanelConfig] = {}

    # ── Reads ─────────────────────────────────────────────────────────

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def history(self) -> tuple[StepId, ...]:
        return self._state.history

    def snapshot(self) -> dict[str, Any]:
        return self._state.to_dict()

    def reference_data(self, service: ServiceType) -> Any:
        """Last prefetched reference data for *service*, or ``None``."""
        return self._reference.get(service)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener(new, old)`` after every change.  Returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    # ── Lifecycle ─────────────────────────────────────────────────────

    def start(self, role: FlowRole) -> FlowState:
        role = FlowRole(role)
        current = self._state
        if (
            current.is_active
            and current.role is role
            and current.step is GenericStep.SERVICE_SELECTION
        ):
            return current

        self.cancel_timers()
        return self._commit(
            role=role,
            service=None,
            step=GenericStep.SERVICE_SELECTION,
            is_active=True,
            **_JOB_CLEARED,
            **_TIMERS_OFF,
        )

    def start_service(
        self, service: ServiceType, role: Optional[FlowRole] = None
    ) -> Optional[PanelConfig]:
        """Enter *service* at its first step and schedule its prefetch."""
        if not self._state.is_active:
            return self._invalid(f"cannot start service {service!r}: flow is not active")

        try:
            service = ServiceType(service)
            role = FlowRole(role) if role is not None else self._state.role
        except ValueError:
            return self._invalid(f"unknown role or service: {role!r}/{service!r}")
        if role is None:
            return self._invalid(f"cannot start service {service.value}: no role chosen")

        self._commit(
            role=role,
            service=service,
            step=first_step(role, service),
            **self._leaving_flow(role, service),
        )
        self._schedule_prefetch(service)
        return self._state.panel

    async def open_service(
        self, service: ServiceType, role: Optional[FlowRole] = None
    ) -> Optional[PanelConfig]:
        """
        ``start_service``, then wait for the prefetch if the service's loader
        requires its data before the first step renders.
        """
        panel = self.start_service(service, role)
        if panel is None:
            return None
        loader = self._loaders.get(self._state.service)
        task = self._prefetches.get(self._state.service)
        if loader is not None and loader.required_before_render and task is not None:
            await task
        return panel

    def stop(self) -> FlowState:
        self.cancel_timers()
        return self._commit(
            is_active=False,
            step=GenericStep.IDLE,
            **_JOB_CLEARED,
            **_TIMERS_OFF,
        )

    def reset(self) -> FlowState:
        self.cancel_timers()
        self._panel_overrides.clear()
        return self._swap(FlowState())

    # ── Navigation ────────────────────────────────────────────────────

    def next(self) -> StepId:
        return self._step_by(+1)

    def back(self) -> StepId:
        return self._step_by(-1)

    def go_to(self, step: StepId) -> FlowState:
        state = self._state
        if not isinstance(step, enum.Enum) or not is_catalog_step(step):
            self._invalid(f"{step!r} is not a known step")
            return state
        if step is state.step:
            return state
        if not state.is_active:
            self._invalid(f"cannot go to {step.value}: flow is not active")
            return state
        if not belongs_to(step, state.role, state.service):
            self._invalid(
                f"{step.value} is outside the active flow "
                f"(role={_value(state.role)} service={_value(state.service)})"
            )
            return state
        return self._commit(step=step)

    def go_to_step(self, name: str) -> FlowState:
        step = parse_step(name)
        if step is None:
            self._invalid(f"unknown step token {name!r}")
            return self._state
        return self.go_to(step)

    # ── Direct entry ──────────────────────────────────────────────────

    def start_with_customer_step(self, step: CustomerFlowStep) -> Optional[PanelConfig]:
        return self._start_with(step, role=FlowRole.CUSTOMER)

    def start_with_driver_step(self, step: DriverFlowStep) -> Optional[PanelConfig]:
        return self._start_with(step, role=FlowRole.DRIVER)

    def start_with_transport_step(self, step: TransportStep) -> Optional[PanelConfig]:
        return self._start_with(step, service=ServiceType.TRANSPORT)

    def start_with_delivery_step(self, step: DeliveryStep) -> Optional[PanelConfig]:
        return self._start_with(step, service=ServiceType.DELIVERY)

    def start_with_errand_step(self, step: ErrandStep) -> Optional[PanelConfig]:
        return self._start_with(step, service=ServiceType.ERRAND)

    def start_with_parcel_step(self, step: ParcelStep) -> Optional[PanelConfig]:
        return self._start_with(step, service=ServiceType.PARCEL)

    def start_with_config(
        self, step: StepId, role: Optional[FlowRole] = None
    ) -> Optional[PanelConfig]:
        """
        Activate *step* directly.  A generic step keeps the flow's current
        role unless *role* is given; with neither it is invalid navigation.
        """
        return self._start_with(step, role=role)

    def get_initial_step_config(self, step: StepId) -> PanelConfig:
        return self._panel_for(step)

    def update_step_panel(self, step: StepId, **overrides) -> PanelConfig:
        panel = self._panel_for(step).with_overrides(**overrides)
        self._panel_overrides[step] = panel
        if self._state.step is step:
            self._commit(panel=panel)
        return panel

    # ── Setters (no navigation) ───────────────────────────────────────

    def set_confirmed_origin(self, location: Optional[Location]) -> FlowState:
        return self._commit(confirmed_origin=location)

    def set_confirmed_destination(self, location: Optional[Location]) -> FlowState:
        return self._commit(confirmed_destination=location)

    def set_phone_number(self, phone_number: Optional[str]) -> FlowState:
        return self._commit(phone_number=phone_number)

    def set_ride_type(self, ride_type: RideType) -> FlowState:
        return self._commit(ride_type=RideType(ride_type))

    def set_selected_tier(self, tier_id: Optional[int]) -> FlowState:
        return self._commit(selected_tier_id=tier_id)

    def set_matched_agent(
        self, agent_id: Optional[int], eta_minutes: Optional[float] = None
    ) -> FlowState:
        """Record the matched agent; a match ends the matching timer."""
        changes: dict[str, Any] = {"matched_agent_id": agent_id, "eta_minutes": eta_minutes}
        if agent_id is not None:
            self._disarm("matching")
            changes.update(is_matching=False, matching_started_at=None)
        return self._commit(**changes)

    def set_job(self, job_id: int, status: JobStatus = JobStatus.PENDING) -> FlowState:
        if not self._state.is_active:
            self._invalid(f"cannot track job {job_id}: flow is not active")
            return self._state
        return self._commit(
            job_id=job_id,
            job_status=JobStatus(status),
            matched_agent_id=None,
            eta_minutes=None,
        )

    def clear_job(self) -> FlowState:
        self.cancel_timers()
        return self._commit(**_JOB_CLEARED, **_TIMERS_OFF)

    def apply_job_update(
        self,
        job_id: int,
        status: JobStatus,
        *,
        step: Optional[StepId] = None,
        matched_agent_id: Any = _KEEP,
        eta_minutes: Any = _KEEP,
    ) -> FlowState:
        """Record a job status (and optionally move to *step*) in one replacement."""
        state = self._state
        if state.job_id is None or state.job_id != job_id:
            logger.debug("Job update for %s ignored; current job is %s", job_id, state.job_id)
            return state
        if step is not None and not belongs_to(step, state.role, state.service):
            self._invalid(f"{step.value} is outside the active flow")
            return state

        changes: dict[str, Any] = {"job_status": status}
        if step is not None:
            changes["step"] = step
        if matched_agent_id is not _KEEP:
            changes["matched_agent_id"] = matched_agent_id
        if eta_minutes is not _KEEP:
            changes["eta_minutes"] = eta_minutes
        if status is not JobStatus.PENDING:
            # Timers only guard a job that nobody has answered yet.
            self.cancel_timers()
            changes.update(_TIMERS_OFF)
        return self._commit(**changes)

    # ── Matching and acceptance timers ────────────────────────────────

    def start_matching(self, timeout_seconds: Optional[float] = None) -> FlowState:
        """Begin searching for an agent.  Expiry sends the actor back to search."""
        if not self._state.is_active:
            self._invalid("cannot start matching: flow is not active")
            return self._state
        timeout = self.matching_timeout_seconds if timeout_seconds is None else timeout_seconds
        started_at = datetime.now(timezone.utc)
        state = self._commit(
            is_matching=True,
            matching_timeout=timeout,
            matching_started_at=started_at,
            matched_agent_id=None,
            eta_minutes=None,
        )
        self._arm("matching", timeout, started_at)
        return state

    def stop_matching(self) -> FlowState:
        self._disarm("matching")
        return self._commit(is_matching=False, matching_started_at=None)

    def start_acceptance_timer(self, timeout_seconds: Optional[float] = None) -> FlowState:
        """Wait for the matched agent to accept.  Expiry sends the actor back to search."""
        if not self._state.is_active:
            self._invalid("cannot start acceptance timer: flow is not active")
            return self._state
        timeout = self.acceptance_timeout_seconds if timeout_seconds is None else timeout_seconds
        started_at = datetime.now(timezone.utc)
        state = self._commit(acceptance_timeout=timeout, acceptance_started_at=started_at)
        self._arm("acceptance", timeout, started_at)
        return state

    def stop_acceptance_timer(self) -> FlowState:
        self._disarm("acceptance")
        return self._commit(acceptance_started_at=None)

    def expire_matching(self) -> FlowState:
        if not self._state.is_matching:
            return self._state
        logger.warning("Matching timed out after %ss", self._state.matching_timeout)
        return self._return_to_search()

    def expire_acceptance(self) -> FlowState:
        if self._state.acceptance_started_at is None:
            return self._state
        logger.warning("Agent did not accept within %ss", self._state.acceptance_timeout)
        return self._return_to_search()

    def cancel_timers(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    def _return_to_search(self) -> FlowState:
        """Same landing as a rejected job: the search step, no agent."""
        self.cancel_timers()
        state = self._state
        changes: dict[str, Any] = dict(_TIMERS_OFF, matched_agent_id=None, eta_minutes=None)
        if state.role is not None and state.service is not None:
            changes["step"] = SEARCH_STEPS[(state.role, state.service)]
        return self._commit(**changes)

    def _arm(self, name: str, delay: float, started_at: datetime) -> None:
        self._disarm(name)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; %s timer not armed", name)
            return
        self._timers[name] = loop.call_later(delay, self._fire, name, started_at)

    def _disarm(self, name: str) -> None:
        handle = self._timers.pop(name, None)
        if handle is not None:
            handle.cancel()

    def _fire(self, name: str, started_at: datetime) -> None:
        self._timers.pop(name, None)
        state = self._state
        if name == "matching":
            if state.matching_started_at == started_at:
                self.expire_matching()
        elif state.acceptance_started_at == started_at:
            self.expire_acceptance()

    # ── Prefetch ──────────────────────────────────────────────────────

    def is_prefetching(self, service: ServiceType) -> bool:
        task = self._prefetches.get(service)
        return task is not None and not task.done()

    async def wait_for_prefetches(self) -> None:
        tasks = [t for t in self._prefetches.values() if not t.done()]
        if tasks:
            await asyncio.gather(*tasks)

    def _schedule_prefetch(self, service: ServiceType) -> None:
        loader = self._loaders.get(service)
        if loader is None:
            return
        if self.is_prefetching(service):
            logger.debug("Prefetch for %s already in flight", service.value)
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; skipping %s prefetch", service.value)
            return

        task = loop.create_task(self._prefetch(service, loader))
        self._prefetches[service] = task

        def _forget(done: asyncio.Task) -> None:
            if self._prefetches.get(service) is done:
                del self._prefetches[service]

        task.add_done_callback(_forget)

    async def _prefetch(self, service: ServiceType, loader: ReferenceDataLoader) -> None:
        data = None
        try:
            data = await loader.load_cached_reference_data()
        except Exception:
            logger.warning("Cached %s reference data unavailable", service.value, exc_info=True)

        if data is None:
            try:
                data = await loader.fetch_reference_data()
            except Exception:
                logger.warning("Prefetch of %s reference data failed", service.value, exc_info=True)
                return

        self._reference[service] = data
        logger.debug("Reference data for %s ready", service.value)

    # ── Internals ─────────────────────────────────────────────────────

    def _start_with(
        self,
        step: StepId,
        *,
        role: Optional[FlowRole] = None,
        service: Optional[ServiceType] = None,
    ) -> Optional[PanelConfig]:
        try:
            namespace = namespace_of(step)
        except KeyError:
            return self._invalid(f"{step!r} is not a known step")

        if service is not None and namespace.service is not service:
            return self._invalid(f"{step.value} is not a {service.value} step")
        if namespace.role is not None:
            if role is not None and namespace.role is not role:
                return self._invalid(f"{step.value} is not a {role.value} step")
            role = namespace.role
        elif role is None:
            role = self._state.role

        if step is GenericStep.IDLE:
            self.stop()
            return self._state.panel
        if role is None:
            return self._invalid(f"{step.value} needs an explicit role")

        self._commit(
            role=role,
            service=namespace.service,
            step=step,
            is_active=True,
            **self._leaving_flow(role, namespace.service),
        )
        if namespace.service is not None:
            self._schedule_prefetch(namespace.service)
        return self._state.panel

    def _leaving_flow(
        self, role: Optional[FlowRole], service: Optional[ServiceType]
    ) -> dict[str, Any]:
        """Job and timer resets owed when the (role, service) flow changes."""
        state = self._state
        if role is state.role and service is state.service:
            return {}
        self.cancel_timers()
        return dict(_JOB_CLEARED, **_TIMERS_OFF)

    def _step_by(self, offset: int) -> StepId:
        state = self._state
        if state.role is None or state.service is None:
            return state.step
        sequence = STEP_SEQUENCES[(state.role, state.service)]
        if state.step not in sequence:
            return state.step
        index = sequence.index(state.step) + offset
        if 0 <= index < len(sequence):
            self._commit(step=sequence[index])
        return self._state.step

    def _panel_for(self, step: StepId) -> PanelConfig:
        return self._panel_overrides.get(step) or default_panel(step)

    def _invalid(self, message: str) -> None:
        if self.strict:
            raise InvalidNavigation(message)
        logger.warning("Invalid navigation ignored: %s", message)
        return None

    def _commit(self, **changes) -> FlowState:
        current = self._state
        step = changes.get("step", current.step)
        if step is not current.step:
            changes["history"] = (current.history + (step,))[-HISTORY_LIMIT:]
            changes.setdefault("panel", self._panel_for(step))
        return self._swap(replace(current, **changes))

    def _swap(self, new: FlowState) -> FlowState:
        old = self._state
        if new == old:
            return old
        self._state = new
        for listener in list(self._listeners):
            try:
                listener(new, old)
            except Exception:
                logger.exception("Flow listener failed")
        return new


def _value(member) -> Optional[str]:
    return member.value if member is not None else None
