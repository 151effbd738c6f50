"""
Auto-Navigation Engine
======================

Turns inbound job events into store navigation.

Per event
---------
1. Validate the payload (pydantic).  Malformed -> ``FAILED``, no mutation.
2. Event for a job other than the store's current one -> ``IGNORED_STALE``.
3. Implied status not reachable from the recorded one -> ``IGNORED_ILLEGAL``.
4. Otherwise record the status and move to the step mirroring it:

   * forward only: a target at or before the current step records the
     status and leaves the step alone (``STATUS_ONLY``);
   * ``job:rejected`` sends the actor back to the search step and clears
     the matched agent;
   * ``job:cancelled`` jumps to the cancellation step from anywhere;
   * ``job:completed`` and ``job:cancelled`` schedule a ``reset()`` after
     the grace period, skipped if the job has changed by then.

Listener lifecycle
------------------
The engine follows the store's ``job_id``: when it changes, every listener
bound for the old job is removed from the dispatcher before listeners for
the new job are added.  No job, no listeners.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.config import Settings, settings as default_settings
from src.domain.entities import FlowState
from src.domain.enums import EVENT_STATUS, EventKind, JobStatus, ServiceType
from src.domain.steps import (
    CANCELLATION_STEPS,
    SEARCH_STEPS,
    STATUS_STEPS,
    STEP_SEQUENCES,
    StepId,
)
from src.domain.transitions import is_valid_transition
from src.infrastructure.event_dispatcher import EventDispatcher, Listener
from src.services.flow_store import FlowStore

logger = logging.getLogger(__name__)


# ── Payloads ──────────────────────────────────────────────────────────


class JobEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    job_id: int = Field(alias="jobId")
    agent_id: Optional[int] = Field(default=None, alias="agentId")


class JobAccepted(JobEvent):
    eta_minutes: Optional[float] = Field(default=None, alias="etaMinutes", ge=0)


class JobRejected(JobEvent):
    reason: Optional[str] = None


class JobRequested(JobEvent):
    """Offer pushed to drivers.  Acknowledged only; it never navigates."""

    origin_lat: float = Field(alias="originLat")
    origin_lng: float = Field(alias="originLng")
    destination_lat: Optional[float] = Field(default=None, alias="destinationLat")
    destination_lng: Optional[float] = Field(default=None, alias="destinationLng")
    service: Optional[ServiceType] = None
    fare: Optional[float] = None


PAYLOADS: dict[EventKind, type[JobEvent]] = {
    EventKind.REQUESTED: JobRequested,
    EventKind.ACCEPTED: JobAccepted,
    EventKind.REJECTED: JobRejected,
    EventKind.ARRIVED: JobEvent,
    EventKind.STARTED: JobEvent,
    EventKind.COMPLETED: JobEvent,
    EventKind.CANCELLED: JobEvent,
}


# ── Results ───────────────────────────────────────────────────────────


class NavigationOutcome(str, enum.Enum):
    NAVIGATED = "navigated"
    STATUS_ONLY = "status_only"
    ACKNOWLEDGED = "acknowledged"
    IGNORED_STALE = "ignored_stale"
    IGNORED_ILLEGAL = "ignored_illegal"
    FAILED = "failed"


@dataclass(frozen=True)
class NavigationResult:
    outcome: NavigationOutcome
    kind: EventKind
    job_id: Optional[int] = None
    from_status: Optional[JobStatus] = None
    to_status: Optional[JobStatus] = None
    step: Optional[StepId] = None

    @property
    def mutated(self) -> bool:
        return self.outcome in (NavigationOutcome.NAVIGATED, NavigationOutcome.STATUS_ONLY)

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "kind": self.kind.value,
            "job_id": self.job_id,
            "from_status": self.from_status.value if self.from_status else None,
            "to_status": self.to_status.value if self.to_status else None,
            "step": self.step.value if self.step else None,
        }


# ── Engine ────────────────────────────────────────────────────────────


class AutoNavigator:
    def __init__(
        self,
        store: FlowStore,
        dispatcher: EventDispatcher,
        settings: Settings = default_settings,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.grace_seconds = settings.terminal_reset_grace_seconds
        self.recent: deque[NavigationResult] = deque(maxlen=50)

        self._bound_job_id: Optional[int] = None
        self._bindings: list[tuple[str, Listener]] = []
        self._unsubscribe = None
        self._pending_reset: Optional[asyncio.TimerHandle] = None

    # ── Lifecycle ─────────────────────────────────────────────────────

    def attach(self) -> None:
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.store.subscribe(self._on_state_change)
        self._rebind(self.store.state.job_id)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._unbind()
        self._cancel_pending_reset()

    @property
    def bound_job_id(self) -> Optional[int]:
        return self._bound_job_id

    def _on_state_change(self, new: FlowState, old: FlowState) -> None:
        if new.job_id != old.job_id:
            self._rebind(new.job_id)

    def _rebind(self, job_id: Optional[int]) -> None:
        self._unbind()
        if job_id is None:
            return
        for kind in EventKind:
            listener = self._listener_for(kind)
            self.dispatcher.on(kind.value, listener)
            self._bindings.append((kind.value, listener))
        self._bound_job_id = job_id
        logger.debug("Auto-navigation listening for job %s", job_id)

    def _unbind(self) -> None:
        for kind, listener in self._bindings:
            self.dispatcher.off(kind, listener)
        self._bindings.clear()
        self._bound_job_id = None

    def _listener_for(self, kind: EventKind) -> Listener:
        def listener(payload: Mapping[str, Any]) -> NavigationResult:
            return self.handle(kind, payload)

        return listener

    # ── Handling ──────────────────────────────────────────────────────

    def handle(self, kind: EventKind | str, payload: Mapping[str, Any]) -> NavigationResult:
        """Process one inbound event.  Never raises."""
        try:
            kind = EventKind(kind)
            result = self._handle(kind, payload)
        except Exception:
            logger.exception(
                "Auto-navigation failed for %s (payload=%r state=%s)",
                kind, payload, self.store.snapshot(),
            )
            result = NavigationResult(
                NavigationOutcome.FAILED,
                kind if isinstance(kind, EventKind) else EventKind.REQUESTED,
            )
        self.recent.append(result)
        return result

    def _handle(self, kind: EventKind, payload: Mapping[str, Any]) -> NavigationResult:
        event = PAYLOADS[kind].model_validate(payload)
        state = self.store.state

        if state.job_id is None or event.job_id != state.job_id:
            logger.debug(
                "Dropping %s for job %s (current job %s)",
                kind.value, event.job_id, state.job_id,
            )
            return NavigationResult(NavigationOutcome.IGNORED_STALE, kind, event.job_id)

        if kind is EventKind.REQUESTED:
            logger.info("Job %s offered", event.job_id)
            return NavigationResult(
                NavigationOutcome.ACKNOWLEDGED, kind, event.job_id, state.job_status
            )

        target = EVENT_STATUS[kind]
        if not is_valid_transition(state.job_status, target):
            logger.warning(
                "Illegal transition %s -> %s for job %s; %s dropped",
                state.job_status.value if state.job_status else None,
                target.value, event.job_id, kind.value,
            )
            return NavigationResult(
                NavigationOutcome.IGNORED_ILLEGAL, kind, event.job_id,
                state.job_status, target,
            )

        step = self._target_step(kind, target, state)
        extra: dict[str, Any] = {}
        if kind is EventKind.ACCEPTED:
            extra = {"matched_agent_id": event.agent_id, "eta_minutes": event.eta_minutes}
        elif kind is EventKind.REJECTED:
            extra = {"matched_agent_id": None, "eta_minutes": None}

        after = self.store.apply_job_update(event.job_id, target, step=step, **extra)

        if kind in (EventKind.COMPLETED, EventKind.CANCELLED):
            self._schedule_reset(event.job_id)

        outcome = (
            NavigationOutcome.NAVIGATED
            if after.step is not state.step
            else NavigationOutcome.STATUS_ONLY
        )
        logger.info(
            "Job %s %s -> %s (step %s)",
            event.job_id, state.job_status.value, target.value, after.step.value,
        )
        return NavigationResult(
            outcome, kind, event.job_id, state.job_status, target, after.step
        )

    def _target_step(
        self, kind: EventKind, status: JobStatus, state: FlowState
    ) -> Optional[StepId]:
        if state.role is None or state.service is None:
            return None
        key = (state.role, state.service)

        if kind is EventKind.REJECTED:
            return SEARCH_STEPS[key]
        if kind is EventKind.CANCELLED:
            return CANCELLATION_STEPS[key]

        target = STATUS_STEPS[key].get(status)
        if target is None:
            return None
        sequence = STEP_SEQUENCES[key]
        if state.step in sequence and sequence.index(target) <= sequence.index(state.step):
            return None
        return target

    # ── Terminal reset ────────────────────────────────────────────────

    def _schedule_reset(self, job_id: int) -> None:
        self._cancel_pending_reset()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; reset for job %s not scheduled", job_id)
            return
        self._pending_reset = loop.call_later(
            self.grace_seconds, self._reset_if_current, job_id
        )

    def _reset_if_current(self, job_id: int) -> None:
        self._pending_reset = None
        if self.store.state.job_id != job_id:
            logger.debug("Job %s no longer current; skipping reset", job_id)
            return
        logger.info("Job %s finished; resetting flow", job_id)
        self.store.reset()

    def _cancel_pending_reset(self) -> None:
        if self._pending_reset is not None:
            self._pending_reset.cancel()
            self._pending_reset = None

    @property
    def reset_pending(self) -> bool:
        return self._pending_reset is not None
