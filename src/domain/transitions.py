"""
Job lifecycle validation.

Pure functions over ``JOB_TRANSITIONS``.  The backend is authoritative over
job status; these checks only decide whether an inbound event is a plausible
next step from what the client last saw, so duplicates and regressions can be
dropped before anything is mutated.
"""

from __future__ import annotations

from typing import Optional

from .enums import JOB_TRANSITIONS, JobStatus

TERMINAL_STATUSES: frozenset[JobStatus] = frozenset(
    status for status, allowed in JOB_TRANSITIONS.items() if not allowed
)


def is_valid_transition(current: Optional[JobStatus], next_status: JobStatus) -> bool:
    """Return True if ``current -> next_status`` is a legal lifecycle move."""
    if current is None:
        return False
    return next_status in JOB_TRANSITIONS.get(current, frozenset())


def is_terminal(status: Optional[JobStatus]) -> bool:
    return status in TERMINAL_STATUSES


def reachable_from(current: JobStatus) -> frozenset[JobStatus]:
    return JOB_TRANSITIONS.get(current, frozenset())
