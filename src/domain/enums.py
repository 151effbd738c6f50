"""Domain enumerations and job-lifecycle transition rules."""

import enum


class FlowRole(str, enum.Enum):
    CUSTOMER = "customer"
    DRIVER = "driver"


class ServiceType(str, enum.Enum):
    TRANSPORT = "transport"
    DELIVERY = "delivery"
    ERRAND = "errand"
    PARCEL = "parcel"


class RideType(str, enum.Enum):
    NORMAL = "normal"
    FOR_OTHER = "for_other"  # booked on behalf of a third party


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    ARRIVED = "arrived"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


# State machine: maps current status -> set of valid next statuses
JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset(
        {JobStatus.ACCEPTED, JobStatus.REJECTED, JobStatus.CANCELLED}
    ),
    JobStatus.ACCEPTED: frozenset(
        {JobStatus.ARRIVED, JobStatus.IN_PROGRESS, JobStatus.CANCELLED}
    ),
    JobStatus.ARRIVED: frozenset({JobStatus.IN_PROGRESS, JobStatus.CANCELLED}),
    JobStatus.IN_PROGRESS: frozenset({JobStatus.COMPLETED, JobStatus.CANCELLED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
    JobStatus.REJECTED: frozenset(),
}


class EventKind(str, enum.Enum):
    """Inbound push events, as named on the wire."""

    REQUESTED = "job:requested"
    ACCEPTED = "job:accepted"
    REJECTED = "job:rejected"
    ARRIVED = "job:arrived"
    STARTED = "job:started"
    COMPLETED = "job:completed"
    CANCELLED = "job:cancelled"


# The job status each lifecycle event claims the backend has reached.
EVENT_STATUS: dict[EventKind, JobStatus] = {
    EventKind.ACCEPTED: JobStatus.ACCEPTED,
    EventKind.REJECTED: JobStatus.REJECTED,
    EventKind.ARRIVED: JobStatus.ARRIVED,
    EventKind.STARTED: JobStatus.IN_PROGRESS,
    EventKind.COMPLETED: JobStatus.COMPLETED,
    EventKind.CANCELLED: JobStatus.CANCELLED,
}


class VehicleType(str, enum.Enum):
    CAR = "CAR"
    MOTORCYCLE = "MOTORCYCLE"
    VAN = "VAN"
