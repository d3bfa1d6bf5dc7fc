"""Status vocabularies and transition rules for appointments and queue entries.

Appointment status and queue status are deliberately separate machines:
a queue entry tracks a same-day visit at the desk, the appointment tracks
the booking.
"""
import enum
from typing import Dict, FrozenSet, Iterable, Optional, TypeVar

from .exceptions import InvalidStateTransition

class AppointmentStatus(str, enum.Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

class QueueStatus(str, enum.Enum):
    WAITING = "waiting"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class QueuePriority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"

APPOINTMENT_TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

QUEUE_TRANSITIONS: Dict[QueueStatus, FrozenSet[QueueStatus]] = {
    QueueStatus.WAITING: frozenset({
        QueueStatus.IN_PROGRESS,
        QueueStatus.COMPLETED,
        QueueStatus.CANCELLED,
    }),
    QueueStatus.IN_PROGRESS: frozenset({
        QueueStatus.WAITING,
        QueueStatus.COMPLETED,
        QueueStatus.CANCELLED,
    }),
    QueueStatus.COMPLETED: frozenset(),
    QueueStatus.CANCELLED: frozenset(),
}


def check_appointment_transition(
    current: AppointmentStatus,
    requested: AppointmentStatus,
    appointment_id: object = None,
) -> None:
    """Raise InvalidStateTransition unless `requested` is reachable from `current`."""
    current = AppointmentStatus(current)
    requested = AppointmentStatus(requested)
    if requested not in APPOINTMENT_TRANSITIONS[current]:
        raise InvalidStateTransition("Appointment", appointment_id, current.value, requested.value)


def check_queue_transition(
    current: QueueStatus,
    requested: QueueStatus,
    entry_id: object = None,
) -> None:
    current = QueueStatus(current)
    requested = QueueStatus(requested)
    if requested not in QUEUE_TRANSITIONS[current]:
        raise InvalidStateTransition("Queue entry", entry_id, current.value, requested.value)


T = TypeVar("T")


def queue_order_key(entry):
    """Sort key for "who goes next": high priority first, then first-in.

    Works on anything exposing status, priority, check_in_time and
    queue_number (ORM rows and API schemas alike).
    """
    band = 0 if QueuePriority(entry.priority) == QueuePriority.HIGH else 1
    return (band, entry.check_in_time, entry.queue_number or 0)


def select_next(entries: Iterable[T]) -> Optional[T]:
    """Pick the waiting entry that should be called next, or None if nobody waits."""
    waiting = [e for e in entries if QueueStatus(e.status) == QueueStatus.WAITING]
    if not waiting:
        return None
    return min(waiting, key=queue_order_key)
