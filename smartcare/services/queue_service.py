from sqlalchemy import func
from sqlalchemy.orm import Session
from datetime import date, datetime
from typing import Optional
import logging

from ..models.queue import QueueEntry
from ..models.appointment import Appointment
from ..models.user import Profile
from ..core.config import settings
from ..core.exceptions import CheckInRejected, InvalidStateTransition, NotFoundError
from ..core.lifecycle import (
    AppointmentStatus, QueuePriority, QueueStatus, check_queue_transition, select_next
)
from ..core.security import UserRole
from ..schemas.queue import CheckInRequest, QueueEntryResponse, QueueResponse

logger = logging.getLogger(__name__)

PRIORITY_NOTE = "Priority patient"
CHECKABLE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)

class QueueService:
    """Same-day, per-doctor patient queue.

    Queue numbers come from a Redis counter per doctor and day, so concurrent
    check-ins at different desks never share a number.
    """

    def __init__(self, db: Session, redis_client=None):
        self.db = db
        self.redis = redis_client

    def get_doctor_queue(self, doctor_id: int, queue_date: Optional[date] = None) -> QueueResponse:
        self._get_doctor(doctor_id)
        queue_date = queue_date or _today()

        entries = self.db.query(QueueEntry).filter(
            QueueEntry.doctor_id == doctor_id,
            QueueEntry.queue_date == queue_date
        ).order_by(QueueEntry.queue_number).all()

        in_progress = next((e for e in entries if e.status == QueueStatus.IN_PROGRESS), None)
        next_patient = select_next(entries)
        items = [QueueEntryResponse.model_validate(e) for e in entries]

        return QueueResponse(
            doctor_id=doctor_id,
            current_date_time=datetime.utcnow(),
            queue_items=items,
            total_patients=len(items),
            waiting_count=sum(1 for e in entries if e.status == QueueStatus.WAITING),
            in_progress=QueueEntryResponse.model_validate(in_progress) if in_progress else None,
            next_patient=QueueEntryResponse.model_validate(next_patient) if next_patient else None
        )

    def get_entry(self, entry_id: int) -> QueueEntry:
        entry = self.db.query(QueueEntry).filter(QueueEntry.id == entry_id).first()
        if not entry:
            raise NotFoundError("Queue entry", entry_id)
        return entry

    def check_in(self, doctor_id: int, request: CheckInRequest) -> QueueEntry:
        """Append a waiting entry to today's queue for a doctor."""
        self._get_doctor(doctor_id)
        today = _today()

        appointment = None
        if request.appointment_id is not None:
            appointment = self._get_checkable_appointment(request.appointment_id, doctor_id, today)

        queue_number = self._allocate_queue_number(doctor_id, today)

        notes = request.notes
        if notes is None and request.priority == QueuePriority.HIGH:
            notes = PRIORITY_NOTE

        entry = QueueEntry(
            doctor_id=doctor_id,
            patient_id=request.patient_id or (appointment.patient_id if appointment else None),
            appointment_id=request.appointment_id,
            patient_name=request.patient_name,
            patient_phone=request.patient_phone,
            reason=request.reason,
            notes=notes,
            status=QueueStatus.WAITING,
            priority=request.priority,
            queue_number=queue_number,
            estimated_wait=settings.QUEUE_DEFAULT_ESTIMATED_WAIT,
            queue_date=today,
            check_in_time=datetime.utcnow()
        )
        if appointment is not None:
            appointment.queue_number = queue_number

        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)

        logger.info(
            f"Checked in '{entry.patient_name}' for doctor {doctor_id} "
            f"as #{queue_number} ({entry.priority.value})"
        )
        return entry

    def call_next_patient(self, doctor_id: int) -> Optional[QueueEntry]:
        """Promote the next waiting patient to in-progress.

        Returns None when nobody is waiting. Any entry already in progress for
        the doctor goes back to waiting first, so at most one stays in progress.
        """
        self._get_doctor(doctor_id)
        today = _today()

        active = self.db.query(QueueEntry).filter(
            QueueEntry.doctor_id == doctor_id,
            QueueEntry.status.in_([QueueStatus.WAITING, QueueStatus.IN_PROGRESS])
        ).with_for_update().all()

        selected = select_next(e for e in active if e.queue_date == today)
        if selected is None:
            logger.info(f"Queue empty for doctor {doctor_id}")
            return None

        self._promote(selected, active)
        self.db.commit()
        self.db.refresh(selected)

        logger.info(f"Doctor {doctor_id} called #{selected.queue_number} (entry {selected.id})")
        return selected

    def start_visit(self, entry_id: int) -> QueueEntry:
        """Promote a specific waiting entry, demoting whoever is in progress."""
        entry = self.get_entry(entry_id)
        check_queue_transition(entry.status, QueueStatus.IN_PROGRESS, entry_id)

        active = self.db.query(QueueEntry).filter(
            QueueEntry.doctor_id == entry.doctor_id,
            QueueEntry.status == QueueStatus.IN_PROGRESS
        ).with_for_update().all()

        self._promote(entry, active)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def complete_entry(self, entry_id: int) -> QueueEntry:
        return self._finish(entry_id, QueueStatus.COMPLETED)

    def cancel_entry(self, entry_id: int) -> QueueEntry:
        return self._finish(entry_id, QueueStatus.CANCELLED)

    def _finish(self, entry_id: int, status: QueueStatus) -> QueueEntry:
        entry = self.get_entry(entry_id)
        current = entry.status
        check_queue_transition(current, status, entry_id)

        entry.status = status
        self.db.commit()
        self.db.refresh(entry)

        logger.info(f"Queue entry {entry_id} {current.value} -> {status.value}")
        return entry

    def _promote(self, selected: QueueEntry, candidates) -> None:
        for other in candidates:
            if other is not selected and other.status == QueueStatus.IN_PROGRESS:
                check_queue_transition(other.status, QueueStatus.WAITING, other.id)
                other.status = QueueStatus.WAITING
                logger.info(f"Queue entry {other.id} returned to waiting")
        selected.status = QueueStatus.IN_PROGRESS

    def _allocate_queue_number(self, doctor_id: int, queue_date: date) -> int:
        key = f"queue_seq:{doctor_id}:{queue_date.isoformat()}"

        # Seed from the database if the counter is missing (first check-in of
        # the day, or Redis was flushed); NX keeps an existing counter intact.
        current_max = self.db.query(func.max(QueueEntry.queue_number)).filter(
            QueueEntry.doctor_id == doctor_id,
            QueueEntry.queue_date == queue_date
        ).scalar() or 0
        self.redis.set(key, current_max, nx=True, ex=settings.QUEUE_SEQUENCE_TTL_SECONDS)

        return int(self.redis.incr(key))

    def _get_checkable_appointment(self, appointment_id: int, doctor_id: int, today: date) -> Appointment:
        """Open appointment of this doctor, booked for today and not yet queued."""
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.doctor_id == doctor_id
        ).first()
        if not appointment:
            raise NotFoundError("Appointment", appointment_id)

        if appointment.status not in CHECKABLE_STATUSES:
            raise InvalidStateTransition(
                "Appointment", appointment_id, appointment.status.value, "CheckedIn"
            )

        if appointment.appointment_date != today:
            raise CheckInRejected(
                appointment_id,
                f"Appointment {appointment_id} is booked for {appointment.appointment_date.isoformat()}, not today"
            )

        already_queued = self.db.query(QueueEntry.id).filter(
            QueueEntry.appointment_id == appointment_id,
            QueueEntry.queue_date == today,
            QueueEntry.status != QueueStatus.CANCELLED
        ).first()
        if already_queued:
            raise CheckInRejected(appointment_id, f"Appointment {appointment_id} is already checked in")

        return appointment

    def _get_doctor(self, doctor_id: int) -> Profile:
        doctor = self.db.query(Profile).filter(
            Profile.id == doctor_id,
            Profile.role == UserRole.DOCTOR
        ).first()
        if not doctor:
            raise NotFoundError("Doctor", doctor_id)
        return doctor


def _today() -> date:
    return datetime.utcnow().date()
