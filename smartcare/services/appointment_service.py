from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from datetime import date, time, timedelta
from typing import List, Optional
import logging

from ..models.appointment import Appointment
from ..models.queue import QueueEntry
from ..models.user import Profile
from ..core.exceptions import InvalidStateTransition, NotFoundError, SchedulingConflict
from ..core.lifecycle import AppointmentStatus, check_appointment_transition
from ..core.security import UserRole
from ..schemas.appointment import AppointmentCreate, AppointmentUpdate

logger = logging.getLogger(__name__)

MAX_AVAILABILITY_DAYS = 366

class AppointmentService:
    def __init__(self, db: Session):
        self.db = db

    def list_appointments(
        self,
        user_id: Optional[int] = None,
        role: Optional[UserRole] = None
    ) -> List[Appointment]:
        """List appointments, filtered by patient or doctor when a role is given."""
        query = self.db.query(Appointment)

        if user_id is not None:
            if role == UserRole.PATIENT:
                query = query.filter(Appointment.patient_id == user_id)
            elif role == UserRole.DOCTOR:
                query = query.filter(Appointment.doctor_id == user_id)

        return query.order_by(
            Appointment.appointment_date, Appointment.start_time, Appointment.id
        ).all()

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id
        ).first()
        if not appointment:
            raise NotFoundError("Appointment", appointment_id)
        return appointment

    def create_appointment(self, draft: AppointmentCreate) -> Appointment:
        """Book a new appointment. New bookings always start as Pending."""
        self._get_profile(draft.patient_id, UserRole.PATIENT, "Patient")
        self._get_profile(draft.doctor_id, UserRole.DOCTOR, "Doctor")

        conflict = self._find_conflict(
            draft.doctor_id, draft.appointment_date, draft.start_time, draft.end_time
        )

        if conflict:
            logger.warning(
                f"Doctor {draft.doctor_id} already booked on {draft.appointment_date} "
                f"(appointment {conflict.id})"
            )
            raise SchedulingConflict(draft.doctor_id)

        appointment = Appointment(
            patient_id=draft.patient_id,
            doctor_id=draft.doctor_id,
            appointment_date=draft.appointment_date,
            start_time=draft.start_time,
            end_time=draft.end_time,
            reason=draft.reason,
            notes=draft.notes,
            is_online=draft.is_online,
            status=AppointmentStatus.PENDING
        )

        self.db.add(appointment)
        self.db.commit()
        self.db.refresh(appointment)

        logger.info(f"Created appointment {appointment.id} for patient {appointment.patient_id}")
        return appointment

    def update_status(self, appointment_id: int, status: AppointmentStatus) -> Appointment:
        """Move an appointment to a new status.

        Raises InvalidStateTransition when the status is not reachable from the
        current one; the stored status is left untouched in that case.
        """
        appointment = self.get_appointment(appointment_id)
        current = appointment.status

        try:
            check_appointment_transition(current, status, appointment_id)
        except InvalidStateTransition:
            logger.warning(
                f"Rejected appointment {appointment_id} transition "
                f"{current.value} -> {AppointmentStatus(status).value}"
            )
            raise

        appointment.status = status
        self.db.commit()
        self.db.refresh(appointment)

        logger.info(f"Appointment {appointment_id} {current.value} -> {appointment.status.value}")
        return appointment

    def complete_appointment(self, appointment_id: int) -> Appointment:
        return self.update_status(appointment_id, AppointmentStatus.COMPLETED)

    def cancel_appointment(self, appointment_id: int) -> Appointment:
        return self.update_status(appointment_id, AppointmentStatus.CANCELLED)

    def update_appointment(self, appointment_id: int, changes: AppointmentUpdate) -> Appointment:
        """Reschedule or edit an open appointment.

        Finished appointments cannot be edited. A new slot is checked the same
        way as a new booking.
        """
        appointment = self.get_appointment(appointment_id)
        current = appointment.status
        if current in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED):
            raise InvalidStateTransition("Appointment", appointment_id, current.value, current.value)

        fields = changes.model_dump(exclude_unset=True)
        appointment_date = fields.get("appointment_date") or appointment.appointment_date
        start_time = fields.get("start_time") or appointment.start_time
        end_time = fields.get("end_time") or appointment.end_time

        if start_time >= end_time:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="start_time must be before end_time"
            )

        rescheduled = (appointment_date, start_time, end_time) != (
            appointment.appointment_date, appointment.start_time, appointment.end_time
        )
        if rescheduled and self._find_conflict(
            appointment.doctor_id, appointment_date, start_time, end_time, exclude_id=appointment_id
        ):
            raise SchedulingConflict(appointment.doctor_id)

        for field, value in fields.items():
            if value is not None or field in ("notes", "zoom_meeting_url"):
                setattr(appointment, field, value)

        self.db.commit()
        self.db.refresh(appointment)

        logger.info(f"Updated appointment {appointment_id}: {sorted(fields)}")
        return appointment

    def delete_appointment(self, appointment_id: int) -> None:
        appointment = self.get_appointment(appointment_id)

        # Queue history outlives the booking
        self.db.query(QueueEntry).filter(
            QueueEntry.appointment_id == appointment_id
        ).update({QueueEntry.appointment_id: None}, synchronize_session=False)

        self.db.delete(appointment)
        self.db.commit()
        logger.info(f"Deleted appointment {appointment_id}")

    def doctor_availability(self, doctor_id: int, start_date: date, end_date: date) -> List[date]:
        """Days in the range on which the doctor has no active appointments."""
        if start_date > end_date:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="start_date must not be after end_date"
            )
        if (end_date - start_date).days >= MAX_AVAILABILITY_DAYS:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Date range is limited to {MAX_AVAILABILITY_DAYS} days"
            )

        booked = {
            row.appointment_date
            for row in self.db.query(Appointment.appointment_date).filter(
                Appointment.doctor_id == doctor_id,
                Appointment.appointment_date >= start_date,
                Appointment.appointment_date <= end_date,
                Appointment.status != AppointmentStatus.CANCELLED
            ).all()
        }

        available = []
        current = start_date
        while current <= end_date:
            if current not in booked:
                available.append(current)
            current += timedelta(days=1)
        return available

    def _find_conflict(
        self,
        doctor_id: int,
        appointment_date: date,
        start_time: time,
        end_time: time,
        exclude_id: Optional[int] = None
    ) -> Optional[Appointment]:
        query = self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date == appointment_date,
            Appointment.status != AppointmentStatus.CANCELLED,
            Appointment.start_time < end_time,
            Appointment.end_time > start_time
        )
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)
        return query.first()

    def _get_profile(self, profile_id: int, role: UserRole, entity: str) -> Profile:
        profile = self.db.query(Profile).filter(
            Profile.id == profile_id,
            Profile.role == role
        ).first()
        if not profile:
            raise NotFoundError(entity, profile_id)
        return profile
