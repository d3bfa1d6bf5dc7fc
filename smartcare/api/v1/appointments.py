from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from ...core.database import get_db
from ...core.security import AuthorizationError, UserRole
from ...api.deps import (
    get_current_profile, get_appointment_manager, get_front_desk, ensure_doctor_scope
)
from ...services.appointment_service import AppointmentService
from ...schemas.appointment import (
    AppointmentCreate, AppointmentResponse, AppointmentStatusUpdate, AppointmentUpdate
)
from ...models.appointment import Appointment
from ...models.user import Profile

router = APIRouter(prefix="/appointments", tags=["Appointments"])

def _ensure_can_view(profile: Profile, appointment: Appointment) -> None:
    if profile.role == UserRole.PATIENT and appointment.patient_id != profile.id:
        raise AuthorizationError("Patients can only access their own appointments")
    if profile.role == UserRole.DOCTOR:
        ensure_doctor_scope(profile, appointment.doctor_id)

@router.get("", response_model=List[AppointmentResponse])
async def list_appointments(
    user_id: Optional[int] = Query(None),
    role: Optional[UserRole] = Query(None),
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile)
):
    """List appointments. Patients and doctors only ever see their own."""
    if profile.role in (UserRole.PATIENT, UserRole.DOCTOR):
        user_id, role = profile.id, profile.role

    service = AppointmentService(db)
    return [AppointmentResponse.model_validate(a) for a in service.list_appointments(user_id, role)]

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    draft: AppointmentCreate,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile)
):
    """Book an appointment for a patient (patients book for themselves)."""
    if profile.role == UserRole.PATIENT and draft.patient_id != profile.id:
        raise AuthorizationError("Patients can only book for themselves")
    if profile.role in (UserRole.DOCTOR, UserRole.LAB_TECHNICIAN):
        raise AuthorizationError("Only patients and front desk staff can book appointments")

    service = AppointmentService(db)
    return AppointmentResponse.model_validate(service.create_appointment(draft))

@router.get("/doctor/{doctor_id}/availability", response_model=List[date])
async def doctor_availability(
    doctor_id: int,
    start_date: date,
    end_date: date,
    db: Session = Depends(get_db),
    _: Profile = Depends(get_current_profile)
):
    """Days in the range without any active appointment for the doctor."""
    service = AppointmentService(db)
    return service.doctor_availability(doctor_id, start_date, end_date)

@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile)
):
    service = AppointmentService(db)
    appointment = service.get_appointment(appointment_id)
    _ensure_can_view(profile, appointment)
    return AppointmentResponse.model_validate(appointment)


@router.put("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: int,
    changes: AppointmentUpdate,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_appointment_manager)
):
    """Reschedule an open appointment or edit its details (reason, notes, meeting link)."""
    service = AppointmentService(db)
    _ensure_can_view(profile, service.get_appointment(appointment_id))
    return AppointmentResponse.model_validate(service.update_appointment(appointment_id, changes))

@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    _: Profile = Depends(get_front_desk)
):
    AppointmentService(db).delete_appointment(appointment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: int,
    update: AppointmentStatusUpdate,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_appointment_manager)
):
    """Change an appointment's status; unreachable statuses are rejected with 409."""
    service = AppointmentService(db)
    _ensure_can_view(profile, service.get_appointment(appointment_id))
    return AppointmentResponse.model_validate(service.update_status(appointment_id, update.status))

@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_appointment_manager)
):
    service = AppointmentService(db)
    _ensure_can_view(profile, service.get_appointment(appointment_id))
    return AppointmentResponse.model_validate(service.complete_appointment(appointment_id))

@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile)
):
    """Cancel an appointment. Patients may cancel their own bookings."""
    service = AppointmentService(db)
    appointment = service.get_appointment(appointment_id)
    _ensure_can_view(profile, appointment)
    if profile.role == UserRole.LAB_TECHNICIAN:
        raise AuthorizationError("Lab technicians cannot cancel appointments")
    return AppointmentResponse.model_validate(service.cancel_appointment(appointment_id))
