from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...core.database import get_db, get_redis
from ...api.deps import get_queue_operator, get_appointment_manager, ensure_doctor_scope
from ...services.queue_service import QueueService
from ...services.appointment_service import AppointmentService
from ...schemas.queue import (
    CallNextResponse, CheckInRequest, QueueEntryResponse, QueueResponse
)
from ...schemas.appointment import AppointmentResponse
from ...models.user import Profile

router = APIRouter(prefix="/queue", tags=["Queue"])

@router.get("/doctor/{doctor_id}", response_model=QueueResponse)
async def get_doctor_queue(
    doctor_id: int,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_queue_operator)
):
    """Today's queue for a doctor, with the next patient to call."""
    ensure_doctor_scope(profile, doctor_id)
    return QueueService(db).get_doctor_queue(doctor_id)

@router.post(
    "/doctor/{doctor_id}/check-in",
    response_model=QueueEntryResponse,
    status_code=status.HTTP_201_CREATED
)
async def check_in(
    doctor_id: int,
    request: CheckInRequest,
    db: Session = Depends(get_db),
    redis_client = Depends(get_redis),
    profile: Profile = Depends(get_queue_operator)
):
    ensure_doctor_scope(profile, doctor_id)
    entry = QueueService(db, redis_client).check_in(doctor_id, request)
    return QueueEntryResponse.model_validate(entry)

@router.post("/doctor/{doctor_id}/call-next", response_model=CallNextResponse)
async def call_next_patient(
    doctor_id: int,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_queue_operator)
):
    """Call the next patient. An empty queue is a normal result, not an error."""
    ensure_doctor_scope(profile, doctor_id)
    entry = QueueService(db).call_next_patient(doctor_id)
    if entry is None:
        return CallNextResponse(queue_empty=True)
    return CallNextResponse(queue_empty=False, entry=QueueEntryResponse.model_validate(entry))

@router.post("/entries/{entry_id}/start", response_model=QueueEntryResponse)
async def start_visit(
    entry_id: int,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_queue_operator)
):
    service = QueueService(db)
    ensure_doctor_scope(profile, service.get_entry(entry_id).doctor_id)
    return QueueEntryResponse.model_validate(service.start_visit(entry_id))

@router.post("/entries/{entry_id}/complete", response_model=QueueEntryResponse)
async def complete_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_queue_operator)
):
    service = QueueService(db)
    ensure_doctor_scope(profile, service.get_entry(entry_id).doctor_id)
    return QueueEntryResponse.model_validate(service.complete_entry(entry_id))

@router.post("/entries/{entry_id}/cancel", response_model=QueueEntryResponse)
async def cancel_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_queue_operator)
):
    service = QueueService(db)
    ensure_doctor_scope(profile, service.get_entry(entry_id).doctor_id)
    return QueueEntryResponse.model_validate(service.cancel_entry(entry_id))

# Appointment transitions triggered from the queue screens
@router.post("/appointment/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_appointment_manager)
):
    service = AppointmentService(db)
    ensure_doctor_scope(profile, service.get_appointment(appointment_id).doctor_id)
    return AppointmentResponse.model_validate(service.complete_appointment(appointment_id))

@router.post("/appointment/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_appointment_manager)
):
    service = AppointmentService(db)
    ensure_doctor_scope(profile, service.get_appointment(appointment_id).doctor_id)
    return AppointmentResponse.model_validate(service.cancel_appointment(appointment_id))
