from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import date, datetime

from ..core.lifecycle import QueueStatus, QueuePriority

class CheckInRequest(BaseModel):
    patient_name: str = Field(..., min_length=1, max_length=200)
    reason: str = Field(..., min_length=1)
    patient_phone: Optional[str] = None
    priority: QueuePriority = QueuePriority.NORMAL
    patient_id: Optional[int] = None
    appointment_id: Optional[int] = None
    notes: Optional[str] = None

class QueueEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None  # None until the server has assigned one
    doctor_id: int
    patient_id: Optional[int] = None
    appointment_id: Optional[int] = None
    patient_name: str
    patient_phone: Optional[str] = None
    reason: str
    notes: Optional[str] = None
    status: QueueStatus
    priority: QueuePriority
    queue_number: int
    estimated_wait: int
    queue_date: date
    check_in_time: datetime

class QueueResponse(BaseModel):
    doctor_id: int
    current_date_time: datetime
    queue_items: List[QueueEntryResponse]
    total_patients: int
    waiting_count: int
    in_progress: Optional[QueueEntryResponse] = None
    next_patient: Optional[QueueEntryResponse] = None

class CallNextResponse(BaseModel):
    queue_empty: bool
    entry: Optional[QueueEntryResponse] = None
