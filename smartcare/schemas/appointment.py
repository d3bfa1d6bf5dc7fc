from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional
from datetime import date, time, datetime

from ..core.lifecycle import AppointmentStatus

class AppointmentCreate(BaseModel):
    patient_id: int
    doctor_id: int
    appointment_date: date
    start_time: time
    end_time: time
    reason: str = Field(..., min_length=1)
    is_online: bool = False
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_time_range(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self

class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus

class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    doctor_id: int
    appointment_date: date
    start_time: time
    end_time: time
    status: AppointmentStatus
    reason: str
    notes: Optional[str] = None
    queue_number: Optional[int] = None
    is_online: bool = False
    zoom_meeting_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class AppointmentUpdate(BaseModel):
    """Partial update; status changes go through the status endpoints."""

    appointment_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: Optional[str] = Field(None, min_length=1)
    notes: Optional[str] = None
    is_online: Optional[bool] = None
    zoom_meeting_url: Optional[str] = Field(None, max_length=500)
