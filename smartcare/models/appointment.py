from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Time, Boolean, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.lifecycle import AppointmentStatus

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)

    # Relationships
    patient_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)

    # Appointment details
    appointment_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(SQLEnum(AppointmentStatus), nullable=False, default=AppointmentStatus.PENDING)
    reason = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    queue_number = Column(Integer, nullable=True)

    # Online consultations
    is_online = Column(Boolean, default=False)
    zoom_meeting_url = Column(String(500), nullable=True)

    # Tracking
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    patient = relationship("Profile", foreign_keys=[patient_id])
    doctor = relationship("Profile", foreign_keys=[doctor_id])

    def __repr__(self):
        return f"<Appointment(id={self.id}, patient_id={self.patient_id}, doctor_id={self.doctor_id}, status='{self.status}')>"
