from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Text, Enum as SQLEnum
from sqlalchemy.sql import func

from ..core.database import Base
from ..core.lifecycle import QueueStatus, QueuePriority

class QueueEntry(Base):
    __tablename__ = "queue_entries"

    id = Column(Integer, primary_key=True, index=True)

    doctor_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    # Walk-ins may not have a profile or an appointment
    patient_id = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=True)

    patient_name = Column(String(200), nullable=False)
    patient_phone = Column(String(20), nullable=True)
    reason = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)

    status = Column(SQLEnum(QueueStatus), nullable=False, default=QueueStatus.WAITING, index=True)
    priority = Column(SQLEnum(QueuePriority), nullable=False, default=QueuePriority.NORMAL)
    queue_number = Column(Integer, nullable=False)
    estimated_wait = Column(Integer, nullable=False)  # minutes

    queue_date = Column(Date, nullable=False, index=True)
    check_in_time = Column(DateTime, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<QueueEntry(id={self.id}, doctor_id={self.doctor_id}, number={self.queue_number}, status='{self.status}')>"
