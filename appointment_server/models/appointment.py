"""Appointment model definitions."""

import enum

from sqlalchemy import Column, Date, ForeignKey, Index, Integer, String, Time
from appointment_server.database import Base


class AppointmentStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class Appointment(Base):
    """Represents a booked slot between a customer and a staff member."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_staff_date", "staff_id", "date"),
    )

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    staff_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(String, nullable=False, default=AppointmentStatus.PENDING.value)
