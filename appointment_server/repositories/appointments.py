from datetime import date, time

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from appointment_server.models.appointment import Appointment, AppointmentStatus


class AppointmentRepository:
    """Scheduling store backed by the ``appointments`` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def find_by_id(self, appointment_id: int) -> Appointment | None:
        with self._session_factory() as db:
            return db.get(Appointment, appointment_id)

    def list_by_customer(self, customer_id: int) -> list[Appointment]:
        with self._session_factory() as db:
            return db.query(Appointment).filter(
                Appointment.customer_id == customer_id,
            ).order_by(Appointment.date.asc(), Appointment.start_time.asc(), Appointment.id.asc()).all()

    def list_by_staff(self, staff_id: int) -> list[Appointment]:
        with self._session_factory() as db:
            return db.query(Appointment).filter(
                Appointment.staff_id == staff_id,
            ).order_by(Appointment.date.asc(), Appointment.start_time.asc(), Appointment.id.asc()).all()

    def find_overlap(self, staff_id: int, day: date, start: time, end: time) -> Appointment | None:
        # Half-open intervals: [s1, e1) and [s2, e2) overlap iff s1 < e2 and s2 < e1.
        with self._session_factory() as db:
            return db.query(Appointment).filter(
                Appointment.staff_id == staff_id,
                Appointment.date == day,
                Appointment.status != AppointmentStatus.CANCELLED.value,
                Appointment.start_time < end,
                Appointment.end_time > start,
            ).first()

    def insert(self, appointment: Appointment) -> Appointment:
        with self._session_factory() as db:
            try:
                db.add(appointment)
                db.commit()
                db.refresh(appointment)
            except SQLAlchemyError:
                db.rollback()
                raise
            return appointment

    def update_status(self, appointment_id: int, status: AppointmentStatus) -> bool:
        with self._session_factory() as db:
            try:
                updated = db.query(Appointment).filter(
                    Appointment.id == appointment_id,
                ).update({Appointment.status: status.value})
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise
            return updated > 0
