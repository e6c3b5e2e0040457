"""Slot validation and conflict detection for BOOK requests."""

import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime, time
from typing import Iterator

from pydantic import BaseModel, field_validator, model_validator

from appointment_server.errors import CommandError
from appointment_server.models.appointment import Appointment, AppointmentStatus
from appointment_server.models.user import Role
from appointment_server.repositories.appointments import AppointmentRepository
from appointment_server.repositories.users import UserRepository

logger = logging.getLogger(__name__)

OPEN_TIME = time(9, 0)
CLOSE_TIME = time(18, 0)
LUNCH_BREAK_START = time(12, 0)
LUNCH_BREAK_END = time(13, 0)
DATE_FORMAT = '%Y-%m-%d'


class BookingRequest(BaseModel):
    staff_id: int
    date: date
    start_time: time
    end_time: time

    @field_validator('date', mode='before')
    @classmethod
    def parse_date(cls, value):
        if isinstance(value, str):
            return datetime.strptime(value.strip(), DATE_FORMAT).date()
        return value

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def parse_time(cls, value):
        if isinstance(value, str):
            value = time.fromisoformat(value.strip())
        if isinstance(value, time) and value.tzinfo is not None:
            raise ValueError('Times carry no UTC offset.')
        return value

    @model_validator(mode='after')
    def check_interval(self) -> 'BookingRequest':
        if self.end_time <= self.start_time:
            raise ValueError('End time must be after start time.')
        return self


def intervals_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    return start_a < end_b and start_b < end_a


def is_within_working_hours(start_time: time, end_time: time) -> bool:
    return start_time.hour >= OPEN_TIME.hour and end_time <= CLOSE_TIME


def overlaps_lunch_break(start_time: time, end_time: time) -> bool:
    return intervals_overlap(start_time, end_time, LUNCH_BREAK_START, LUNCH_BREAK_END)


def validate_slot_times(start_time: time, end_time: time) -> None:
    if not is_within_working_hours(start_time, end_time):
        raise CommandError('OutsideWorkingHours')

    if overlaps_lunch_break(start_time, end_time):
        raise CommandError('LunchBreak')


class SlotLocks:
    """One lock per (staff id, date), dropped again once nobody holds it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[tuple[int, date], threading.Lock] = {}
        self._holders: dict[tuple[int, date], int] = {}

    @contextmanager
    def hold(self, staff_id: int, day: date) -> Iterator[None]:
        key = (staff_id, day)
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._holders[key] = self._holders.get(key, 0) + 1

        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._holders[key] -= 1
                if self._holders[key] == 0:
                    del self._holders[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class BookingEngine:
    def __init__(self, users: UserRepository, appointments: AppointmentRepository):
        self.users = users
        self.appointments = appointments
        self.locks = SlotLocks()

    def book(self, customer_id: int, request: BookingRequest) -> Appointment:
        validate_slot_times(request.start_time, request.end_time)

        staff = self.users.find_by_id(request.staff_id)
        if staff is None or staff.role != Role.EMPLOYEE.value:
            raise CommandError('InvalidData')

        # The overlap query and the insert must not interleave with another
        # booking for the same staff member and day.
        with self.locks.hold(request.staff_id, request.date):
            conflict = self.appointments.find_overlap(
                request.staff_id,
                request.date,
                request.start_time,
                request.end_time,
            )
            if conflict is not None:
                raise CommandError('SlotTaken')

            appointment = self.appointments.insert(
                Appointment(
                    customer_id=customer_id,
                    staff_id=request.staff_id,
                    date=request.date,
                    start_time=request.start_time,
                    end_time=request.end_time,
                    status=AppointmentStatus.PENDING.value,
                )
            )

        logger.info(
            'Booked appointment %s for staff %s on %s %s-%s',
            appointment.id,
            request.staff_id,
            request.date.isoformat(),
            request.start_time.strftime('%H:%M'),
            request.end_time.strftime('%H:%M'),
        )
        return appointment
