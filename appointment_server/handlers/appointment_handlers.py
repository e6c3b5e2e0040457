import logging

from pydantic import ValidationError

from appointment_server.booking import BookingRequest
from appointment_server.errors import CommandError
from appointment_server.handlers.context import HandlerContext
from appointment_server.models.appointment import Appointment, AppointmentStatus
from appointment_server.models.user import Role
from appointment_server.protocol import Protocol

logger = logging.getLogger(__name__)

UNKNOWN_PARTY = 'unknown'


def parse_booking_payload(ctx: HandlerContext) -> BookingRequest:
    fields = ctx.fields(4)
    try:
        return BookingRequest(
            staff_id=fields[0].strip(),
            date=fields[1],
            start_time=fields[2],
            end_time=fields[3],
        )
    except ValidationError as exc:
        raise CommandError('InvalidData') from exc


def format_appointment_row(appointment: Appointment, other_party: str | None) -> str:
    return Protocol.join_fields(
        appointment.id,
        other_party or UNKNOWN_PARTY,
        appointment.date.isoformat(),
        appointment.start_time.strftime('%H:%M'),
        appointment.status,
    )


def handle_book(ctx: HandlerContext) -> list[str]:
    """BOOK staffId|date|start|end

    Checks run in a fixed order: payload shape, working hours, lunch break,
    then overlap with the staff member's existing appointments that day.
    """
    state = ctx.require_login()
    request = parse_booking_payload(ctx)
    ctx.booking.book(state.user_id, request)
    return [Protocol.ok('Booked (Pending Confirmation)')]


def handle_my_appointments(ctx: HandlerContext) -> list[str]:
    state = ctx.require_login()

    # Staff see who booked them; everyone else sees whom they booked.
    if state.role is Role.EMPLOYEE:
        appointments = ctx.appointments.list_by_staff(state.user_id)
        other_party_ids = [appointment.customer_id for appointment in appointments]
    else:
        appointments = ctx.appointments.list_by_customer(state.user_id)
        other_party_ids = [appointment.staff_id for appointment in appointments]

    names: dict[int, str | None] = {}
    for user_id in other_party_ids:
        if user_id not in names:
            names[user_id] = ctx.users.username_by_id(user_id)

    return Protocol.list_frame(
        'APPT',
        (
            format_appointment_row(appointment, names[other_party_id])
            for appointment, other_party_id in zip(appointments, other_party_ids)
        ),
    )


def handle_confirm(ctx: HandlerContext) -> list[str]:
    """CONFIRM appointmentId, allowed only for the staff member who owns the slot."""
    ctx.require_login()
    state = ctx.require_role(Role.EMPLOYEE, denied='PermissionDenied')

    try:
        appointment_id = int(ctx.payload.strip())
    except ValueError as exc:
        raise CommandError('ConfirmFailed') from exc

    appointment = ctx.appointments.find_by_id(appointment_id)
    if appointment is None:
        raise CommandError('ConfirmFailed')
    if appointment.staff_id != state.user_id:
        raise CommandError('PermissionDenied')
    if appointment.status != AppointmentStatus.PENDING.value:
        raise CommandError('ConfirmFailed')

    if not ctx.appointments.update_status(appointment_id, AppointmentStatus.CONFIRMED):
        raise CommandError('ConfirmFailed')

    logger.info('Staff %s confirmed appointment %s', state.user_id, appointment_id)
    return [Protocol.ok('Confirmed')]
