import logging
from typing import Callable, Dict, NamedTuple

from appointment_server.auth.passwords import PasswordHasher
from appointment_server.auth.session import Session
from appointment_server.booking import BookingEngine
from appointment_server.errors import CommandError
from appointment_server.handlers import account_handlers, admin_handlers, appointment_handlers
from appointment_server.handlers.context import HandlerContext
from appointment_server.protocol import HEARTBEAT, Protocol, Reply
from appointment_server.repositories.appointments import AppointmentRepository
from appointment_server.repositories.users import UserRepository

logger = logging.getLogger(__name__)


class Command(NamedTuple):
    handler: Callable[[HandlerContext], list[str]]
    # Written when the handler fails for any reason other than a CommandError.
    failure: str


HANDLERS: Dict[str, Command] = {
    'REGISTER': Command(account_handlers.handle_register, 'RegisterFailed'),
    'LOGIN': Command(account_handlers.handle_login, 'AuthError'),
    'LIST_EMPLOYEES': Command(account_handlers.handle_list_employees, 'ListEmps'),
    'MY_INFO': Command(account_handlers.handle_my_info, 'GetInfoFailed'),
    'BOOK': Command(appointment_handlers.handle_book, 'InvalidData'),
    'MY_APPTS': Command(appointment_handlers.handle_my_appointments, 'ApptsFailed'),
    'CONFIRM': Command(appointment_handlers.handle_confirm, 'ConfirmFailed'),
    'ADMIN_LIST_USERS': Command(admin_handlers.handle_admin_list_users, 'ListFailed'),
    'ADMIN_ADD_USER': Command(admin_handlers.handle_admin_add_user, 'RegisterFailed'),
    'ADMIN_UPDATE_USER': Command(admin_handlers.handle_admin_update_user, 'UpdateFailed'),
    'ADMIN_DELETE_USER': Command(admin_handlers.handle_admin_delete_user, 'DeleteFailed'),
}

QUIT = 'QUIT'


class Dispatcher:
    """Turns one request line into the reply for it.

    A dispatcher holds only the shared stores, so every connection worker can
    use the same instance with its own ``Session``.
    """

    def __init__(
        self,
        users: UserRepository,
        appointments: AppointmentRepository,
        hasher: PasswordHasher,
        booking: BookingEngine | None = None,
    ):
        self.users = users
        self.appointments = appointments
        self.hasher = hasher
        self.booking = booking or BookingEngine(users, appointments)

    def dispatch(self, session: Session, line: str) -> Reply:
        line = line.strip()
        if not line:
            return Reply([])

        command, payload = Protocol.split_command(line)

        # Heartbeats get no reply so they cannot interleave with a list frame.
        if command == HEARTBEAT:
            return Reply([])

        if command == QUIT:
            return Reply([Protocol.ok('BYE')], close=True)

        entry = HANDLERS.get(command)
        if entry is None:
            logger.warning('Unknown command %r', command)
            return Reply([Protocol.error('UnknownCommand')])

        ctx = HandlerContext(
            session=session,
            payload=payload,
            users=self.users,
            appointments=self.appointments,
            hasher=self.hasher,
            booking=self.booking,
        )
        try:
            return Reply(entry.handler(ctx))
        except CommandError as exc:
            return Reply([Protocol.error(exc.kind)])
        except Exception:
            logger.exception('Handler for %s failed', command)
            return Reply([Protocol.error(entry.failure)])
