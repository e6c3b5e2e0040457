from appointment_server.auth.passwords import PasswordHasher
from appointment_server.auth.session import Authenticated, Session
from appointment_server.booking import BookingEngine
from appointment_server.errors import CommandError
from appointment_server.models.user import Role
from appointment_server.protocol import Protocol
from appointment_server.repositories.appointments import AppointmentRepository
from appointment_server.repositories.users import UserRepository


class HandlerContext:
    def __init__(
        self,
        session: Session,
        payload: str,
        users: UserRepository,
        appointments: AppointmentRepository,
        hasher: PasswordHasher,
        booking: BookingEngine,
    ):
        self.session = session
        self.payload = payload
        self.users = users
        self.appointments = appointments
        self.hasher = hasher
        self.booking = booking

    def fields(self, minimum: int) -> list[str]:
        fields = Protocol.split_fields(self.payload)
        if len(fields) < minimum:
            raise CommandError("BadPayload")
        return fields

    def require_login(self) -> Authenticated:
        state = self.session.state
        if not isinstance(state, Authenticated):
            raise CommandError("NotLoggedIn")
        return state

    def require_role(self, role: Role, denied: str) -> Authenticated:
        state = self.session.state
        if not isinstance(state, Authenticated) or state.role is not role:
            raise CommandError(denied)
        return state
