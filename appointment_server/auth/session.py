"""Per-connection authentication state.

A ``Session`` belongs to exactly one connection worker and is never handed to
another thread, so it carries no locking.
"""

from dataclasses import dataclass

from appointment_server.models.user import Role


@dataclass(frozen=True)
class Anonymous:
    pass


@dataclass(frozen=True)
class Authenticated:
    user_id: int
    username: str
    role: Role


SessionState = Anonymous | Authenticated

ANONYMOUS = Anonymous()


class Session:
    def __init__(self) -> None:
        self.state: SessionState = ANONYMOUS

    @property
    def is_authenticated(self) -> bool:
        return isinstance(self.state, Authenticated)

    @property
    def role(self) -> Role | None:
        if isinstance(self.state, Authenticated):
            return self.state.role
        return None

    def authenticate(self, user_id: int, username: str, role: Role) -> Authenticated:
        self.state = Authenticated(user_id=user_id, username=username, role=role)
        return self.state
