import os

import pytest

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from appointment_server.auth.passwords import PasswordHasher  # noqa: E402
from appointment_server.auth.session import Session  # noqa: E402
from appointment_server.database import Base, make_engine, make_session_factory  # noqa: E402
from appointment_server.dispatcher import Dispatcher  # noqa: E402
from appointment_server.models.appointment import Appointment  # noqa: E402
from appointment_server.models.user import Role, User  # noqa: E402
from appointment_server.repositories.appointments import AppointmentRepository  # noqa: E402
from appointment_server.repositories.users import UserRepository  # noqa: E402


@pytest.fixture
def session_factory():
    engine = make_engine('sqlite://')
    Base.metadata.create_all(bind=engine, tables=[User.__table__, Appointment.__table__])
    try:
        yield make_session_factory(engine)
    finally:
        Base.metadata.drop_all(bind=engine, tables=[Appointment.__table__, User.__table__])
        engine.dispose()


@pytest.fixture
def users(session_factory) -> UserRepository:
    return UserRepository(session_factory)


@pytest.fixture
def appointments(session_factory) -> AppointmentRepository:
    return AppointmentRepository(session_factory)


@pytest.fixture
def hasher() -> PasswordHasher:
    # Low iteration count keeps the suite fast; the algorithm is unchanged.
    return PasswordHasher(pepper='test-pepper', iterations=1000, salt_bytes=16)


@pytest.fixture
def dispatcher(users, appointments, hasher) -> Dispatcher:
    return Dispatcher(users, appointments, hasher)


@pytest.fixture
def make_user(users, hasher):
    def _make_user(username: str, password: str = 'secret', role: Role = Role.USER) -> User:
        salt, digest = hasher.new_credentials(password)
        return users.insert(User(username=username, password_salt=salt, password_hash=digest, role=role.value))

    return _make_user


@pytest.fixture
def login(dispatcher):
    def _login(username: str, password: str = 'secret') -> Session:
        session = Session()
        reply = dispatcher.dispatch(session, f'LOGIN {username}|{password}')
        assert reply.lines[0].startswith('OK '), reply.lines
        return session

    return _login


@pytest.fixture
def file_session_factory(tmp_path):
    # Threaded tests need real per-connection transactions, which an in-memory StaticPool cannot give.
    engine = make_engine(f"sqlite:///{tmp_path / 'appointments.db'}")
    Base.metadata.create_all(bind=engine, tables=[User.__table__, Appointment.__table__])
    try:
        yield make_session_factory(engine)
    finally:
        engine.dispose()
