import errno
import socket
import threading

import pytest

from appointment_server.dispatcher import Dispatcher
from appointment_server.models.user import Role, User
from appointment_server.repositories.appointments import AppointmentRepository
from appointment_server.repositories.users import UserRepository
from appointment_server.server import AppointmentServer


class _Client:
    def __init__(self, address):
        self.sock = socket.create_connection(address, timeout=5)
        self.rfile = self.sock.makefile('rb')

    def send(self, line: str) -> None:
        self.sock.sendall(f'{line}\n'.encode('utf-8'))

    def read(self) -> str:
        try:
            return self.rfile.readline().decode('utf-8').rstrip('\n')
        except ConnectionResetError:
            return ''

    def read_list(self) -> list[str]:
        lines = [self.read()]
        if lines[0].startswith('ERROR'):
            return lines
        while lines[-1] != 'END' and not lines[-1].startswith('ERROR'):
            lines.append(self.read())
        return lines

    def close(self) -> None:
        self.rfile.close()
        self.sock.close()


class _FlakyListener:
    """Listener whose first accept() fails the way an exhausted fd table does."""

    def __init__(self, listener: socket.socket):
        self.listener = listener
        self.failures = 1

    def accept(self):
        if self.failures:
            self.failures -= 1
            raise OSError(errno.EMFILE, 'Too many open files')
        return self.listener.accept()

    def getsockname(self):
        return self.listener.getsockname()

    def close(self) -> None:
        self.listener.close()


def _serve(server: AppointmentServer) -> threading.Thread:
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return thread


def _start(server: AppointmentServer) -> threading.Thread:
    server.bind()
    return _serve(server)


@pytest.fixture
def stores(file_session_factory, hasher):
    users = UserRepository(file_session_factory)
    appointments = AppointmentRepository(file_session_factory)
    salt, digest = hasher.new_credentials('secret')
    users.insert(User(username='bob', password_salt=salt, password_hash=digest, role=Role.EMPLOYEE.value))
    return users, appointments


@pytest.fixture
def running_server(stores, hasher):
    users, appointments = stores
    server = AppointmentServer(Dispatcher(users, appointments, hasher), host='127.0.0.1', port=0, max_connections=4)
    thread = _start(server)
    try:
        yield server
    finally:
        server.shutdown()
        thread.join(timeout=10)


def test_session_over_tcp(running_server: AppointmentServer, stores) -> None:
    users, _ = stores
    staff_id = users.find_by_username('bob').id
    client = _Client(running_server.address)
    try:
        assert client.read() == 'WELCOME AppointmentSystem'

        client.send('MY_APPTS')
        assert client.read() == 'ERROR NotLoggedIn'

        client.send('REGISTER alice|secret')
        assert client.read() == 'OK Registered'

        client.send('')
        client.send('PING')
        client.send('LOGIN alice|secret')
        assert client.read().endswith('|alice|USER')

        client.send(f'BOOK {staff_id}|2026-01-05|09:00|10:00')
        assert client.read() == 'OK Booked (Pending Confirmation)'

        client.send('LIST_EMPLOYEES')
        assert client.read_list() == ['OK COUNT 1', f'EMP {staff_id}:bob', 'END']

        client.send('MY_APPTS')
        lines = client.read_list()
        assert lines[0] == 'OK COUNT 1'
        assert lines[1].split('|')[1:] == ['bob', '2026-01-05', '09:00', 'PENDING']

        client.send('QUIT')
        assert client.read() == 'OK BYE'
        assert client.read() == ''
    finally:
        client.close()


def test_sessions_are_independent_per_connection(running_server: AppointmentServer) -> None:
    first = _Client(running_server.address)
    second = _Client(running_server.address)
    try:
        first.read()
        second.read()

        first.send('LOGIN bob|secret')
        assert first.read().startswith('OK ')

        second.send('MY_INFO')
        assert second.read() == 'ERROR NotLoggedIn'

        first.send('MY_INFO')
        assert first.read_list() == ['OK bob EMPLOYEE', 'END']
    finally:
        first.close()
        second.close()


def test_connections_beyond_capacity_are_rejected(stores, hasher) -> None:
    users, appointments = stores
    server = AppointmentServer(Dispatcher(users, appointments, hasher), host='127.0.0.1', port=0, max_connections=1)
    thread = _start(server)
    first = _Client(server.address)
    try:
        assert first.read() == 'WELCOME AppointmentSystem'

        second = _Client(server.address)
        try:
            assert second.read() == 'ERROR ServerBusy'
        finally:
            second.close()
    finally:
        first.close()
        server.shutdown()
        thread.join(timeout=10)


def test_shutdown_disconnects_open_clients(stores, hasher) -> None:
    users, appointments = stores
    server = AppointmentServer(Dispatcher(users, appointments, hasher), host='127.0.0.1', port=0)
    thread = _start(server)
    client = _Client(server.address)
    try:
        assert client.read() == 'WELCOME AppointmentSystem'

        server.shutdown()
        thread.join(timeout=10)

        assert not thread.is_alive()
        assert client.read() == ''
    finally:
        client.close()


def test_oversized_line_closes_connection(stores, hasher) -> None:
    users, appointments = stores
    server = AppointmentServer(
        Dispatcher(users, appointments, hasher),
        host='127.0.0.1',
        port=0,
        max_line_bytes=32,
    )
    thread = _start(server)
    client = _Client(server.address)
    try:
        client.read()
        client.send('REGISTER ' + 'x' * 100 + '|secret')

        assert client.read() == ''
    finally:
        client.close()
        server.shutdown()
        thread.join(timeout=10)


def test_failed_accept_does_not_stop_the_server(stores, hasher) -> None:
    users, appointments = stores
    server = AppointmentServer(Dispatcher(users, appointments, hasher), host='127.0.0.1', port=0)
    server.bind()
    flaky = _FlakyListener(server._listener)
    server._listener = flaky
    thread = _serve(server)
    try:
        client = _Client(server.address)
        try:
            assert client.read() == 'WELCOME AppointmentSystem'
            assert flaky.failures == 0
            assert thread.is_alive()
        finally:
            client.close()
    finally:
        server.shutdown()
        thread.join(timeout=10)
