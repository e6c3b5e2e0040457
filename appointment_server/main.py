"""Start the appointment server.

Usage:
    python -m appointment_server.main [port]
"""
import argparse
import logging
import signal

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from appointment_server.auth.passwords import PasswordHasher
from appointment_server.core import config
from appointment_server.database import Base, SessionLocal, engine
from appointment_server.dispatcher import Dispatcher
from appointment_server.models import appointment, user
from appointment_server.repositories.appointments import AppointmentRepository
from appointment_server.repositories.users import UserRepository
from appointment_server.seed import seed_default_users
from appointment_server.server import AppointmentServer

logger = logging.getLogger(__name__)


def initialize_database(bind: Engine, users: UserRepository, hasher: PasswordHasher) -> None:
    try:
        Base.metadata.create_all(bind=bind, tables=[user.User.__table__, appointment.Appointment.__table__])
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL.')
        raise

    if config.SEED_DEFAULT_USERS:
        try:
            seed_default_users(users, hasher)
        except SQLAlchemyError:
            logger.exception('Seeding default users failed.')


def build_server(port: int) -> AppointmentServer:
    users = UserRepository(SessionLocal)
    appointments = AppointmentRepository(SessionLocal)
    hasher = PasswordHasher()

    initialize_database(engine, users, hasher)

    dispatcher = Dispatcher(users, appointments, hasher)
    return AppointmentServer(dispatcher, port=port)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Appointment booking server.')
    parser.add_argument('port', nargs='?', type=int, default=config.SERVER_PORT)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format='%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s',
    )
    config.validate_runtime_config()
    args = parse_args(argv)

    server = build_server(args.port)

    def _stop(signum, _frame):
        logger.info('Received signal %s, shutting down', signum)
        server.request_stop()

    signal.signal(signal.SIGTERM, _stop)
    signal.signal(signal.SIGINT, _stop)

    server.serve_forever()


if __name__ == '__main__':
    main()
