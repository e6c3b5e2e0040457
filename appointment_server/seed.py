"""Create the default admin and staff accounts on an empty database."""

import logging

from appointment_server.auth.passwords import PasswordHasher
from appointment_server.core import config
from appointment_server.models.user import Role, User
from appointment_server.repositories.users import UserRepository

logger = logging.getLogger(__name__)


def ensure_user(users: UserRepository, hasher: PasswordHasher, username: str, password: str, role: Role) -> User:
    existing = users.find_by_username(username)
    if existing is not None:
        return existing

    salt, digest = hasher.new_credentials(password)
    user = users.insert(User(username=username, password_salt=salt, password_hash=digest, role=role.value))
    logger.info('Seeded %s account %s', role.value, username)
    return user


def seed_default_users(users: UserRepository, hasher: PasswordHasher) -> None:
    ensure_user(users, hasher, config.SEED_ADMIN_USERNAME, config.SEED_ADMIN_PASSWORD, Role.ADMIN)
    ensure_user(users, hasher, config.SEED_EMPLOYEE_USERNAME, config.SEED_EMPLOYEE_PASSWORD, Role.EMPLOYEE)
