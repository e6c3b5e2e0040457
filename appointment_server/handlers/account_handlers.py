import logging

from pydantic import BaseModel, ValidationError, field_validator
from sqlalchemy.exc import IntegrityError

from appointment_server.errors import CommandError
from appointment_server.handlers.context import HandlerContext
from appointment_server.models.user import Role, User
from appointment_server.protocol import LIST_END, Protocol

logger = logging.getLogger(__name__)


class RegisterRequest(BaseModel):
    username: str
    password: str
    role: Role = Role.USER

    @field_validator('username')
    @classmethod
    def validate_username(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Username is required.')
        return normalized

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if not value:
            raise ValueError('Password is required.')
        return value

    @field_validator('role', mode='before')
    @classmethod
    def validate_role(cls, value):
        if isinstance(value, Role):
            return value
        return Role.parse(value, default=Role.USER)


class LoginRequest(BaseModel):
    username: str
    password: str

    @field_validator('username')
    @classmethod
    def validate_username(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Username is required.')
        return normalized


def parse_register_payload(ctx: HandlerContext) -> RegisterRequest:
    fields = ctx.fields(2)
    try:
        return RegisterRequest(
            username=fields[0],
            password=fields[1],
            role=fields[2] if len(fields) > 2 else None,
        )
    except ValidationError as exc:
        raise CommandError('BadPayload') from exc


def create_account(ctx: HandlerContext, request: RegisterRequest) -> User:
    if ctx.users.find_by_username(request.username) is not None:
        raise CommandError('Exists')

    salt, digest = ctx.hasher.new_credentials(request.password)
    try:
        user = ctx.users.insert(
            User(
                username=request.username,
                password_salt=salt,
                password_hash=digest,
                role=request.role.value,
            )
        )
    except IntegrityError as exc:
        # Another connection registered the same name between the lookup and the insert.
        raise CommandError('Exists') from exc

    logger.info('Registered user %s (id=%s, role=%s)', user.username, user.id, user.role)
    return user


def handle_register(ctx: HandlerContext) -> list[str]:
    """REGISTER username|password|[role]"""
    create_account(ctx, parse_register_payload(ctx))
    return [Protocol.ok('Registered')]


def handle_login(ctx: HandlerContext) -> list[str]:
    """LOGIN username|password

    A failed attempt leaves the connection's current identity in place.
    """
    fields = ctx.fields(2)
    try:
        request = LoginRequest(username=fields[0], password=fields[1])
    except ValidationError as exc:
        raise CommandError('BadPayload') from exc

    user = ctx.users.find_by_username(request.username)
    if user is None or not ctx.hasher.verify(request.password, user.password_salt, user.password_hash):
        logger.info('Failed login for %s', request.username)
        raise CommandError('AuthFailed')

    state = ctx.session.authenticate(user.id, user.username, Role(user.role))
    logger.info('User %s logged in (id=%s)', state.username, state.user_id)
    return [Protocol.ok(Protocol.join_fields(state.user_id, state.username, state.role.value))]


def handle_list_employees(ctx: HandlerContext) -> list[str]:
    employees = ctx.users.list_employees()
    return Protocol.list_frame('EMP', (f'{user_id}:{username}' for user_id, username in employees))


def handle_my_info(ctx: HandlerContext) -> list[str]:
    state = ctx.require_login()
    user = ctx.users.find_by_id(state.user_id)
    if user is None:
        raise CommandError('GetInfoFailed')
    return [Protocol.ok(user.username, user.role), LIST_END]
