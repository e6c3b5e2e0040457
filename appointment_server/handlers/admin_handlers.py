import logging

from pydantic import BaseModel, ValidationError, field_validator

from appointment_server.errors import CommandError
from appointment_server.handlers.account_handlers import create_account, parse_register_payload
from appointment_server.handlers.context import HandlerContext
from appointment_server.models.user import Role
from appointment_server.protocol import Protocol

logger = logging.getLogger(__name__)

ADMIN_DENIED = 'Denied'


class UpdateUserRequest(BaseModel):
    id: int
    username: str
    password: str
    role: Role

    @field_validator('username')
    @classmethod
    def validate_username(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Username is required.')
        return normalized

    @field_validator('role', mode='before')
    @classmethod
    def validate_role(cls, value):
        if isinstance(value, Role):
            return value
        return Role.parse(value)


def handle_admin_list_users(ctx: HandlerContext) -> list[str]:
    ctx.require_role(Role.ADMIN, denied=ADMIN_DENIED)
    users = ctx.users.list_all()
    return Protocol.list_frame(
        'USER',
        (Protocol.join_fields(user.id, user.username, user.role) for user in users),
    )


def handle_admin_add_user(ctx: HandlerContext) -> list[str]:
    state = ctx.require_role(Role.ADMIN, denied=ADMIN_DENIED)
    user = create_account(ctx, parse_register_payload(ctx))
    logger.info('Admin %s added user %s', state.username, user.id)
    return [Protocol.ok('Registered')]


def handle_admin_update_user(ctx: HandlerContext) -> list[str]:
    """ADMIN_UPDATE_USER id|username|password|role

    An empty password keeps the stored credential; anything else is re-salted
    and re-hashed.
    """
    state = ctx.require_role(Role.ADMIN, denied=ADMIN_DENIED)
    fields = ctx.fields(4)
    try:
        request = UpdateUserRequest(
            id=fields[0].strip(),
            username=fields[1],
            password=fields[2],
            role=fields[3],
        )
    except ValidationError as exc:
        raise CommandError('BadPayload') from exc

    user = ctx.users.find_by_id(request.id)
    if user is None:
        raise CommandError('NotFound')

    user.username = request.username
    user.role = request.role.value
    if request.password.strip():
        user.password_salt, user.password_hash = ctx.hasher.new_credentials(request.password)

    ctx.users.update(user)
    logger.info('Admin %s updated user %s', state.username, request.id)
    return [Protocol.ok('Updated')]


def handle_admin_delete_user(ctx: HandlerContext) -> list[str]:
    state = ctx.require_role(Role.ADMIN, denied=ADMIN_DENIED)
    try:
        user_id = int(ctx.payload.strip())
    except ValueError as exc:
        raise CommandError('DeleteFailed') from exc

    if not ctx.users.delete(user_id):
        raise CommandError('DeleteFailed')

    logger.info('Admin %s deleted user %s', state.username, user_id)
    return [Protocol.ok('Deleted')]
