from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from appointment_server.models.user import Role, User


class UserRepository:
    """Credential store backed by the ``users`` table.

    Every call runs in its own session, so one instance is safe to share
    between connection workers.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def find_by_username(self, username: str) -> User | None:
        with self._session_factory() as db:
            return db.query(User).filter(User.username == username).first()

    def find_by_id(self, user_id: int) -> User | None:
        with self._session_factory() as db:
            return db.get(User, user_id)

    def insert(self, user: User) -> User:
        with self._session_factory() as db:
            try:
                db.add(user)
                db.commit()
                db.refresh(user)
            except SQLAlchemyError:
                db.rollback()
                raise
            return user

    def update(self, user: User) -> User:
        with self._session_factory() as db:
            try:
                merged = db.merge(user)
                db.commit()
                db.refresh(merged)
            except SQLAlchemyError:
                db.rollback()
                raise
            return merged

    def delete(self, user_id: int) -> bool:
        with self._session_factory() as db:
            try:
                user = db.get(User, user_id)
                if user is None:
                    return False
                db.delete(user)
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise
            return True

    def list_all(self) -> list[User]:
        with self._session_factory() as db:
            return db.query(User).order_by(User.id.asc()).all()

    def list_employees(self) -> list[tuple[int, str]]:
        with self._session_factory() as db:
            rows = db.query(User.id, User.username).filter(
                User.role == Role.EMPLOYEE.value,
            ).order_by(User.id.asc()).all()
            return [(user_id, username) for user_id, username in rows]

    def username_by_id(self, user_id: int) -> str | None:
        with self._session_factory() as db:
            return db.query(User.username).filter(User.id == user_id).scalar()
