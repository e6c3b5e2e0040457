"""User model definitions."""

import enum

from sqlalchemy import Column, Integer, LargeBinary, String
from appointment_server.database import Base


class Role(str, enum.Enum):
    USER = "USER"
    EMPLOYEE = "EMPLOYEE"
    ADMIN = "ADMIN"

    @classmethod
    def parse(cls, value: str | None, default: "Role | None" = None) -> "Role":
        normalized = (value or "").strip().upper()
        if not normalized:
            if default is None:
                raise ValueError("Role is required.")
            return default
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(f"Unknown role: {value!r}") from exc


class User(Base):
    """Represents an account that can log in to the booking server."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password_salt = Column(LargeBinary, nullable=False)
    password_hash = Column(LargeBinary, nullable=False)
    role = Column(String, nullable=False, default=Role.USER.value)  # USER/EMPLOYEE/ADMIN
