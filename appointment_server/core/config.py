import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./appointments.db")

SERVER_HOST = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT = _get_int(os.getenv("SERVER_PORT"), 5555)
MAX_CONNECTIONS = _get_int(os.getenv("MAX_CONNECTIONS"), 64)
CLIENT_IDLE_TIMEOUT_SECONDS = _get_int(os.getenv("CLIENT_IDLE_TIMEOUT_SECONDS"), 0)
MAX_LINE_BYTES = _get_int(os.getenv("MAX_LINE_BYTES"), 8192)

DEFAULT_PEPPER = "ChangeThisPepperForProd"
PASSWORD_PEPPER = os.getenv("PASSWORD_PEPPER", DEFAULT_PEPPER)
PASSWORD_HASH_ITERATIONS = _get_int(os.getenv("PASSWORD_HASH_ITERATIONS"), 65536)
PASSWORD_SALT_BYTES = _get_int(os.getenv("PASSWORD_SALT_BYTES"), 16)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

SEED_DEFAULT_USERS = _get_bool(os.getenv("SEED_DEFAULT_USERS"), default=True)
SEED_ADMIN_USERNAME = os.getenv("SEED_ADMIN_USERNAME", "admin")
SEED_ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "admin123")
SEED_EMPLOYEE_USERNAME = os.getenv("SEED_EMPLOYEE_USERNAME", "employee1")
SEED_EMPLOYEE_PASSWORD = os.getenv("SEED_EMPLOYEE_PASSWORD", "emp123")


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and PASSWORD_PEPPER == DEFAULT_PEPPER:
        raise RuntimeError("PASSWORD_PEPPER must be set in production.")
    if MAX_CONNECTIONS < 1:
        raise RuntimeError("MAX_CONNECTIONS must be at least 1.")
