"""Line framing for the appointment protocol.

Requests are ``COMMAND[ payload]`` lines. Responses are ``OK ...``,
``ERROR <Kind>``, or a list frame: ``OK COUNT n``, n tagged rows, ``END``.
"""

from typing import Iterable, NamedTuple


WELCOME = "WELCOME AppointmentSystem"
FIELD_SEPARATOR = "|"
LIST_END = "END"
HEARTBEAT = "PING"


class LineTooLongError(ConnectionError):
    pass


class Reply(NamedTuple):
    lines: list[str]
    close: bool = False


class Protocol:
    ENCODING = "utf-8"

    @staticmethod
    def split_command(line: str) -> tuple[str, str]:
        command, _, payload = line.partition(" ")
        return command.upper(), payload

    @staticmethod
    def split_fields(payload: str) -> list[str]:
        return payload.split(FIELD_SEPARATOR)

    @staticmethod
    def ok(*parts: object) -> str:
        return " ".join(["OK", *(str(part) for part in parts)])

    @staticmethod
    def error(kind: str) -> str:
        return f"ERROR {kind}"

    @staticmethod
    def join_fields(*fields: object) -> str:
        return FIELD_SEPARATOR.join(str(field) for field in fields)

    @staticmethod
    def list_frame(tag: str, rows: Iterable[str]) -> list[str]:
        body = [f"{tag} {row}" for row in rows]
        return [f"OK COUNT {len(body)}", *body, LIST_END]

    @classmethod
    def read_line(cls, rfile, max_bytes: int) -> str | None:
        """Read one request line, or ``None`` once the peer has closed."""
        raw = rfile.readline(max_bytes + 1)
        if not raw:
            return None
        if len(raw) > max_bytes and not raw.endswith(b"\n"):
            raise LineTooLongError(f"Request line exceeds {max_bytes} bytes")
        return raw.decode(cls.ENCODING, errors="replace").strip()

    @classmethod
    def encode(cls, lines: Iterable[str]) -> bytes:
        return "".join(f"{line}\n" for line in lines).encode(cls.ENCODING)
