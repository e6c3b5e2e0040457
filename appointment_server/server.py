import logging
import socket
import threading
from concurrent.futures import ThreadPoolExecutor

from appointment_server.auth.session import Session
from appointment_server.core import config
from appointment_server.dispatcher import Dispatcher
from appointment_server.protocol import WELCOME, LineTooLongError, Protocol

logger = logging.getLogger(__name__)

ACCEPT_POLL_SECONDS = 0.5


class AppointmentServer:
    """Accepts connections and runs one dispatcher loop per client.

    Workers come from a bounded pool. A connection arriving while every worker
    is busy is told ``ERROR ServerBusy`` and closed.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        host: str = config.SERVER_HOST,
        port: int = config.SERVER_PORT,
        max_connections: int = config.MAX_CONNECTIONS,
        idle_timeout: float | None = config.CLIENT_IDLE_TIMEOUT_SECONDS or None,
        max_line_bytes: int = config.MAX_LINE_BYTES,
    ):
        self.dispatcher = dispatcher
        self.host = host
        self.port = port
        self.max_connections = max_connections
        self.idle_timeout = idle_timeout
        self.max_line_bytes = max_line_bytes

        self._listener: socket.socket | None = None
        self._pool: ThreadPoolExecutor | None = None
        self._slots = threading.BoundedSemaphore(max_connections)
        self._stopping = threading.Event()
        self._serving = threading.Event()
        self._stopped = threading.Event()
        self._connections: set[socket.socket] = set()
        self._connections_lock = threading.Lock()

    @property
    def address(self) -> tuple[str, int]:
        if self._listener is None:
            raise RuntimeError('Server is not bound.')
        return self._listener.getsockname()[:2]

    def bind(self) -> None:
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.bind((self.host, self.port))
        listener.listen()
        listener.settimeout(ACCEPT_POLL_SECONDS)
        self._listener = listener
        self._pool = ThreadPoolExecutor(
            max_workers=self.max_connections,
            thread_name_prefix='appointment-conn',
        )
        logger.info('Server listening on %s:%s', *self.address)

    def serve_forever(self) -> None:
        if self._listener is None:
            self.bind()

        self._serving.set()
        try:
            while not self._stopping.is_set():
                try:
                    conn, addr = self._listener.accept()
                except socket.timeout:
                    continue
                except OSError:
                    if self._stopping.is_set():
                        break
                    logger.exception('accept() failed, retrying')
                    self._stopping.wait(ACCEPT_POLL_SECONDS)
                    continue

                if not self._slots.acquire(blocking=False):
                    logger.warning('Rejecting %s: %s connections already open', addr, self.max_connections)
                    self._reject(conn)
                    continue

                conn.settimeout(self.idle_timeout)
                with self._connections_lock:
                    self._connections.add(conn)
                self._pool.submit(self.handle_client, conn, addr)
        finally:
            self._drain()

    def request_stop(self) -> None:
        """Ask the accept loop to exit. Safe to call from a signal handler."""
        self._stopping.set()

    def shutdown(self) -> None:
        """Stop accepting, disconnect open clients and wait for their workers."""
        self.request_stop()
        if self._serving.is_set():
            self._stopped.wait()

    def handle_client(self, conn: socket.socket, addr) -> None:
        logger.info('Connection from %s', addr)
        session = Session()
        try:
            with conn.makefile('rb') as rfile:
                conn.sendall(Protocol.encode([WELCOME]))
                while True:
                    line = Protocol.read_line(rfile, self.max_line_bytes)
                    if line is None:
                        break

                    reply = self.dispatcher.dispatch(session, line)
                    if reply.lines:
                        conn.sendall(Protocol.encode(reply.lines))
                    if reply.close:
                        break
        except socket.timeout:
            logger.info('Closing idle connection from %s', addr)
        except LineTooLongError as exc:
            logger.warning('Dropping %s: %s', addr, exc)
        except OSError as exc:
            logger.info('Connection from %s ended: %s', addr, exc)
        except Exception:
            logger.exception('Unexpected failure serving %s', addr)
        finally:
            with self._connections_lock:
                self._connections.discard(conn)
            conn.close()
            self._slots.release()
            logger.info('Connection closed from %s', addr)

    def _reject(self, conn: socket.socket) -> None:
        try:
            conn.sendall(Protocol.encode([Protocol.error('ServerBusy')]))
        except OSError:
            pass
        finally:
            conn.close()

    def _drain(self) -> None:
        if self._listener is not None:
            self._listener.close()

        with self._connections_lock:
            connections = list(self._connections)
        for conn in connections:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass

        if self._pool is not None:
            self._pool.shutdown(wait=True)
        logger.info('Server stopped')
        self._stopped.set()
