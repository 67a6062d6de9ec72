"""
=============================================================================
SHORTENER SERVER
=============================================================================

Wires the pieces together:

    ┌────────────────────────────────────────────────────────────────────┐
    │                         ShortenerServer                            │
    │                                                                    │
    │   SocketServer ──accept──► ThreadPool.submit(_process_connection)  │
    │                                      │                             │
    │                                      ▼                             │
    │          Connection.read_request() → RequestParser.parse()         │
    │                                      │                             │
    │                                      ▼                             │
    │   LoggingMiddleware → BasicAuthMiddleware → Router → LinkHandler   │
    │                                      │                             │
    │                                      ▼                             │
    │                          CodeStore (one lock)                      │
    └────────────────────────────────────────────────────────────────────┘

=============================================================================
FAILURE HANDLING
=============================================================================

Every failure is answered on the connection it happened on and goes no
further:

    ┌──────────────────────────┬───────────┬───────────────────────────┐
    │ Failure                  │ Status    │ Connection afterwards     │
    ├──────────────────────────┼───────────┼───────────────────────────┤
    │ HTTPParseError           │ its code  │ closed                    │
    │ read timed out           │ 408       │ closed                    │
    │ handler raised           │ 500       │ kept if keep-alive        │
    │ header with CR/LF/NUL    │ 500       │ closed                    │
    │ worker queue full        │ 503       │ closed                    │
    │ client reset / EOF       │ (none)    │ closed                    │
    └──────────────────────────┴───────────┴───────────────────────────┘

=============================================================================
"""

import logging
from typing import Optional, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState, ThreadPool
from .handlers import LinkHandler
from .http import (
    HTTPParseError,
    HTTPStatus,
    RequestParser,
    Router,
    error_response,
    internal_error,
)
from .middleware import MiddlewarePipeline, LoggingMiddleware, BasicAuthMiddleware
from .store import CodeStore


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ShortenerServer:
    """
    The URL shortener HTTP server.

        config = ServerConfig.from_env()
        server = ShortenerServer(config)
        server.run()        # blocks until SIGINT/SIGTERM or shutdown()

    Args:
        config: Validated on construction.
        store: Code store to serve from. A fresh empty one by default.

    Raises:
        ConfigError: If the config is invalid.
    """

    def __init__(self, config: ServerConfig, store: Optional[CodeStore] = None):
        self.config = config
        self.config.validate()

        self.store = store if store is not None else CodeStore()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self.router = Router()
        self.links = LinkHandler(self.store, base_url=self.config.base_url)
        self.links.register(self.router)

        self.middleware = MiddlewarePipeline()
        self.middleware.add(LoggingMiddleware(log_format=self.config.log_format))
        self.middleware.add(BasicAuthMiddleware(self.config.credentials, realm=self.config.realm))

        self._handler = self.middleware.wrap(self.router.handle)
        self._running = False

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port) once listening."""
        return self._socket_server.address

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, configure_logging: bool = True):
        """
        Start serving (blocking).

        Args:
            configure_logging: Install the root log handler first. Embedders
                with their own logging setup pass False.
        """
        if configure_logging:
            self._setup_logging()

        self._running = True
        self._thread_pool.start()

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Ask run() to return. Safe from any thread."""
        self._running = False
        self._socket_server.shutdown()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format=LOG_FORMAT,
            datefmt=LOG_DATE_FORMAT,
        )

        logging.getLogger("shortener").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False

        self._thread_pool.shutdown(wait=True, timeout=self.config.keep_alive_timeout + 1.0)

        logger.info(f"Server stopped ({len(self.store)} links in memory discarded)")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Hand a new connection to the pool (runs on the accept thread)."""
        try:
            submitted = self._thread_pool.submit(self._process_connection, args=(conn,))
        except RuntimeError:
            conn.close()
            return

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """
        Serve requests on one connection until it closes (worker thread).

            read → parse → middleware + router → send → keep-alive?
        """
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break

                    request = self._parser.parse(raw_request, conn.address)

                except HTTPParseError as e:
                    logger.debug(f"[{conn.id}] Parse error: {e}")
                    self._send_error(conn, HTTPStatus(e.status_code), str(e))
                    break

                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break

                except OSError as e:
                    logger.debug(f"[{conn.id}] Read failed: {e}")
                    break

                conn.state = ConnectionState.PROCESSING

                try:
                    response = self._handler(request)
                except Exception as e:
                    logger.exception(f"[{conn.id}] Handler error: {e}")
                    response = internal_error()

                keep_alive = (
                    self.config.keep_alive
                    and self._running
                    and request.is_keep_alive
                    and response.headers.get("Connection") != "close"
                )

                if keep_alive:
                    response.headers["Connection"] = "keep-alive"
                    response.headers["Keep-Alive"] = f"timeout={int(self.config.keep_alive_timeout)}"
                else:
                    response.headers["Connection"] = "close"

                try:
                    payload = response.to_bytes(self.config.server_name)
                except ValueError as e:
                    logger.error(f"[{conn.id}] Unsendable response: {e}")
                    self._send_error(conn, HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error")
                    break

                if not conn.send_response(payload):
                    break

                if not keep_alive:
                    break

                conn.set_keep_alive()

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str):
        """Answer a failure the handlers never saw, then let the caller close."""
        response = error_response(status, message)
        if status == HTTPStatus.METHOD_NOT_ALLOWED:
            response.set_header("Allow", ", ".join(self.router.get_allowed_methods("/")))
        conn.send_response(response.to_bytes(self.config.server_name))
