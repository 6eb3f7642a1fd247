"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the pieces together:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                           HTTPServer                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   SocketServer.accept() ──► ThreadPool.submit(_serve)               │
    │                                       │                              │
    │                                       ▼                              │
    │                          Connection.read_request()                   │
    │                                       │                              │
    │                                       ▼                              │
    │                          RequestParser.parse()  ── bad ──► 4xx/505   │
    │                                       │                              │
    │                                       ▼                              │
    │                 LoggingMiddleware ─► Router ─► UserHandler           │
    │                                       │                              │
    │                                       ▼                              │
    │                          Connection.send_response()                  │
    │                                       │                              │
    │                        keep-alive? ───┴─── loop / close              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A handler that raises anyway (a bug, not a modelled failure) still gets a
plain-text 500 and a log entry with the traceback; the worker survives.

Shutdown order: stop accepting, let the pool drain in-flight requests,
then return to the caller, which closes the database client.

=============================================================================
"""

import logging
from functools import partial
from typing import Optional, Callable

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState, ThreadPool, RequestTooLarge
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, HTTPStatus, Router,
    error_response, internal_error,
)
from .middleware import MiddlewarePipeline, Middleware, LoggingMiddleware
from .handlers import UserHandler
from .store import UserStore


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO") -> None:
    """Root logging setup. A no-op for the root handler if one already exists."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    logging.getLogger("userapi").setLevel(numeric)


class HTTPServer:
    """
    HTTP/1.1 server: thread pool, router, middleware.

        server = HTTPServer(config)
        server.use(LoggingMiddleware())
        UserHandler(store).register(server.router)
        server.run()            # blocks until SIGINT/SIGTERM or shutdown()
    """

    def __init__(self, config: Optional[ServerConfig] = None, router: Optional[Router] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._router = router or Router()
        self._middleware = MiddlewarePipeline()
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware. First added runs outermost."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def is_running(self) -> bool:
        return self._running

    def run(self):
        """Serve until shutdown() or a signal. Blocks."""
        self._running = True
        self._handler = self._middleware.wrap(self._router.handle)
        self._thread_pool.start()

        logger.info(
            f"Starting {self.config.server_name} on {self.config.host}:{self.config.port} "
            f"({self.config.min_workers}-{self.config.max_workers} workers)"
        )
        self._router.log_routes()

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Ask a running server to stop. Returns immediately; run() returns once drained."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """True once the listening socket is bound."""
        return self._socket_server.wait_until_listening(timeout)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=self.config.timeout)
        logger.info("Server stopped")

    def _handle_connection(self, conn: Connection):
        """Accept-thread side: queue the connection, or turn it away with 503."""
        queued = self._thread_pool.submit(
            self._serve,
            args=(conn,),
            timeout=self.config.timeout,
            on_expired=partial(self._turn_away, conn),
        )
        if not queued:
            logger.warning(
                f"[{conn.id}] All {self._thread_pool.worker_count} workers busy and "
                f"{self._thread_pool.queue_size} connections queued"
            )
            self._turn_away(conn)

    def _turn_away(self, conn: Connection):
        """503 and close, for a connection no worker will serve."""
        with conn:
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")

    def _serve(self, conn: Connection):
        """Worker side: answer requests on conn until either end is done."""
        with conn:
            try:
                while self._running and self._serve_one(conn):
                    pass
            except RequestTooLarge as e:
                logger.warning(str(e))
                self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, "Request too large")
            except TimeoutError:
                self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
            except OSError as e:
                logger.debug(f"[{conn.id}] Socket error: {e}")

    def _serve_one(self, conn: Connection) -> bool:
        """One request/response exchange. True if the connection stays open."""
        raw = conn.read_request()
        if raw is None:
            return False

        try:
            request = self._parser.parse(raw, conn.address)
        except HTTPParseError as e:
            logger.debug(f"[{conn.id}] Rejected request: {e}")
            self._send_error(conn, e.status_code, str(e))
            return False

        conn.state = ConnectionState.PROCESSING
        response = self._dispatch(conn, request)

        keep_open = self.config.keep_alive and request.is_keep_alive and self._running
        if keep_open:
            response.headers.setdefault("Connection", "keep-alive")
            response.headers.setdefault("Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}")
        else:
            response.headers["Connection"] = "close"

        return conn.send_response(response.to_bytes(self.config.server_name)) and keep_open

    def _dispatch(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        try:
            return self._handler(request)
        except Exception as e:
            logger.exception(f"[{conn.id}] Unhandled error in {request.method} {request.path}: {e}")
            return internal_error()

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str):
        """Error for a request that never reached a handler; the connection closes after it."""
        response = error_response(status, message)
        response.headers["Connection"] = "close"
        conn.send_response(response.to_bytes(self.config.server_name))


def create_app(config: ServerConfig, store: UserStore) -> HTTPServer:
    """
    The user service: access logging plus the /user routes, backed by store.

        with open_store(config) as client:
            store = UserStore.from_client(client, config.database, config.collection)
            create_app(config, store).run()
    """
    server = HTTPServer(config)
    server.use(LoggingMiddleware(log_format=config.log_format))
    UserHandler(store).register(server.router)
    return server
