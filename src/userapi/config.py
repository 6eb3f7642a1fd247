"""
=============================================================================
SERVICE CONFIGURATION
=============================================================================

One dataclass for everything the process needs: the HTTP listener, the
worker pool, logging, and the MongoDB connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION PRIORITY                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. Command-line flags     userapi --port 9100 --database test     │
    │   2. Environment            MONGO_URI=mongodb://db:27017 userapi    │
    │   3. Defaults               the values below                        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Validation happens once at startup; a bad value stops the process before
it binds a port or opens a database connection.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_MONGO_URI = "mongodb://127.0.0.1:27017"
DEFAULT_DATABASE = "Mongo_golang"
DEFAULT_COLLECTION = "User"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for the user service.

    =========================================================================
    GROUPS
    =========================================================================

    NETWORK     host, port, backlog, buffer_size, timeout
    HTTP        keep_alive, keep_alive_timeout, max_request_size
    THREADS     min_workers, max_workers, queue_size
    LOGGING     log_level, log_format
    MONGODB     mongo_uri, database, collection,
                connect_timeout, ping_timeout, operation_timeout

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """All interfaces. Use 127.0.0.1 to keep the service local."""

    port: int = 9000

    backlog: int = 128
    """Pending connections the kernel queues before refusing."""

    buffer_size: int = 8192

    timeout: Optional[float] = 30.0
    """Socket timeout for the first request on a connection. None blocks forever."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024
    """User documents are small; 1 MB is generous."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16
    queue_size: int = 100
    """Connections waiting for a worker. Beyond this the server answers 503."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """Access log format: "text" or "json"."""

    server_name: str = "userapi/1.0"

    # ─────────────────────────────────────────────────────────────────────
    # MONGODB
    # ─────────────────────────────────────────────────────────────────────

    mongo_uri: str = DEFAULT_MONGO_URI
    database: str = DEFAULT_DATABASE
    collection: str = DEFAULT_COLLECTION

    connect_timeout: float = 10.0
    """Bound on establishing the initial connection, in seconds."""

    ping_timeout: float = 2.0
    """Bound on the startup liveness ping."""

    operation_timeout: float = 5.0
    """Bound on each find/insert/delete issued by a request."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Build a config from the environment.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTP_HOST                 listen address     (0.0.0.0)
        HTTP_PORT                 listen port        (9000)
        HTTP_WORKERS              max worker threads (16)
        HTTP_TIMEOUT              socket timeout s   (30)
        HTTP_LOG_LEVEL            logging level      (INFO)
        HTTP_LOG_FORMAT           text | json        (text)
        MONGO_URI                 connection string  (mongodb://127.0.0.1:27017)
        MONGO_DATABASE            database name      (Mongo_golang)
        MONGO_COLLECTION          collection name    (User)
        MONGO_CONNECT_TIMEOUT     seconds            (10)
        MONGO_PING_TIMEOUT        seconds            (2)
        MONGO_OPERATION_TIMEOUT   seconds            (5)

        =====================================================================

        Raises:
            ValueError: A numeric variable does not parse.
        """
        defaults = cls()
        max_workers = int(os.getenv("HTTP_WORKERS", str(defaults.max_workers)))
        return cls(
            host=os.getenv("HTTP_HOST", defaults.host),
            port=int(os.getenv("HTTP_PORT", str(defaults.port))),
            min_workers=min(defaults.min_workers, max_workers),
            max_workers=max_workers,
            timeout=float(os.getenv("HTTP_TIMEOUT", str(defaults.timeout))),
            log_level=os.getenv("HTTP_LOG_LEVEL", defaults.log_level),
            log_format=os.getenv("HTTP_LOG_FORMAT", defaults.log_format),
            mongo_uri=os.getenv("MONGO_URI", defaults.mongo_uri),
            database=os.getenv("MONGO_DATABASE", defaults.database),
            collection=os.getenv("MONGO_COLLECTION", defaults.collection),
            connect_timeout=float(os.getenv("MONGO_CONNECT_TIMEOUT", str(defaults.connect_timeout))),
            ping_timeout=float(os.getenv("MONGO_PING_TIMEOUT", str(defaults.ping_timeout))),
            operation_timeout=float(os.getenv("MONGO_OPERATION_TIMEOUT", str(defaults.operation_timeout))),
        )

    def validate(self) -> None:
        """Fail fast on values that cannot work."""
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 1-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', not {self.log_format!r}")

        if not self.database:
            raise ValueError("database must not be empty")

        if not self.collection:
            raise ValueError("collection must not be empty")

        for name in ("connect_timeout", "ping_timeout", "operation_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
