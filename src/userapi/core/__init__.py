"""
=============================================================================
NETWORK CORE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │ SocketServer   listening socket, accept loop, SIGINT/SIGTERM        │
    │       │                                                             │
    │       ▼ one Connection per client                                   │
    │ ThreadPool     bounded queue, min..max worker threads               │
    │       │                                                             │
    │       ▼ a worker owns the connection until it closes                │
    │ Connection     buffered reads, one HTTP request at a time           │
    └─────────────────────────────────────────────────────────────────────┘

Thread per connection: every request does blocking I/O against MongoDB,
and the driver's client is thread-safe, so one shared client serves all
workers.

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, RequestTooLarge
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "RequestTooLarge",
    "ThreadPool",
]
