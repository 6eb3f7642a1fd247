"""
=============================================================================
TCP LISTENER
=============================================================================

Binds the service port and accepts clients until told to stop. Each client
socket becomes a Connection and goes to the callback given to start(); the
listener never reads from it.

    create_server(host, port) ─► accept ─► Connection ─► on_connection(conn)
                                   ▲                            │
                                   └──────── next client ◄──────┘

accept() wakes up once a second to check the stop flag, so shutdown()
takes effect within a second even when no client is connecting.

SIGINT and SIGTERM call shutdown() while start() runs on the main thread.
Signal handlers can only be installed from the main thread; a listener
started elsewhere (the integration tests) must be stopped explicitly.

=============================================================================
"""

import logging
import signal
import socket
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)

ACCEPT_POLL_INTERVAL = 1.0


class SocketServer:
    """
    Listening socket and accept loop for one (host, port).

        listener = SocketServer(config)
        listener.start(on_connection)    # returns after shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._stop = threading.Event()
        self._listening = threading.Event()

    def start(self, on_connection: Callable[[Connection], None]):
        """
        Listen and hand out connections until shutdown().

        Raises:
            OSError: The port could not be bound (already in use, or
                     privileged).
        """
        address = (self.config.host, self.config.port)
        try:
            listener = socket.create_server(address, backlog=self.config.backlog)
        except OSError as e:
            logger.error(f"Cannot listen on {address[0]}:{address[1]}: {e}")
            raise

        with listener, self._stop_on_signals():
            listener.settimeout(ACCEPT_POLL_INTERVAL)
            logger.info(f"Listening on {address[0]}:{address[1]}")
            self._listening.set()
            try:
                self._accept_until_stopped(listener, on_connection)
            finally:
                self._listening.clear()

        logger.info("Listener closed")

    def _accept_until_stopped(self, listener: socket.socket, on_connection: Callable[[Connection], None]):
        while not self._stop.is_set():
            try:
                client, peer = listener.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._stop.is_set():
                    logger.error(f"accept() failed: {e}")
                return

            # Small JSON responses should go out without waiting on Nagle.
            client.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            logger.debug(f"Client connected from {peer[0]}:{peer[1]}")

            on_connection(Connection(
                client,
                peer,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            ))

    @contextmanager
    def _stop_on_signals(self) -> Iterator[None]:
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        def on_signal(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, shutting down")
            self.shutdown()

        previous = {sig: signal.signal(sig, on_signal) for sig in (signal.SIGINT, signal.SIGTERM)}
        try:
            yield
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

    def shutdown(self):
        """Stop accepting. Idempotent and thread-safe."""
        self._stop.set()

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        """True once the port is bound; False if timeout passes first."""
        return self._listening.wait(timeout)
