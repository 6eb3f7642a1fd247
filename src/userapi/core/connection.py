"""
=============================================================================
CLIENT CONNECTION
=============================================================================

One accepted socket, read one HTTP request at a time.

recv() returns whatever the kernel has, which may be part of a request or
the end of one request and the start of the next. Connection buffers the
bytes and cuts them at request boundaries:

    recv ─► buffer ─► header block ends ("\\r\\n\\r\\n")
                         │
                         ▼
                    Content-Length body bytes ─► one request
                         │
                         └─► anything past it stays buffered (pipelining)

Lifecycle:

    READING ─► PROCESSING ─► WRITING ─► IDLE ─► READING ...
                                          └────► CLOSED

The first request on a connection must arrive within `timeout`; between
requests the client gets `keep_alive_timeout` before the connection is
quietly dropped.

=============================================================================
"""

import logging
import re
import socket
import uuid
from enum import Enum
from typing import Optional, Tuple


logger = logging.getLogger(__name__)

HEADER_END = b"\r\n\r\n"

_CONTENT_LENGTH = re.compile(rb"^content-length[ \t]*:[ \t]*(\d+)[ \t]*$", re.IGNORECASE | re.MULTILINE)


class ConnectionState(Enum):
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    IDLE = "idle"
    CLOSED = "closed"


class RequestTooLarge(ValueError):
    """More than max_request_size bytes arrived for a single request."""


def declared_body_length(header_block: bytes) -> int:
    """
    Content-Length from a raw header block, 0 if absent or unreadable.

    Only used to know how many bytes to wait for; RequestParser validates
    the header properly once the request is complete.
    """
    found = _CONTENT_LENGTH.search(header_block.replace(b"\r\n", b"\n"))
    return int(found.group(1)) if found else 0


class Connection:
    """
    Buffered reader/writer around an accepted client socket.

        with Connection(sock, addr, timeout=30.0) as conn:
            raw = conn.read_request()       # None once the client is done
            conn.send_response(payload)
    """

    def __init__(
        self,
        sock: socket.socket,
        address: Tuple[str, int],
        buffer_size: int = 8192,
        timeout: Optional[float] = 30.0,
        keep_alive_timeout: float = 5.0,
        max_request_size: int = 1024 * 1024,
    ):
        self.socket = sock
        self.address = address
        self.buffer_size = buffer_size
        self.timeout = timeout
        self.keep_alive_timeout = keep_alive_timeout
        self.max_request_size = max_request_size

        self.id = uuid.uuid4().hex[:8]
        self.state = ConnectionState.READING
        self.requests_read = 0
        self._pending = bytearray()

        self.socket.settimeout(timeout)

    def read_request(self) -> Optional[bytes]:
        """
        Return the next complete request, or None when the client closed
        the connection or stayed silent past keep_alive_timeout.

        Raises:
            TimeoutError: The first request did not arrive in time.
            RequestTooLarge: The request grew past max_request_size.
        """
        self.state = ConnectionState.READING
        waiting_for_first = self.requests_read == 0
        if not waiting_for_first:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            header_end = self._fill_until_headers()
            if header_end < 0:
                return None

            body_start = header_end + len(HEADER_END)
            end = body_start + declared_body_length(bytes(self._pending[:header_end]))
            # A short body (client hung up early) is left for the parser to reject.
            self._fill_until(end)

            request = bytes(self._pending[:end])
            del self._pending[:end]
            self.requests_read += 1
            return request

        except socket.timeout:
            if waiting_for_first:
                raise TimeoutError("No request received before timeout")
            logger.debug(f"[{self.id}] Idle keep-alive connection timed out")
            return None

        finally:
            self.socket.settimeout(self.timeout)

    def _fill_until_headers(self) -> int:
        """Index of the header terminator in the buffer, -1 on EOF."""
        while True:
            index = self._pending.find(HEADER_END)
            if index >= 0:
                return index
            if not self._receive():
                return -1

    def _fill_until(self, size: int):
        while len(self._pending) < size:
            if not self._receive():
                return

    def _receive(self) -> bool:
        try:
            chunk = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            chunk = b""
        if not chunk:
            return False

        self._pending += chunk
        if len(self._pending) > self.max_request_size:
            raise RequestTooLarge(f"[{self.id}] request exceeds {self.max_request_size} bytes")
        return True

    def send_response(self, payload: bytes) -> bool:
        """Write the whole payload. False if the client is already gone."""
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(payload)
        except OSError as e:
            logger.warning(f"[{self.id}] Could not send response: {e}")
            return False
        self.state = ConnectionState.IDLE
        return True

    def close(self):
        """
        Graceful close: FIN first, then read until the client closes its
        side (or 0.5 s pass), then release the socket. Closing with unread
        input would send an RST and could truncate the response.
        """
        if self.state is ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass  # already reset, or the drain timed out
        finally:
            self.socket.close()
            self.state = ConnectionState.CLOSED

        logger.debug(f"[{self.id}] Closed after {self.requests_read} request(s)")

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
