"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this service can put on the wire, with their RFC 7231
reason phrases.

    HTTP/1.1 404 Not Found
             ─── ─────────
              │      │
              │      └── Reason phrase (HTTPStatus.phrase)
              └───────── Status code (int value of the enum)

The user endpoints only ever answer 200, 201, 400, 404 and 500. The rest
are produced by the server itself (parse errors, overload, routing).

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes with reason phrases.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.CREATED == 201
        True
        >>> HTTPStatus.CREATED.phrase
        'Created'
    """

    # 2xx Success
    OK = 200                            # Read or delete succeeded
    CREATED = 201                       # New user stored

    # 4xx Client Errors
    BAD_REQUEST = 400                   # Malformed id or body
    NOT_FOUND = 404                     # No such user / no such route
    METHOD_NOT_ALLOWED = 405            # Route exists, wrong method
    REQUEST_TIMEOUT = 408               # Client too slow to send request
    PAYLOAD_TOO_LARGE = 413             # Request exceeds max_request_size

    # 5xx Server Errors
    INTERNAL_SERVER_ERROR = 500         # Store failure, timeout, bug
    SERVICE_UNAVAILABLE = 503           # Worker queue full
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_server_error(self) -> bool:
        return 500 <= self < 600


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",

    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",

    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
