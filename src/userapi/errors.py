"""
=============================================================================
SERVICE ERRORS
=============================================================================

Request-level errors carry the status code the client should see, the
same way HTTPParseError does for the protocol layer:

    UserServiceError
    ├── ValidationError      400  malformed id or body
    ├── NotFoundError        404  no such user
    ├── StoreError           500  the database call failed or timed out
    └── SerializationError   500  a stored record would not encode

Startup errors are fatal instead; the process exits before serving:

    StartupError
    ├── StoreConnectionError    client could not be constructed
    └── StoreUnreachableError   client built, but the ping failed

The message of a 500 never reaches the client. The handler logs it and
answers with a fixed, generic body.

=============================================================================
"""

from .http.status_codes import HTTPStatus


class UserServiceError(Exception):
    """Base class for errors raised while serving a request."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(UserServiceError):
    status_code = HTTPStatus.BAD_REQUEST


class NotFoundError(UserServiceError):
    status_code = HTTPStatus.NOT_FOUND


class StoreError(UserServiceError):
    """A database operation failed. The driver exception is chained as __cause__."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR


class SerializationError(UserServiceError):
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR


class StartupError(Exception):
    """The service cannot start. Not an HTTP error."""


class StoreConnectionError(StartupError):
    pass


class StoreUnreachableError(StartupError):
    pass
