"""
=============================================================================
USER RESOURCE
=============================================================================

    GET    /user/:id   → 200 JSON user          | 400 | 404 | 500
    POST   /user       → 201 JSON user, new id  | 400 | 500
    DELETE /user/:id   → 200 "Deleted User <id>" | 400 | 404 | 500

Each request makes at most one database call, and none at all when the id
or body is malformed. Errors go back as one line of plain text. A 500 body
never includes the underlying cause; that goes to the log.

=============================================================================
"""

import logging

from ..errors import (
    UserServiceError,
    NotFoundError,
    SerializationError,
    ValidationError,
)
from ..http.request import HTTPRequest, HTTPParseError
from ..http.response import (
    HTTPResponse,
    ResponseBuilder,
    error_response,
    internal_error,
    ok,
)
from ..http.router import Router
from ..http.status_codes import HTTPStatus
from ..models import User, parse_object_id, INVALID_BODY_MESSAGE
from ..store.users import UserStore


logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "User not found"

FETCH_FAILED_MESSAGE = "Internal server error"
CREATE_FAILED_MESSAGE = "Internal server error during user creation"
DELETE_FAILED_MESSAGE = "Internal server error during user deletion"


class UserHandler:
    """
    Stateless handler for the user resource.

    Holds only the store it was given, so one instance serves every
    worker thread:

        handler = UserHandler(UserStore(collection))
        handler.register(router)
    """

    def __init__(self, store: UserStore):
        self.store = store

    def register(self, router: Router) -> None:
        router.add_route("/user/:id", self.get_user, method="GET", name="get_user")
        router.add_route("/user", self.create_user, method="POST", name="create_user")
        router.add_route("/user/:id", self.delete_user, method="DELETE", name="delete_user")

    def get_user(self, request: HTTPRequest) -> HTTPResponse:
        try:
            oid = parse_object_id(request.path_params.get("id", ""))
            document = self.store.find(oid)
            if document is None:
                raise NotFoundError(NOT_FOUND_MESSAGE)
            return self._json_response(HTTPStatus.OK, User.from_document(document))
        except UserServiceError as e:
            return self._error_response(e, "fetch user", FETCH_FAILED_MESSAGE)

    def create_user(self, request: HTTPRequest) -> HTTPResponse:
        try:
            try:
                data = request.json
            except HTTPParseError as e:
                raise ValidationError(INVALID_BODY_MESSAGE) from e

            user = User.from_request_json(data)
            self.store.insert(user.to_document())
            logger.debug(f"Created user {user.id}")

            response = self._json_response(HTTPStatus.CREATED, user)
            response.headers["Location"] = f"/user/{user.id}"
            return response
        except UserServiceError as e:
            return self._error_response(e, "create user", CREATE_FAILED_MESSAGE)

    def delete_user(self, request: HTTPRequest) -> HTTPResponse:
        try:
            oid = parse_object_id(request.path_params.get("id", ""))
            if self.store.delete(oid) == 0:
                raise NotFoundError(NOT_FOUND_MESSAGE)
            logger.debug(f"Deleted user {oid}")
            return ok(f"Deleted User {oid}\n", content_type="text/plain")
        except UserServiceError as e:
            return self._error_response(e, "delete user", DELETE_FAILED_MESSAGE)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _json_response(self, status: HTTPStatus, user: User) -> HTTPResponse:
        """
        Raises:
            SerializationError: A stored field has no JSON form (dates,
                                binary, ObjectIds written by other tools).
        """
        try:
            return ResponseBuilder().status(status).json(user.to_json()).build()
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot encode user {user.id}: {e}") from e

    def _error_response(
        self,
        error: UserServiceError,
        operation: str,
        generic_message: str,
    ) -> HTTPResponse:
        if error.status_code.is_server_error:
            logger.error(f"Failed to {operation}: {error}", exc_info=error)
            return internal_error(generic_message)
        return error_response(error.status_code, error.message)
