"""
=============================================================================
HTTP RESPONSE
=============================================================================

Handlers build an HTTPResponse; the server serializes it once, right
before the write:

    HTTP/1.1 201 Created\r\n
    Content-Type: application/json\r\n
    Location: /user/65a1f0c2e4b0a1b2c3d4e5f6\r\n
    Content-Length: 49\r\n                  ┐
    Date: Sat, 17 Oct 2026 12:00:00 GMT\r\n ├ added by to_bytes() if missing
    Server: userapi/1.0\r\n                 ┘
    \r\n
    {"id": "65a1f0c2e4b0a1b2c3d4e5f6", "name": "Ada"}

Error responses are one newline-terminated line of text/plain with
"X-Content-Type-Options: nosniff", so a browser never renders them as HTML.

=============================================================================
"""

from dataclasses import dataclass, field
from email.utils import formatdate
from typing import Any, Dict, List, Optional, Union
import json

from .status_codes import HTTPStatus


DEFAULT_SERVER_NAME = "userapi/1.0"

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


@dataclass
class HTTPResponse:
    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def status_line(self) -> str:
        return f"HTTP/1.1 {int(self.status)} {self.status.phrase}"

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Wire form of the response. Content-Length, Date and Server are
        filled in on the way out unless already present; self.headers is
        left untouched.
        """
        generated = {
            "Content-Length": str(len(self.body)),
            "Date": formatdate(usegmt=True),
            "Server": server_name,
        }
        headers = {**self.headers, **{k: v for k, v in generated.items() if k not in self.headers}}

        head = self.status_line + "\r\n"
        head += "".join(f"{name}: {value}\r\n" for name, value in headers.items())
        return head.encode("latin-1") + b"\r\n" + self.body


class ResponseBuilder:
    """
    Chainable construction of an HTTPResponse:

        (ResponseBuilder()
            .status(HTTPStatus.CREATED)
            .json(user.to_json())
            .header("Location", f"/user/{user.id}")
            .build())
    """

    def __init__(self):
        self._response = HTTPResponse()

    def status(self, status: Union[HTTPStatus, int]) -> "ResponseBuilder":
        self._response.status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._response.headers[name] = value
        return self

    def body(self, body: Union[str, bytes], content_type: Optional[str] = None) -> "ResponseBuilder":
        self._response.body = body.encode("utf-8") if isinstance(body, str) else body
        if content_type:
            self.header("Content-Type", content_type)
        return self

    def text(self, text: str, content_type: str = TEXT_CONTENT_TYPE) -> "ResponseBuilder":
        return self.body(text, content_type)

    def json(self, data: Any) -> "ResponseBuilder":
        """
        Raises:
            TypeError, ValueError: data holds something JSON cannot
                encode (datetime, bytes, ObjectId, NaN, Infinity).
        """
        return self.body(json.dumps(data, ensure_ascii=False, allow_nan=False), JSON_CONTENT_TYPE)

    def build(self) -> HTTPResponse:
        return self._response


def ok(body: Union[str, bytes, dict, list] = "", content_type: Optional[str] = None) -> HTTPResponse:
    """200; dicts and lists go out as JSON, strings as text."""
    builder = ResponseBuilder()
    if isinstance(body, (dict, list)):
        builder.json(body)
    elif isinstance(body, str):
        builder.text(body, content_type or TEXT_CONTENT_TYPE)
    else:
        builder.body(body, content_type)
    return builder.build()


def error_response(status: Union[HTTPStatus, int], message: str) -> HTTPResponse:
    return (ResponseBuilder()
        .status(status)
        .text(message + "\n")
        .header("X-Content-Type-Options", "nosniff")
        .build())


def not_found(message: str = "Not Found") -> HTTPResponse:
    return error_response(HTTPStatus.NOT_FOUND, message)


def method_not_allowed(allowed_methods: List[str]) -> HTTPResponse:
    """405 plus the Allow header listing what the path does accept."""
    response = error_response(HTTPStatus.METHOD_NOT_ALLOWED, "Method Not Allowed")
    response.headers["Allow"] = ", ".join(allowed_methods)
    return response


def internal_error(message: str = "Internal server error") -> HTTPResponse:
    """500 with a generic message; the cause belongs in the log, not here."""
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, message)
