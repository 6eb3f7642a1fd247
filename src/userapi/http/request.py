"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Bytes from Connection.read_request() in, HTTPRequest out.

    DELETE /user/65a1f0c2e4b0a1b2c3d4e5f6 HTTP/1.1\r\n     request line
    Host: localhost:9000\r\n                               header lines
    Connection: close\r\n
    \r\n                                                   end of head
    <Content-Length bytes of body>

Everything that can go wrong becomes an HTTPParseError carrying the status
the client gets back; the server sends it and closes the connection.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote, urlsplit
import json

from .status_codes import HTTPStatus


METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})
VERSIONS = ("HTTP/1.0", "HTTP/1.1")

_NOT_PARSED = object()


class HTTPParseError(Exception):
    """
    The request could not be understood. status_code is what the client sees:
    400 for bad syntax or body, 405 for an unknown method, 413 for an
    oversized request, 505 for anything but HTTP/1.0 and HTTP/1.1.
    """

    def __init__(self, message: str, status_code: int = HTTPStatus.BAD_REQUEST):
        super().__init__(message)
        self.status_code = HTTPStatus(status_code)


@dataclass
class HTTPRequest:
    """
    One parsed request. Header names are stored lowercased.

    path_params is empty until the router matches a route.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    client_address: Tuple[str, int] = ("", 0)
    path_params: Dict[str, str] = field(default_factory=dict)

    _decoded: Any = field(default=_NOT_PARSED, repr=False, compare=False)

    def get_header(self, name: str, default: str = "") -> str:
        return self.headers.get(name.lower(), default)

    @property
    def content_type(self) -> Optional[str]:
        """Media type only: "application/json; charset=utf-8" → "application/json"."""
        media_type = self.get_header("content-type").partition(";")[0].strip().lower()
        return media_type or None

    @property
    def user_agent(self) -> str:
        return self.get_header("user-agent")

    @property
    def json(self) -> Any:
        """
        Body decoded as UTF-8 JSON; None when there is no body.

        Content-Type is deliberately ignored, since curl and many scripts
        POST JSON without it. NaN and Infinity are not JSON and are refused.

        Raises:
            HTTPParseError: 400, the body is not UTF-8 JSON or nests too
                deeply to decode.
        """
        if self._decoded is _NOT_PARSED:
            if not self.body:
                self._decoded = None
            else:
                try:
                    self._decoded = json.loads(self.body.decode("utf-8"), parse_constant=_reject_constant)
                except (UnicodeDecodeError, ValueError) as e:
                    raise HTTPParseError(f"Body is not valid JSON: {e}") from e
                except RecursionError as e:
                    raise HTTPParseError("Body is nested too deeply") from e
        return self._decoded

    @property
    def is_keep_alive(self) -> bool:
        """Persistent by default on HTTP/1.1, opt-in on HTTP/1.0."""
        token = self.get_header("connection").lower()
        if self.version == "HTTP/1.0":
            return token == "keep-alive"
        return token != "close"


class RequestParser:
    """
    Parses one complete request. Stateless apart from the size limit, so a
    single instance is shared by every worker.
    """

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: Tuple[str, int] = ("", 0)) -> HTTPRequest:
        """
        Raises:
            HTTPParseError: see the class docstring for the status codes.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request of {len(data)} bytes exceeds {self.max_request_size}",
                status_code=HTTPStatus.PAYLOAD_TOO_LARGE,
            )

        head, separator, rest = data.partition(b"\r\n\r\n")
        if not separator:
            raise HTTPParseError("Request head is not terminated by an empty line")

        request_line, *header_lines = head.decode("latin-1").split("\r\n")
        method, target, version = _split_request_line(request_line)
        headers = _parse_header_lines(header_lines)
        length = _content_length(headers)
        if len(rest) < length:
            raise HTTPParseError(f"Body truncated: Content-Length {length}, received {len(rest)}")

        url = urlsplit(target)
        return HTTPRequest(
            method=method,
            path=unquote(url.path) or "/",
            version=version,
            headers=headers,
            body=rest[:length],
            client_address=client_address,
        )


def _split_request_line(line: str) -> Tuple[str, str, str]:
    parts = line.split(" ")
    if len(parts) != 3 or not all(parts) or not parts[2].startswith("HTTP/"):
        raise HTTPParseError(f"Malformed request line: {line!r}")

    method, target, version = parts
    if method not in METHODS:
        raise HTTPParseError(f"Unknown method {method!r}", status_code=HTTPStatus.METHOD_NOT_ALLOWED)
    if version not in VERSIONS:
        raise HTTPParseError(
            f"{version} is not supported",
            status_code=HTTPStatus.HTTP_VERSION_NOT_SUPPORTED,
        )
    return method, target, version


def _parse_header_lines(lines: List[str]) -> Dict[str, str]:
    """
    Lowercased names; a repeated header's values are joined with ", ".

    Obsolete line folding (a line starting with whitespace) is rejected
    rather than unfolded.
    """
    headers: Dict[str, str] = {}
    for line in lines:
        if line[:1] in (" ", "\t"):
            raise HTTPParseError("Folded header lines are not accepted")

        name, colon, value = line.partition(":")
        name = name.strip().lower()
        if not colon or not name:
            raise HTTPParseError(f"Malformed header line: {line!r}")

        value = value.strip()
        headers[name] = f"{headers[name]}, {value}" if name in headers else value
    return headers


def _content_length(headers: Dict[str, str]) -> int:
    raw = headers.get("content-length")
    if raw is None:
        return 0
    if not (raw.isascii() and raw.isdigit()):
        raise HTTPParseError(f"Invalid Content-Length: {raw!r}")
    return int(raw)


def _reject_constant(name: str):
    raise ValueError(f"{name} is not a JSON value")
