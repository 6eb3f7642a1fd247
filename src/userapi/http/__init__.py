"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Bytes in, bytes out:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       raw bytes      → HTTPRequest                       │
    │ router.py        HTTPRequest    → handler(request)                  │
    │ response.py      HTTPResponse   → raw bytes                         │
    │ status_codes.py  HTTPStatus enum with reason phrases                │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,                 # 200, JSON or text
    error_response,     # any status, plain-text body
    not_found,          # 404
    method_not_allowed, # 405 + Allow
    internal_error,     # 500, generic message
)
from .router import Router, Route
from .status_codes import HTTPStatus

__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",

    "HTTPResponse",
    "ResponseBuilder",

    "ok",
    "error_response",
    "not_found",
    "method_not_allowed",
    "internal_error",

    "Router",
    "Route",

    "HTTPStatus",
]
