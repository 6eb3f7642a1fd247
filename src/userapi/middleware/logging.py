"""
=============================================================================
ACCESS LOG
=============================================================================

One line per request on the "userapi.access" logger, written after the
response is known:

    text   10.0.0.7 - - [17/Oct/2026:12:00:00 +0000] "POST /user" 201 52 3.41ms a1b2c3d4
    json   {"request_id": "a1b2c3d4", "method": "POST", "path": "/user", ...}

Every response carries X-Request-ID: the client's own value when it sent
one, otherwise a fresh 8-character id. The same id ends the access line.

=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass, asdict
from typing import Dict, Any, Iterable, Optional

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("userapi.access")

LOG_FORMATS = ("text", "json")
REQUEST_ID_HEADER = "X-Request-ID"


@dataclass
class RequestLog:
    request_id: str
    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {**asdict(self), "duration_ms": round(self.duration_ms, 2)}

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] "{self.method} {self.path}" '
            f'{self.status_code} {self.content_length} {self.duration_ms:.2f}ms {self.request_id}'
        )


class LoggingMiddleware(Middleware):
    """
    Access logging and request ids. Register it first so router 404/405s
    are logged too.

    Args:
        log_format: "text" or "json".
        log_level: Level the access lines are written at.
        skip_paths: Exact paths that get a request id but no log line.
    """

    def __init__(
        self,
        log_format: str = "text",
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        if log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}, got {log_format!r}")
        self.log_format = log_format
        self.log_level = log_level
        self.skip_paths = frozenset(skip_paths or ())

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = request.get_header(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        started = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            logger.error(
                f"{request.method} {request.path} raised {type(e).__name__}: {e} "
                f"after {self._elapsed_ms(started):.2f}ms [{request_id}]"
            )
            raise

        response.headers[REQUEST_ID_HEADER] = request_id
        if request.path not in self.skip_paths:
            self._write(self._record(request, response, request_id, self._elapsed_ms(started)))
        return response

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return (time.perf_counter() - started) * 1000

    @staticmethod
    def _record(request: HTTPRequest, response: HTTPResponse, request_id: str, duration_ms: float) -> RequestLog:
        return RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0] or "-",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

    def _write(self, entry: RequestLog):
        line = json.dumps(entry.to_dict()) if self.log_format == "json" else entry.to_text()
        logger.log(self.log_level, line)
