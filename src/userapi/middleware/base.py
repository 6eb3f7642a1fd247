"""
=============================================================================
MIDDLEWARE PIPELINE
=============================================================================

A middleware is a callable (request, next) -> response. The pipeline nests
them around the router like layers of an onion; the first one added is
the outermost:

            ┌─────────────────────────────────────────────┐
            │  LoggingMiddleware                          │
            │  ┌───────────────────────────────────────┐  │
            │  │  router.handle                        │  │
            │  │    GET /user/:id  → get_user          │  │
            │  │    POST /user     → create_user       │  │
            │  │    DELETE /user/:id → delete_user     │  │
            │  └───────────────────────────────────────┘  │
            └─────────────────────────────────────────────┘

Requests travel inward, responses travel back out in reverse order.

=============================================================================
"""

from abc import ABC, abstractmethod
from functools import partial
from typing import Callable, Iterator, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)

NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware.

        class StampMiddleware(Middleware):
            def __call__(self, request, next):
                response = next(request)
                response.headers["X-Stamp"] = "1"
                return response

    Returning without calling next() short-circuits the chain.
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        pass

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """Middleware in registration order; wrap() folds them around a handler."""

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Middleware registered: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Fold from the inside out, so for [logging, auth]:

            wrapped(request) == logging(request, lambda r: auth(r, handler))
        """
        for middleware in reversed(self._middleware):
            handler = partial(_call_through, middleware, handler)
        return handler

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._middleware)


def _call_through(middleware: Middleware, next_handler: NextHandler, request: HTTPRequest) -> HTTPResponse:
    return middleware(request, next_handler)
