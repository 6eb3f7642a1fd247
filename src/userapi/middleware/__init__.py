"""
Middleware: callables that sit between the connection loop and the router.

Only access logging ships with the service; Middleware is the base class
for anything else that needs to see every request.
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",

    "LoggingMiddleware",
    "RequestLog",
]
