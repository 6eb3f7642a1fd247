"""
Request handlers.

A handler takes an HTTPRequest and returns an HTTPResponse. Handlers that
need collaborators (a store, a client) are classes constructed with them
and bound to the router through register().
"""

from .users import UserHandler

__all__ = [
    "UserHandler",
]
