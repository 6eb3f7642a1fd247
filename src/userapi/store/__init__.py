"""MongoDB access: connection bootstrap and the users collection."""

from .mongo import connect, open_store, close_client
from .users import UserStore

__all__ = [
    "connect",
    "open_store",
    "close_client",
    "UserStore",
]
