"""
=============================================================================
userapi
=============================================================================

A small HTTP/1.1 service for one resource, "user", stored in MongoDB:

    GET    /user/:id     fetch by ObjectId
    POST   /user         create (server assigns the id)
    DELETE /user/:id     delete by ObjectId

    ┌────────────┐   ┌──────────────┐   ┌─────────────┐   ┌────────────┐
    │ core       │──►│ http         │──►│ handlers    │──►│ store      │
    │ sockets,   │   │ parse, route,│   │ UserHandler │   │ UserStore, │
    │ threads    │   │ respond      │   │             │   │ MongoClient│
    └────────────┘   └──────────────┘   └─────────────┘   └────────────┘

Run it with `python -m userapi` (see __main__.py for flags).

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer, create_app
from .config import ServerConfig

__all__ = ["HTTPServer", "create_app", "ServerConfig", "__version__"]
