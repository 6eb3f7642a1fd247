"""
=============================================================================
MONGODB CONNECTION BOOTSTRAP
=============================================================================

The process opens exactly one MongoClient at startup and closes it exactly
once on the way out. The client is thread-safe and pools its own sockets,
so every worker thread shares it.

    connect(config)
        │
        ├── MongoClient(uri, connectTimeoutMS=10s, serverSelectionTimeoutMS=10s)
        │       └── fails → StoreConnectionError
        │
        ├── with pymongo.timeout(2s): admin.command("ping")   (primary)
        │       └── fails → log, close client, StoreUnreachableError
        │
        └── "Database connected successfully"

    with open_store(config) as client:
        ...serve...
    └── client.close(), "Disconnected from MongoDB"

MongoClient connects lazily in the background, so construction only
catches a malformed URI or bad options. The ping is what proves the
server is really there.

=============================================================================
"""

import logging
from contextlib import contextmanager
from typing import Iterator

import pymongo
from pymongo import MongoClient, ReadPreference
from pymongo.errors import PyMongoError

from ..config import ServerConfig
from ..errors import StoreConnectionError, StoreUnreachableError


logger = logging.getLogger(__name__)


def connect(config: ServerConfig) -> MongoClient:
    """
    Build a client and prove the server answers.

    Raises:
        StoreConnectionError: The client could not be constructed.
        StoreUnreachableError: The ping failed or timed out.
    """
    connect_ms = int(config.connect_timeout * 1000)

    try:
        client = MongoClient(
            config.mongo_uri,
            connectTimeoutMS=connect_ms,
            serverSelectionTimeoutMS=connect_ms,
        )
    except (PyMongoError, ValueError, TypeError) as e:
        raise StoreConnectionError(f"Failed to connect to MongoDB: {e}") from e

    try:
        with pymongo.timeout(config.ping_timeout):
            client.admin.command("ping", read_preference=ReadPreference.PRIMARY)
    except PyMongoError as e:
        logger.error(f"MongoDB ping failed: {e}")
        close_client(client, context="after failed ping")
        raise StoreUnreachableError(f"MongoDB server not reachable or responsive: {e}") from e

    logger.info("Database connected successfully")
    return client


def close_client(client: MongoClient, context: str = "") -> None:
    """Close the client. A failure is logged and otherwise ignored."""
    try:
        client.close()
    except Exception as e:
        suffix = f" {context}" if context else ""
        logger.error(f"Error disconnecting from MongoDB{suffix}: {e}")


@contextmanager
def open_store(config: ServerConfig) -> Iterator[MongoClient]:
    """
    connect() on entry, close on every exit path.

        with open_store(config) as client:
            store = UserStore.from_client(client, config.database, ...)
            server.run()
    """
    client = connect(config)
    try:
        yield client
    finally:
        close_client(client)
        logger.info("Disconnected from MongoDB")
