"""
The users collection, behind a small interface.

Every call is bounded by pymongo.timeout(), the driver's client-side
operation deadline: a server that stops answering surfaces as an
ExecutionTimeout (or NetworkTimeout) after `timeout` seconds instead of
hanging the worker thread. Nothing is retried.
"""

import logging
from typing import Any, Dict, Optional

import pymongo
from bson import ObjectId
from bson.errors import BSONError
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from ..errors import StoreError


logger = logging.getLogger(__name__)


class UserStore:
    """
    find / insert / delete by ObjectId.

    Any PyMongoError, timeouts included, comes out as StoreError with the
    driver exception chained.
    """

    def __init__(self, collection: Collection, timeout: float = 5.0):
        self.collection = collection
        self.timeout = timeout

    @classmethod
    def from_client(
        cls,
        client: MongoClient,
        database: str,
        collection: str,
        timeout: float = 5.0,
    ) -> "UserStore":
        return cls(client[database][collection], timeout=timeout)

    def find(self, oid: ObjectId) -> Optional[Dict[str, Any]]:
        try:
            with pymongo.timeout(self.timeout):
                return self.collection.find_one({"_id": oid})
        except PyMongoError as e:
            raise StoreError(f"find_one {oid} failed: {e}") from e

    def insert(self, document: Dict[str, Any]) -> None:
        """
        Raises:
            StoreError: also when the document has no BSON form, such as an
                        integer wider than 64 bits or a key holding a NUL.
        """
        try:
            with pymongo.timeout(self.timeout):
                self.collection.insert_one(document)
        except (PyMongoError, BSONError, OverflowError) as e:
            raise StoreError(f"insert_one {document.get('_id')} failed: {e}") from e

    def delete(self, oid: ObjectId) -> int:
        """Number of documents removed: 0 or 1."""
        try:
            with pymongo.timeout(self.timeout):
                return self.collection.delete_one({"_id": oid}).deleted_count
        except PyMongoError as e:
            raise StoreError(f"delete_one {oid} failed: {e}") from e
