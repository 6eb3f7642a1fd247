"""
User model.

A user is an ObjectId plus whatever other fields the client sent. The two
wire shapes differ only in the name and type of the identifier:

    JSON (HTTP)                          document (MongoDB)
    {"id": "65a1f0c2e4b0a1b2c3d4e5f6",   {"_id": ObjectId("65a1f0c2..."),
     "name": "Ada",                       "name": "Ada",
     "email": "ada@example.com"}          "email": "ada@example.com"}
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from bson import ObjectId

from .errors import ValidationError


INVALID_ID_MESSAGE = "Invalid user ID format"
INVALID_BODY_MESSAGE = "Invalid request body"

# Keys that name the identifier; never stored as ordinary fields.
RESERVED_KEYS = ("id", "_id")


def parse_object_id(value: str) -> ObjectId:
    """
    "65a1f0c2e4b0a1b2c3d4e5f6" → ObjectId.

    Only the 24-hex-character text form is accepted.

    Raises:
        ValidationError: value is not a valid ObjectId.
    """
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise ValidationError(INVALID_ID_MESSAGE)
    return ObjectId(value)


def _strip_reserved(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if key not in RESERVED_KEYS}


@dataclass
class User:
    """A stored user: identifier plus an open set of fields."""

    id: ObjectId
    fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_request_json(cls, data: Any) -> "User":
        """
        Build a new user from a decoded request body.

        The identifier is always freshly generated; an "id" or "_id" sent by
        the client is dropped.

        Raises:
            ValidationError: data is not a JSON object.
        """
        if not isinstance(data, dict):
            raise ValidationError(INVALID_BODY_MESSAGE)
        return cls(id=ObjectId(), fields=_strip_reserved(data))

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "User":
        return cls(id=document["_id"], fields=_strip_reserved(document))

    def to_document(self) -> Dict[str, Any]:
        return {"_id": self.id, **self.fields}

    def to_json(self) -> Dict[str, Any]:
        """JSON-ready dict, identifier first as hex text."""
        return {"id": str(self.id), **self.fields}
