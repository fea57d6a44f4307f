from __future__ import annotations

from bson import ObjectId
from bson.errors import InvalidId

from .errors import MalformedIdentifier


# PUBLIC_INTERFACE
def new_task_id() -> str:
    """Generate a fresh task id (24-char hex ObjectId)."""
    return str(ObjectId())


# PUBLIC_INTERFACE
def is_valid_task_id(value: object) -> bool:
    """
    Pure syntactic check: True if value is a 24-char hex string that parses as
    an ObjectId. Says nothing about whether such a task exists.
    """
    return isinstance(value, str) and ObjectId.is_valid(value)


# PUBLIC_INTERFACE
def to_object_id(value: object) -> ObjectId:
    """Convert a task id string to an ObjectId, raising MalformedIdentifier if it is not one."""
    if not isinstance(value, str):
        raise MalformedIdentifier(value)
    try:
        return ObjectId(value)
    except (InvalidId, TypeError) as e:
        raise MalformedIdentifier(value) from e
