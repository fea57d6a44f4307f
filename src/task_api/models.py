from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping, TypedDict

from .errors import TaskValidationError


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    A lightweight domain model representing a stored Task, independent of the
    storage backend.

    Fields:
    - id: ObjectId rendered as a 24-char hex string, assigned once on insert
    - title: Non-empty, trimmed title
    - description: Trimmed description, "" when not supplied
    - completed: Boolean completion flag
    - created_at: UTC creation timestamp
    - updated_at: UTC timestamp of the last mutation
    """

    id: str
    title: str
    description: str
    completed: bool
    created_at: datetime
    updated_at: datetime


# Fields a client may write; everything else is owned by the store.
WRITABLE_FIELDS = ("title", "description", "completed")


# PUBLIC_INTERFACE
def apply_defaults(candidate: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of the writable fields of candidate with defaults filled in
    (description -> "", completed -> False) and text fields trimmed.
    """
    doc: Dict[str, Any] = {k: candidate[k] for k in WRITABLE_FIELDS if k in candidate}
    if doc.get("description") is None:
        doc["description"] = ""
    if "completed" not in doc:
        doc["completed"] = False
    for key in ("title", "description"):
        if isinstance(doc.get(key), str):
            doc[key] = doc[key].strip()
    return doc


def _check_field(name: str, value: Any) -> None:
    if name == "title":
        if value is None:
            raise TaskValidationError("title", "Title is required")
        if not isinstance(value, str):
            raise TaskValidationError("title", "Title must be a string")
        if not value.strip():
            raise TaskValidationError("title", "Title must not be empty")
    elif name == "description":
        if not isinstance(value, str):
            raise TaskValidationError("description", "Description must be a string")
    elif name == "completed":
        if not isinstance(value, bool):
            raise TaskValidationError("completed", "Completed must be a boolean")


# PUBLIC_INTERFACE
def validate_task(candidate: Mapping[str, Any]) -> None:
    """
    Check a task document against the schema rules.

    Raises:
        TaskValidationError naming the first offending field.
    """
    _check_field("title", candidate.get("title"))
    _check_field("description", candidate.get("description", ""))
    _check_field("completed", candidate.get("completed", False))


# PUBLIC_INTERFACE
def validate_changes(changes: Mapping[str, Any]) -> None:
    """
    Check only the supplied writable fields of a partial update. Applied to an
    already valid document, passing changes always yield a valid document.
    """
    for name in WRITABLE_FIELDS:
        if name in changes:
            _check_field(name, changes[name])
