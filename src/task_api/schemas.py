from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_COMPLETED_STRINGS = {"true": True, "false": False}


def _coerce_completed(value: Any) -> bool:
    """
    Internal helper implementing the single coercion rule for `completed`.
    - JSON booleans pass through.
    - The strings "true"/"false" (any case, surrounding whitespace ignored) map to booleans.
    - Everything else ("1", "yes", 1, null, ...) is rejected.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        if key in _COMPLETED_STRINGS:
            return _COMPLETED_STRINGS[key]
    raise ValueError("completed must be a boolean (true/false)")


def _clean_title(value: str) -> str:
    s = value.strip()
    if not s:
        raise ValueError("Title must not be empty")
    return s


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for creating a new Task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "completed": False,
            }
        }
    )

    title: str = Field(..., description="Short title for the task; trimmed, must not be empty")
    description: str = Field(default="", description="Optional detailed description; trimmed")
    completed: bool = Field(default=False, description="Completion status flag")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and reject empty titles.
        """
        return _clean_title(v)

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, v: Any) -> Any:
        """
        Treat an explicit null like an absent description.
        """
        return "" if v is None else v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        return v.strip()

    @field_validator("completed", mode="before")
    @classmethod
    def coerce_completed(cls, v: Any) -> bool:
        return _coerce_completed(v)


# PUBLIC_INTERFACE
class TaskUpdate(BaseModel):
    """
    Schema for partially updating an existing Task.
    All fields are optional; only fields present in the request body are applied
    (see `model_fields_set`). Unknown keys (including id and timestamps) are ignored.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "completed": True,
            }
        }
    )

    title: Optional[str] = Field(default=None, description="New title; must not be empty")
    description: Optional[str] = Field(default=None, description="New description")
    completed: Optional[bool] = Field(default=None, description="New completion status")

    @field_validator("title", mode="before")
    @classmethod
    def reject_null_title(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("Title must not be empty")
        return v

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        If title is provided, strip whitespace and reject empty values.
        """
        return _clean_title(v)

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        return v.strip()

    @field_validator("completed", mode="before")
    @classmethod
    def coerce_completed(cls, v: Any) -> bool:
        return _coerce_completed(v)

    # PUBLIC_INTERFACE
    def changes(self) -> dict[str, Any]:
        """Return only the fields supplied by the client, with their validated values."""
        return {name: getattr(self, name) for name in self.model_fields_set}


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a Task. Timestamps are exposed as
    createdAt/updatedAt; id is always a string.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "665f1c2e8b3f4a1d2c3b4a59",
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "completed": False,
                "createdAt": "2025-01-25T10:15:30.123000Z",
                "updatedAt": "2025-01-26T09:00:00.000000Z",
            }
        },
    )

    id: str = Field(..., description="Unique identifier of the task")
    title: str = Field(..., description="Short title for the task")
    description: str = Field(default="", description="Detailed description")
    completed: bool = Field(..., description="Completion status flag")
    created_at: datetime = Field(..., alias="createdAt", description="Creation timestamp")
    updated_at: datetime = Field(..., alias="updatedAt", description="Last update timestamp")


# PUBLIC_INTERFACE
class MessageOut(BaseModel):
    """Confirmation body for operations without a resource to return."""

    message: str = Field(..., description="Human readable confirmation")
