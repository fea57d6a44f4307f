from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Dict, Iterator, List, Optional

from .identifiers import new_task_id, to_object_id
from .models import TaskEntity, apply_defaults, validate_task
from .schemas import TaskCreate, TaskUpdate
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current UTC time at millisecond precision, the resolution BSON dates keep."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


# PUBLIC_INTERFACE
class Repository(ABC):
    """Abstract repository contract for task storage backends."""

    @abstractmethod
    def insert(self, data: TaskCreate) -> TaskEntity:
        """
        Assign id and timestamps, validate and persist a new task, and return it.
        Raises TaskValidationError if the assembled document fails schema rules.
        """

    @abstractmethod
    def find_all(self, completed: Optional[bool] = None) -> List[TaskEntity]:
        """
        Return every stored task (optionally only those with the given completion
        flag). Order is not guaranteed. Never None; an empty store gives [].
        """

    @abstractmethod
    def find_by_id(self, task_id: str) -> Optional[TaskEntity]:
        """
        Return a task by id, or None if no task has that id.
        Raises MalformedIdentifier if task_id is not a valid identifier.
        """

    @abstractmethod
    def update_by_id(self, task_id: str, data: TaskUpdate) -> Optional[TaskEntity]:
        """
        Apply only the supplied fields, re-validate the merged document, refresh
        updated_at and persist. Return the updated task or None if not found.
        """

    @abstractmethod
    def delete_by_id(self, task_id: str) -> bool:
        """Delete a task by id. Return True if deleted, False if nothing was there."""


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.
    Ids are ObjectId hex strings so that id validation behaves like the Mongo backend.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: Dict[str, TaskEntity] = {}

    def insert(self, data: TaskCreate) -> TaskEntity:
        doc = apply_defaults(data.model_dump())
        validate_task(doc)
        now = utcnow()
        entity: TaskEntity = {
            "id": new_task_id(),
            "title": doc["title"],
            "description": doc["description"],
            "completed": doc["completed"],
            "created_at": now,
            "updated_at": now,
        }
        with self._lock:
            self._items[entity["id"]] = entity
        logger.debug("Inserted task %s", entity["id"])
        return entity.copy()  # type: ignore[return-value]

    def find_all(self, completed: Optional[bool] = None) -> List[TaskEntity]:
        with self._lock:
            items = list(self._items.values())
        if completed is not None:
            items = [t for t in items if t["completed"] == completed]
        # Return copies to avoid external mutation
        return [t.copy() for t in items]  # type: ignore[misc]

    def find_by_id(self, task_id: str) -> Optional[TaskEntity]:
        key = str(to_object_id(task_id))
        with self._lock:
            item = self._items.get(key)
            return None if item is None else item.copy()  # type: ignore[return-value]

    def update_by_id(self, task_id: str, data: TaskUpdate) -> Optional[TaskEntity]:
        key = str(to_object_id(task_id))
        with self._lock:
            existing = self._items.get(key)
            if existing is None:
                return None

            # Update only provided fields
            updated: Dict[str, Any] = dict(existing)
            updated.update(data.changes())
            validate_task(updated)
            updated["updated_at"] = utcnow()

            self._items[key] = updated  # type: ignore[assignment]
            return updated.copy()  # type: ignore[return-value]

    def delete_by_id(self, task_id: str) -> bool:
        key = str(to_object_id(task_id))
        with self._lock:
            return self._items.pop(key, None) is not None


# PUBLIC_INTERFACE
@contextmanager
def open_repository(settings: Optional[Settings] = None) -> Iterator[Repository]:
    """
    Scoped acquisition of the configured repository.
    - memory: a fresh InMemoryRepository
    - mongo: a MongoRepository over a MongoClient that is closed on exit
    """
    settings = settings or get_settings()
    if settings.persistence_backend != "mongo":
        logger.info("Using in-memory task store")
        yield InMemoryRepository()
        return

    from pymongo import MongoClient

    from .db import MongoRepository

    client: MongoClient = MongoClient(
        settings.mongo_uri,
        serverSelectionTimeoutMS=settings.mongo_timeout_ms,
        tz_aware=True,
    )
    logger.info(
        "Connecting to MongoDB database '%s' (collection '%s')",
        settings.mongo_db_name,
        settings.mongo_collection,
    )
    try:
        yield MongoRepository(client[settings.mongo_db_name][settings.mongo_collection])
    finally:
        client.close()
        logger.info("MongoDB connection closed")
