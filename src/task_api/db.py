from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Mapping, Optional

from pymongo import ASCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from .errors import StoreFailure
from .identifiers import to_object_id
from .models import TaskEntity, apply_defaults, validate_changes, validate_task
from .repositories import Repository, utcnow
from .schemas import TaskCreate, TaskUpdate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Fields:
    id: str = "_id"
    title: str = "title"
    description: str = "description"
    completed: str = "completed"
    created_at: str = "createdAt"
    updated_at: str = "updatedAt"


_F = _Fields()


def _as_utc(value: datetime) -> datetime:
    # Clients without tz_aware=True hand back naive UTC datetimes.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class MongoRepository(Repository):
    """
    Repository backed by a MongoDB collection. Each operation maps to a single
    store primitive; atomicity is whatever MongoDB gives a single-document write.
    """

    def __init__(self, collection: Collection) -> None:
        self._collection = collection
        with self._guard("create_index"):
            self._collection.create_index([(_F.completed, ASCENDING)])

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except PyMongoError as e:
            logger.debug("MongoDB %s failed: %s", operation, e)
            raise StoreFailure(operation, e) from e

    @staticmethod
    def _doc_to_entity(doc: Mapping[str, Any]) -> TaskEntity:
        return {
            "id": str(doc[_F.id]),
            "title": str(doc[_F.title]),
            "description": doc.get(_F.description) or "",
            "completed": bool(doc.get(_F.completed, False)),
            "created_at": _as_utc(doc[_F.created_at]),
            "updated_at": _as_utc(doc[_F.updated_at]),
        }

    def insert(self, data: TaskCreate) -> TaskEntity:
        fields = apply_defaults(data.model_dump())
        validate_task(fields)
        now = utcnow()
        doc: Dict[str, Any] = {
            _F.title: fields["title"],
            _F.description: fields["description"],
            _F.completed: fields["completed"],
            _F.created_at: now,
            _F.updated_at: now,
        }
        with self._guard("insert"):
            result = self._collection.insert_one(doc)
        doc[_F.id] = result.inserted_id
        logger.debug("Inserted task %s", result.inserted_id)
        return self._doc_to_entity(doc)

    def find_all(self, completed: Optional[bool] = None) -> List[TaskEntity]:
        query: Dict[str, Any] = {}
        if completed is not None:
            query[_F.completed] = completed
        with self._guard("find"):
            docs = list(self._collection.find(query))
        return [self._doc_to_entity(d) for d in docs]

    def find_by_id(self, task_id: str) -> Optional[TaskEntity]:
        oid = to_object_id(task_id)
        with self._guard("find_one"):
            doc = self._collection.find_one({_F.id: oid})
        return self._doc_to_entity(doc) if doc else None

    def update_by_id(self, task_id: str, data: TaskUpdate) -> Optional[TaskEntity]:
        oid = to_object_id(task_id)
        changes = data.changes()
        validate_changes(changes)

        updates: Dict[str, Any] = {getattr(_F, k): v for k, v in changes.items()}
        updates[_F.updated_at] = utcnow()
        with self._guard("find_one_and_update"):
            doc = self._collection.find_one_and_update(
                {_F.id: oid},
                {"$set": updates},
                return_document=ReturnDocument.AFTER,
            )
        return self._doc_to_entity(doc) if doc else None

    def delete_by_id(self, task_id: str) -> bool:
        oid = to_object_id(task_id)
        with self._guard("delete_one"):
            result = self._collection.delete_one({_F.id: oid})
        return result.deleted_count > 0
