from __future__ import annotations

"""Base repository pattern for MongoDB collections"""

from abc import ABC
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database

T = TypeVar("T", bound=BaseModel)


class BaseRepository(ABC, Generic[T]):
    """Common CRUD helpers shared by every collection wrapper"""

    def __init__(self, db: Database, collection_name: str, model_class: Type[T]):
        self.db = db
        self.collection: Collection = db[collection_name]
        self.model_class = model_class

    def find_by_id(self, entity_id: str | ObjectId | None) -> Optional[T]:
        identifier = self._to_object_id(entity_id)
        if identifier is None:
            return None
        return self._to_model(self.collection.find_one({"_id": identifier}))

    def find_one(self, query: Dict[str, Any]) -> Optional[T]:
        return self._to_model(self.collection.find_one(query))

    def find_many(
        self,
        query: Dict[str, Any],
        sort: Optional[List[tuple]] = None,
        limit: int = 0,
    ) -> List[T]:
        cursor = self.collection.find(query)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return [self._to_model(doc) for doc in cursor if doc]

    def insert_one(self, document: Union[T, Dict[str, Any]]) -> T:
        if isinstance(document, BaseModel):
            doc_dict = document.to_document()
        else:
            doc_dict = dict(document)

        result = self.collection.insert_one(doc_dict)
        doc_dict["_id"] = result.inserted_id
        return self._to_model(doc_dict)

    def update_one(self, entity_id: str | ObjectId, updates: Dict[str, Any]) -> Optional[T]:
        """Update a document by ID and return the fresh copy"""
        identifier = self._to_object_id(entity_id)
        if identifier is None:
            return None
        updates = {**updates, "updated_at": _now()}
        doc = self.collection.find_one_and_update(
            {"_id": identifier},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(doc)

    def update_many(self, query: Dict[str, Any], updates: Dict[str, Any]) -> int:
        result = self.collection.update_many(query, {"$set": updates})
        return result.modified_count

    def delete_one(self, entity_id: str | ObjectId) -> bool:
        identifier = self._to_object_id(entity_id)
        if identifier is None:
            return False
        result = self.collection.delete_one({"_id": identifier})
        return result.deleted_count > 0

    def delete_many(self, query: Dict[str, Any]) -> int:
        result = self.collection.delete_many(query)
        return result.deleted_count

    def count(self, query: Dict[str, Any] | None = None) -> int:
        return self.collection.count_documents(query or {})

    def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return list(self.collection.aggregate(pipeline))

    def find_one_and_update(
        self,
        query: Dict[str, Any],
        update: Dict[str, Any],
        upsert: bool = False,
    ) -> Optional[T]:
        """Atomically find and update a document, returning the updated copy."""
        doc = self.collection.find_one_and_update(
            query,
            update,
            upsert=upsert,
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(doc)

    def upsert_one(self, query: Dict[str, Any], data: Dict[str, Any]) -> T:
        """
        Insert or update the document identified by a natural key.

        Args:
            query: Natural-key filter
            data: Fields to set (merged with the key fields on insert)

        Returns:
            The stored document as model
        """
        now = _now()
        doc = self.collection.find_one_and_update(
            query,
            {
                "$set": {**query, **data, "updated_at": now},
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(doc)

    def _to_model(self, doc: Optional[Dict[str, Any]]) -> Optional[T]:
        if not doc:
            return None
        return self.model_class.model_validate(doc)

    @staticmethod
    def _to_object_id(value: str | ObjectId | None) -> ObjectId | None:
        if value is None:
            return None
        if isinstance(value, ObjectId):
            return value
        if isinstance(value, str):
            try:
                return ObjectId(value)
            except (InvalidId, TypeError):
                return None
        return None

    @staticmethod
    def ensure_object_id(value: str | ObjectId) -> ObjectId:
        """
        Ensure value is a valid ObjectId, raising error if invalid.

        Raises:
            ValueError: If value is an invalid ObjectId string
            TypeError: If value is not str or ObjectId
        """
        if isinstance(value, ObjectId):
            return value
        if isinstance(value, str):
            if ObjectId.is_valid(value):
                return ObjectId(value)
            raise ValueError(f"Invalid ObjectId string: {value}")
        raise TypeError(f"Expected str or ObjectId, got {type(value).__name__}")


def _now() -> datetime:
    return datetime.now(timezone.utc)
