"""
Database Helper Functions

MongoDB helpers wrapped in an explicitly constructed Database object.
Create one at startup (Database.from_settings) and pass it to the repositories.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import MongoClient

from config import Settings
from logger import get_logger

_logger = get_logger(__name__)


class DatabaseUnavailable(Exception):
    """Raised when the document store was never configured."""


class Database:
    def __init__(self, client=None, name: Optional[str] = None):
        self._client = client
        self.db = client[name] if client is not None and name else None

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        if settings.database_url and settings.database_name:
            _logger.info(f"Connecting to database '{settings.database_name}'")
            return cls(MongoClient(settings.database_url), settings.database_name)
        _logger.warning("DATABASE_URL / DATABASE_NAME not set, database disabled")
        return cls()

    @property
    def configured(self) -> bool:
        return self.db is not None

    def _ensure_db(self):
        if self.db is None:
            raise DatabaseUnavailable("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")

    def collection(self, name: str):
        self._ensure_db()
        return self.db[name]

    def create_document(self, collection_name: str, data: Union[BaseModel, dict]) -> str:
        """Insert a single document with createdAt/updatedAt timestamps"""
        if isinstance(data, BaseModel):
            data_dict = data.model_dump(by_alias=True)
        else:
            data_dict = data.copy()

        now = datetime.now(timezone.utc)
        data_dict["createdAt"] = now
        data_dict["updatedAt"] = now

        result = self.collection(collection_name).insert_one(data_dict)
        return str(result.inserted_id)

    def get_documents(self, collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None, sort: Optional[list] = None):
        """Get documents from collection"""
        cursor = self.collection(collection_name).find(filter_dict or {})
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def get_document_by_id(self, collection_name: str, doc_id: ObjectId) -> Optional[Dict[str, Any]]:
        return self.collection(collection_name).find_one({"_id": doc_id})

    def update_document(self, collection_name: str, doc_id: ObjectId, data: dict) -> bool:
        """$set fields plus updatedAt. True when the document exists."""
        data = data.copy()
        data["updatedAt"] = datetime.now(timezone.utc)
        res = self.collection(collection_name).update_one({"_id": doc_id}, {"$set": data})
        return res.matched_count > 0

    def delete_document(self, collection_name: str, doc_id: ObjectId) -> bool:
        res = self.collection(collection_name).delete_one({"_id": doc_id})
        return res.deleted_count > 0

    def increment_field(self, collection_name: str, doc_id: ObjectId, field: str, delta: int, floor: Optional[int] = None) -> bool:
        """Atomic $inc. With a floor, a decrement that would go below it matches nothing."""
        query: Dict[str, Any] = {"_id": doc_id}
        if floor is not None and delta < 0:
            query[field] = {"$gte": floor - delta}
        res = self.collection(collection_name).update_one(query, {"$inc": {field: delta}})
        return res.matched_count > 0

    def count_documents(self, collection_name: str, filter_dict: Optional[dict] = None) -> int:
        return self.collection(collection_name).count_documents(filter_dict or {})

    def ping(self) -> dict:
        """Connectivity report for the health endpoint"""
        if self.db is None:
            return {"database": "not configured", "collections": []}
        try:
            return {"database": "connected", "collections": self.db.list_collection_names()[:10]}
        except Exception as e:
            _logger.error(f"Database ping failed: {e}")
            return {"database": "error", "collections": []}
