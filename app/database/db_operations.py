"""
Database operations - thin async helpers shared by the commission services
"""
from typing import List, Dict, Optional, Any, Sequence, Tuple
from bson import ObjectId
from bson.errors import InvalidId
from app.config.database import db_config
from datetime import datetime


def to_object_id(doc_id: Any) -> Optional[ObjectId]:
    """Parse a string id into an ObjectId, None when it is not a valid id"""
    if isinstance(doc_id, ObjectId):
        return doc_id
    try:
        return ObjectId(str(doc_id))
    except (InvalidId, TypeError):
        return None


class DBOperations:
    """Generic database operations for MongoDB collections"""

    @staticmethod
    async def find(
        collection_name: str,
        filter_query: Dict = None,
        sort: Optional[Sequence[Tuple[str, int]]] = None,
        limit: int = 0,
    ) -> List[Dict]:
        """Get every document matching the filter, optionally sorted"""
        collection = db_config.get_collection(collection_name)
        cursor = collection.find(filter_query or {})
        if sort:
            cursor = cursor.sort(list(sort))
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=limit or None)

    @staticmethod
    async def get_by_id(collection_name: str, doc_id: str) -> Optional[Dict]:
        """Get a single document by ID"""
        object_id = to_object_id(doc_id)
        if object_id is None:
            return None
        collection = db_config.get_collection(collection_name)
        return await collection.find_one({"_id": object_id})

    @staticmethod
    async def get_many_by_ids(collection_name: str, doc_ids: Sequence[str]) -> Dict[str, Dict]:
        """Load documents for a list of ids, keyed by their string id"""
        object_ids = [oid for oid in (to_object_id(d) for d in doc_ids) if oid is not None]
        if not object_ids:
            return {}
        collection = db_config.get_collection(collection_name)
        docs = await collection.find({"_id": {"$in": object_ids}}).to_list(length=None)
        return {str(doc["_id"]): doc for doc in docs}

    @staticmethod
    async def get_one(collection_name: str, filter_query: Dict) -> Optional[Dict]:
        """Get a single document by filter query"""
        collection = db_config.get_collection(collection_name)
        return await collection.find_one(filter_query)

    @staticmethod
    async def create(collection_name: str, document: Dict) -> Dict:
        """Create a new document"""
        collection = db_config.get_collection(collection_name)
        now = datetime.utcnow()
        document.setdefault("created_at", now)
        document["updated_at"] = now
        result = await collection.insert_one(document)
        document["_id"] = result.inserted_id
        return document

    @staticmethod
    async def update(collection_name: str, doc_id: Any, update_data: Dict) -> Optional[Dict]:
        """Update a document by ID and return the new version"""
        object_id = to_object_id(doc_id)
        if object_id is None:
            return None
        collection = db_config.get_collection(collection_name)
        update_data["updated_at"] = datetime.utcnow()
        return await collection.find_one_and_update(
            {"_id": object_id},
            {"$set": update_data},
            return_document=True
        )

    @staticmethod
    async def set_many(collection_name: str, doc_ids: Sequence[str], update_data: Dict) -> int:
        """Apply the same $set to a batch of documents, returns the matched count"""
        object_ids = [oid for oid in (to_object_id(d) for d in doc_ids) if oid is not None]
        if not object_ids:
            return 0
        collection = db_config.get_collection(collection_name)
        result = await collection.update_many(
            {"_id": {"$in": object_ids}},
            {"$set": {**update_data, "updated_at": datetime.utcnow()}},
        )
        return result.matched_count

    @staticmethod
    async def count(collection_name: str, filter_query: Dict = None) -> int:
        """Count documents in a collection"""
        collection = db_config.get_collection(collection_name)
        return await collection.count_documents(filter_query or {})

db_ops = DBOperations()
