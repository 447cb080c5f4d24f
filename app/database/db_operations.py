"""
Database operations - Generic CRUD functions for all collections
"""
from typing import List, Dict, Optional, Any, Tuple
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from app.config.database import db_config
from datetime import datetime

def to_object_id(doc_id: Any) -> Optional[ObjectId]:
    """Coerce a string id to ObjectId, None when malformed"""
    if isinstance(doc_id, ObjectId):
        return doc_id
    try:
        return ObjectId(doc_id)
    except (InvalidId, TypeError):
        return None

class DBOperations:
    """Generic database operations for MongoDB collections"""

    @staticmethod
    async def get_all(
        collection_name: str,
        filter_query: Dict = None,
        skip: int = 0,
        limit: int = 100,
        sort: List[Tuple[str, int]] = None
    ) -> List[Dict]:
        """Get all documents from a collection with optional filtering"""
        collection = db_config.get_collection(collection_name)
        filter_query = filter_query or {}
        cursor = collection.find(filter_query)
        if sort:
            cursor = cursor.sort(sort)
        cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        documents = await cursor.to_list(length=limit or None)
        return documents

    @staticmethod
    async def get_by_id(collection_name: str, doc_id: str) -> Optional[Dict]:
        """Get a single document by ID"""
        object_id = to_object_id(doc_id)
        if object_id is None:
            return None
        collection = db_config.get_collection(collection_name)
        return await collection.find_one({"_id": object_id})

    @staticmethod
    async def get_one(collection_name: str, filter_query: Dict) -> Optional[Dict]:
        """Get a single document by filter query"""
        collection = db_config.get_collection(collection_name)
        document = await collection.find_one(filter_query)
        return document

    @staticmethod
    async def create(collection_name: str, document: Dict) -> Dict:
        """Create a new document"""
        collection = db_config.get_collection(collection_name)
        document["created_at"] = datetime.utcnow()
        document["updated_at"] = datetime.utcnow()
        result = await collection.insert_one(document)
        document["_id"] = result.inserted_id
        return document

    @staticmethod
    async def update(collection_name: str, doc_id: str, update_data: Dict) -> Optional[Dict]:
        """Update a document by ID"""
        return await DBOperations.modify(collection_name, doc_id, {"$set": update_data})

    @staticmethod
    async def modify(collection_name: str, doc_id: str, operations: Dict) -> Optional[Dict]:
        """Apply raw update operators ($set, $push, $inc...) to a document by ID"""
        object_id = to_object_id(doc_id)
        if object_id is None:
            return None
        collection = db_config.get_collection(collection_name)
        operations = dict(operations)
        operations["$set"] = {**operations.get("$set", {}), "updated_at": datetime.utcnow()}
        return await collection.find_one_and_update(
            {"_id": object_id},
            operations,
            return_document=ReturnDocument.AFTER
        )

    @staticmethod
    async def update_many(collection_name: str, filter_query: Dict, update_data: Dict) -> int:
        """Set fields on every matching document, returns modified count"""
        collection = db_config.get_collection(collection_name)
        update_data["updated_at"] = datetime.utcnow()
        result = await collection.update_many(filter_query, {"$set": update_data})
        return result.modified_count

    @staticmethod
    async def delete(collection_name: str, doc_id: str) -> bool:
        """Delete a document by ID"""
        object_id = to_object_id(doc_id)
        if object_id is None:
            return False
        collection = db_config.get_collection(collection_name)
        result = await collection.delete_one({"_id": object_id})
        return result.deleted_count > 0

    @staticmethod
    async def delete_many(collection_name: str, filter_query: Dict) -> int:
        """Delete every matching document, returns deleted count"""
        collection = db_config.get_collection(collection_name)
        result = await collection.delete_many(filter_query)
        return result.deleted_count

    @staticmethod
    async def count(collection_name: str, filter_query: Dict = None) -> int:
        """Count documents in a collection"""
        collection = db_config.get_collection(collection_name)
        filter_query = filter_query or {}
        count = await collection.count_documents(filter_query)
        return count

    @staticmethod
    async def exists(collection_name: str, filter_query: Dict) -> bool:
        """True when at least one document matches"""
        return await DBOperations.get_one(collection_name, filter_query) is not None

db_ops = DBOperations()
