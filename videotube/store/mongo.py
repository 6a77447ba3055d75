from contextlib import contextmanager
from typing import Any, List, Optional, Sequence

from bson import ObjectId
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING, TEXT, ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError, ExecutionTimeout, WTimeoutError

from videotube.config import settings
from videotube.errors import Conflict, Unavailable
from videotube.models import COMMENTS, LIKES, PLAYLISTS, SUBSCRIPTIONS, USERS, VIDEOS
from videotube.pipeline.predicates import Predicate, to_filter
from videotube.store.base import Document, DocumentStore, SortSpec


@contextmanager
def _translate_errors(operation: str, collection: str):
    try:
        yield
    except DuplicateKeyError as e:
        raise Conflict(f"Duplicate key in {collection}") from e
    except (ConnectionFailure, ExecutionTimeout, WTimeoutError) as e:
        logger.warning(f"Store {operation} on {collection} failed: {e}")
        raise Unavailable(f"Store unavailable during {operation}") from e


class MongoStore(DocumentStore):
    """DocumentStore backed by MongoDB through Motor"""

    def __init__(self, url: Optional[str] = None, db_name: Optional[str] = None):
        self.url = url or settings.MONGODB_URL
        self.db_name = db_name or settings.MONGODB_DB_NAME
        self.client = None
        self.db = None

    async def connect(self):
        self.client = AsyncIOMotorClient(
            self.url,
            serverSelectionTimeoutMS=settings.STORE_TIMEOUT_MS,
            socketTimeoutMS=settings.STORE_TIMEOUT_MS,
            tz_aware=True,
        )
        self.db = self.client[self.db_name]
        await self.ensure_indexes()
        logger.info(f"Connected to MongoDB database '{self.db_name}'")

    async def ensure_indexes(self):
        db = self.db
        with _translate_errors("create_index", "*"):
            await db[USERS].create_index("username", unique=True)

            await db[VIDEOS].create_index([("created_at", DESCENDING)])
            await db[VIDEOS].create_index([("views", DESCENDING)])
            await db[VIDEOS].create_index([("owner", ASCENDING), ("is_published", ASCENDING)])
            await db[VIDEOS].create_index(
                [("title", TEXT), ("description", TEXT)],
                name=settings.VIDEO_SEARCH_INDEX,
            )

            await db[COMMENTS].create_index([("video", ASCENDING), ("created_at", DESCENDING)])
            await db[COMMENTS].create_index("owner")

            # One like per (user, target) and one subscription per (subscriber, channel)
            await db[LIKES].create_index(
                [("liked_by", ASCENDING), ("target_kind", ASCENDING), ("target_id", ASCENDING)],
                unique=True,
            )
            await db[LIKES].create_index([("target_kind", ASCENDING), ("target_id", ASCENDING)])
            await db[SUBSCRIPTIONS].create_index(
                [("subscriber", ASCENDING), ("channel", ASCENDING)],
                unique=True,
            )
            await db[SUBSCRIPTIONS].create_index("channel")

            await db[PLAYLISTS].create_index([("owner", ASCENDING), ("created_at", DESCENDING)])

    async def close(self):
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed")

    async def find(
        self,
        collection: str,
        predicate: Optional[Predicate] = None,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Document]:
        cursor = self.db[collection].find(to_filter(predicate))
        if sort:
            cursor = cursor.sort(list(sort))
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        with _translate_errors("find", collection):
            return await cursor.to_list(length=None)

    async def count(self, collection: str, predicate: Optional[Predicate] = None) -> int:
        with _translate_errors("count", collection):
            return await self.db[collection].count_documents(to_filter(predicate))

    async def text_search(
        self,
        collection: str,
        index: str,
        fields: Sequence[str],
        query: str,
        predicate: Optional[Predicate] = None,
    ) -> List[Document]:
        # MongoDB allows one text index per collection; index and fields are
        # declared in ensure_indexes, so they only document the contract here.
        search_query = {"$text": {"$search": query}}
        extra = to_filter(predicate)
        if extra:
            search_query = {"$and": [search_query, extra]}

        cursor = self.db[collection].find(
            search_query,
            {"score": {"$meta": "textScore"}}
        ).sort([
            ("score", {"$meta": "textScore"}),
            ("created_at", DESCENDING)
        ])
        with _translate_errors("text_search", collection):
            return await cursor.to_list(length=None)

    async def insert(self, collection: str, document: Document) -> Document:
        doc = dict(document)
        with _translate_errors("insert", collection):
            result = await self.db[collection].insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    async def update(self, collection: str, id: ObjectId, patch: Document) -> Optional[Document]:
        with _translate_errors("update", collection):
            return await self.db[collection].find_one_and_update(
                {"_id": id},
                {"$set": patch},
                return_document=ReturnDocument.AFTER
            )

    async def delete(self, collection: str, id: ObjectId) -> bool:
        with _translate_errors("delete", collection):
            result = await self.db[collection].delete_one({"_id": id})
        return result.deleted_count > 0

    async def delete_many(self, collection: str, predicate: Predicate) -> int:
        with _translate_errors("delete_many", collection):
            result = await self.db[collection].delete_many(to_filter(predicate))
        return result.deleted_count

    async def increment(self, collection: str, id: ObjectId, field: str, delta: int = 1) -> bool:
        with _translate_errors("increment", collection):
            result = await self.db[collection].update_one(
                {"_id": id},
                {"$inc": {field: delta}}
            )
        return result.matched_count > 0

    async def set_add(self, collection: str, id: ObjectId, field: str, value: Any) -> bool:
        with _translate_errors("set_add", collection):
            result = await self.db[collection].update_one(
                {"_id": id},
                {"$addToSet": {field: value}}
            )
        return result.matched_count > 0

    async def array_push(self, collection: str, id: ObjectId, field: str, value: Any) -> Optional[Document]:
        with _translate_errors("array_push", collection):
            return await self.db[collection].find_one_and_update(
                {"_id": id},
                {"$push": {field: value}},
                return_document=ReturnDocument.AFTER
            )

    async def array_pull(self, collection: str, id: ObjectId, field: str, value: Any) -> Optional[Document]:
        with _translate_errors("array_pull", collection):
            return await self.db[collection].find_one_and_update(
                {"_id": id},
                {"$pull": {field: value}},
                return_document=ReturnDocument.AFTER
            )
