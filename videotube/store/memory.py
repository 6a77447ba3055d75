"""In-process DocumentStore.

Mirrors the MongoStore contract (unique indexes, atomic updates, text
search with a score) closely enough to run every recipe without a server.
Used by the test-suite and by ``STORE_BACKEND=memory`` for local work.
"""
import copy
import re
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId

from videotube.errors import Conflict
from videotube.models import LIKES, SUBSCRIPTIONS, USERS
from videotube.pipeline.pagination import DESC, sort_documents
from videotube.pipeline.predicates import Predicate, get_path
from videotube.store.base import Document, DocumentStore, SortSpec

DEFAULT_UNIQUE_KEYS: Dict[str, List[Tuple[str, ...]]] = {
    USERS: [("username",)],
    LIKES: [("liked_by", "target_kind", "target_id")],
    SUBSCRIPTIONS: [("subscriber", "channel")],
}

_WORD = re.compile(r"\w+", re.UNICODE)


def _tokens(text: Any) -> List[str]:
    if not isinstance(text, str):
        return []
    return _WORD.findall(text.lower())


class MemoryStore(DocumentStore):

    def __init__(self, unique_keys: Optional[Dict[str, List[Tuple[str, ...]]]] = None):
        self.collections: Dict[str, Dict[ObjectId, Document]] = defaultdict(dict)
        self.unique_keys = DEFAULT_UNIQUE_KEYS if unique_keys is None else unique_keys
        self.calls: List[Tuple[str, str]] = []

    def _record(self, operation: str, collection: str):
        self.calls.append((operation, collection))

    def _select(self, collection: str, predicate: Optional[Predicate]) -> List[Document]:
        docs = self.collections[collection].values()
        if predicate is None:
            return list(docs)
        return [d for d in docs if predicate.matches(d)]

    def _check_unique(self, collection: str, doc: Document, ignore: Optional[ObjectId] = None):
        for fields in self.unique_keys.get(collection, []):
            key = tuple(get_path(doc, f) for f in fields)
            if any(v is None for v in key):
                continue
            for other_id, other in self.collections[collection].items():
                if other_id == ignore:
                    continue
                if tuple(get_path(other, f) for f in fields) == key:
                    raise Conflict(f"Duplicate key in {collection}: {dict(zip(fields, key))}")

    async def find(
        self,
        collection: str,
        predicate: Optional[Predicate] = None,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Document]:
        self._record("find", collection)
        docs = self._select(collection, predicate)
        if sort:
            docs = sort_documents(docs, tuple(sort))
        if skip:
            docs = docs[skip:]
        if limit:
            docs = docs[:limit]
        return copy.deepcopy(docs)

    async def count(self, collection: str, predicate: Optional[Predicate] = None) -> int:
        self._record("count", collection)
        return len(self._select(collection, predicate))

    async def text_search(
        self,
        collection: str,
        index: str,
        fields: Sequence[str],
        query: str,
        predicate: Optional[Predicate] = None,
    ) -> List[Document]:
        self._record("text_search", collection)
        terms = set(_tokens(query))
        ranked = []
        for doc in self._select(collection, predicate):
            words = []
            for field in fields:
                words.extend(_tokens(get_path(doc, field)))
            score = float(sum(1 for w in words if w in terms))
            if score > 0:
                hit = copy.deepcopy(doc)
                hit["score"] = score
                ranked.append(hit)
        return sort_documents(ranked, (("score", DESC), ("created_at", DESC)))

    async def insert(self, collection: str, document: Document) -> Document:
        self._record("insert", collection)
        doc = copy.deepcopy(document)
        doc.setdefault("_id", ObjectId())
        if doc["_id"] in self.collections[collection]:
            raise Conflict(f"Duplicate key in {collection}: _id")
        self._check_unique(collection, doc)
        self.collections[collection][doc["_id"]] = doc
        return copy.deepcopy(doc)

    async def update(self, collection: str, id: ObjectId, patch: Document) -> Optional[Document]:
        self._record("update", collection)
        current = self.collections[collection].get(id)
        if current is None:
            return None
        updated = {**current, **copy.deepcopy(patch)}
        self._check_unique(collection, updated, ignore=id)
        self.collections[collection][id] = updated
        return copy.deepcopy(updated)

    async def delete(self, collection: str, id: ObjectId) -> bool:
        self._record("delete", collection)
        return self.collections[collection].pop(id, None) is not None

    async def delete_many(self, collection: str, predicate: Predicate) -> int:
        self._record("delete_many", collection)
        doomed = [d["_id"] for d in self._select(collection, predicate)]
        for doc_id in doomed:
            del self.collections[collection][doc_id]
        return len(doomed)

    async def increment(self, collection: str, id: ObjectId, field: str, delta: int = 1) -> bool:
        self._record("increment", collection)
        current = self.collections[collection].get(id)
        if current is None:
            return False
        current[field] = current.get(field, 0) + delta
        return True

    async def set_add(self, collection: str, id: ObjectId, field: str, value: Any) -> bool:
        self._record("set_add", collection)
        current = self.collections[collection].get(id)
        if current is None:
            return False
        values = current.setdefault(field, [])
        if value not in values:
            values.append(value)
        return True

    async def array_push(self, collection: str, id: ObjectId, field: str, value: Any) -> Optional[Document]:
        self._record("array_push", collection)
        current = self.collections[collection].get(id)
        if current is None:
            return None
        current.setdefault(field, []).append(value)
        return copy.deepcopy(current)

    async def array_pull(self, collection: str, id: ObjectId, field: str, value: Any) -> Optional[Document]:
        self._record("array_pull", collection)
        current = self.collections[collection].get(id)
        if current is None:
            return None
        current[field] = [v for v in current.get(field, []) if v != value]
        return copy.deepcopy(current)
