from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from bson import ObjectId

from videotube.pipeline.predicates import And, In, Predicate

Document = Dict[str, Any]
SortSpec = Sequence[Tuple[str, int]]


class DocumentStore:
    """Contract every store adapter implements.

    Identifiers are always ObjectIds; callers validate raw input with
    ``ensure_object_id`` first. Adapters raise ``Conflict`` on duplicate keys
    and ``Unavailable`` when the backend fails transiently.
    """

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def find(
        self,
        collection: str,
        predicate: Optional[Predicate] = None,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Document]:
        raise NotImplementedError

    async def count(self, collection: str, predicate: Optional[Predicate] = None) -> int:
        raise NotImplementedError

    async def text_search(
        self,
        collection: str,
        index: str,
        fields: Sequence[str],
        query: str,
        predicate: Optional[Predicate] = None,
    ) -> List[Document]:
        """Documents matching query, best first, each carrying a ``score`` field"""
        raise NotImplementedError

    async def insert(self, collection: str, document: Document) -> Document:
        raise NotImplementedError

    async def update(self, collection: str, id: ObjectId, patch: Document) -> Optional[Document]:
        """Set fields on one document and return it, or None when it is gone"""
        raise NotImplementedError

    async def delete(self, collection: str, id: ObjectId) -> bool:
        raise NotImplementedError

    async def delete_many(self, collection: str, predicate: Predicate) -> int:
        raise NotImplementedError

    async def increment(self, collection: str, id: ObjectId, field: str, delta: int = 1) -> bool:
        raise NotImplementedError

    async def set_add(self, collection: str, id: ObjectId, field: str, value: Any) -> bool:
        raise NotImplementedError

    async def array_push(self, collection: str, id: ObjectId, field: str, value: Any) -> Optional[Document]:
        raise NotImplementedError

    async def array_pull(self, collection: str, id: ObjectId, field: str, value: Any) -> Optional[Document]:
        raise NotImplementedError

    async def find_one(self, collection: str, predicate: Predicate) -> Optional[Document]:
        found = await self.find(collection, predicate, limit=1)
        return found[0] if found else None

    async def join(
        self,
        collection: str,
        foreign_key: str,
        values: Iterable[Any],
        predicate: Optional[Predicate] = None,
    ) -> List[Document]:
        """Every document of collection whose foreign_key is one of values, in one query"""
        values = list(values)
        if not values:
            return []
        return await self.find(collection, And(In(foreign_key, values), predicate))
