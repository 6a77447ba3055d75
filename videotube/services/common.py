from typing import Any, Dict

from bson import ObjectId

from videotube.errors import InvalidArgument, NotFound, PermissionDenied
from videotube.pipeline.predicates import Eq
from videotube.store.base import DocumentStore
from videotube.viewer import Viewer


def require_text(label: str, value: Any) -> str:
    if value is None or not str(value).strip():
        raise InvalidArgument(f"{label} is required")
    return str(value).strip()


async def load(store: DocumentStore, collection: str, id: ObjectId, label: str) -> Dict[str, Any]:
    doc = await store.find_one(collection, Eq("_id", id))
    if doc is None:
        raise NotFound(f"{label} not found")
    return doc


async def load_owned(
    store: DocumentStore,
    collection: str,
    id: ObjectId,
    viewer: Viewer,
    label: str,
) -> Dict[str, Any]:
    """Fetch a document the caller must own before mutating it"""
    user_id = viewer.require_user()
    doc = await load(store, collection, id, label)
    if doc.get("owner") != user_id:
        raise PermissionDenied(f"Only the owner can modify this {label.lower()}")
    return doc
