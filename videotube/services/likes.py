from typing import Any, Dict

from loguru import logger

from videotube.errors import Conflict
from videotube.models import COMMENTS, LIKES, VIDEOS, LikeInDB, LikeTarget, ensure_object_id, to_document
from videotube.pipeline.predicates import Eq
from videotube.services.common import load
from videotube.store.base import DocumentStore
from videotube.viewer import Viewer

TARGET_COLLECTIONS = {
    LikeTarget.VIDEO: (VIDEOS, "Video"),
    LikeTarget.COMMENT: (COMMENTS, "Comment"),
}


async def toggle_like(store: DocumentStore, kind: LikeTarget, target_id: Any, viewer: Viewer) -> Dict[str, Any]:
    """
    Like or unlike a video or comment (toggle).
    A duplicate like from a concurrent request counts as liked.
    """
    user_id = viewer.require_user()
    collection, label = TARGET_COLLECTIONS[kind]
    target_oid = ensure_object_id(target_id, f"{kind.value}Id")
    await load(store, collection, target_oid, label)

    target = Eq("target_kind", kind.value) & Eq("target_id", target_oid)
    existing = await store.find_one(LIKES, target & Eq("liked_by", user_id))

    if existing:
        await store.delete(LIKES, existing["_id"])
        liked = False
    else:
        like = LikeInDB(liked_by=user_id, target_kind=kind, target_id=target_oid)
        try:
            await store.insert(LIKES, to_document(like))
        except Conflict:
            logger.debug(f"Duplicate like on {kind.value} {target_oid} by {user_id}")
        liked = True

    return {
        "liked": liked,
        "likes_count": await store.count(LIKES, target),
    }
