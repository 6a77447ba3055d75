from typing import Any, Dict, Optional

from bson import ObjectId
from loguru import logger

from videotube import recipes
from videotube.errors import NotFound
from videotube.models import COMMENTS, LIKES, VIDEOS, CommentInDB, LikeTarget, ensure_object_id, to_document, utcnow
from videotube.pipeline.pagination import Page, PageRequest
from videotube.pipeline.predicates import Eq
from videotube.services.common import load, load_owned, require_text
from videotube.store.base import DocumentStore
from videotube.viewer import Viewer


async def list_comments(
    store: DocumentStore,
    video_id: Any,
    viewer: Viewer,
    page: Any = None,
    page_size: Any = None,
) -> Page:
    video_oid = ensure_object_id(video_id, "videoId")
    await load(store, VIDEOS, video_oid, "Video")

    request = PageRequest.from_params(page, page_size)
    return await recipes.video_comments(video_oid, request).page(store, viewer)


async def add_comment(store: DocumentStore, video_id: Any, viewer: Viewer, content: Optional[str]) -> Dict[str, Any]:
    owner_id = viewer.require_user()
    video_oid = ensure_object_id(video_id, "videoId")
    content = require_text("content", content)
    await load(store, VIDEOS, video_oid, "Video")

    comment = CommentInDB(owner=owner_id, video=video_oid, content=content)
    return await store.insert(COMMENTS, to_document(comment))


async def update_comment(store: DocumentStore, comment_id: Any, viewer: Viewer, content: Optional[str]) -> Dict[str, Any]:
    comment_oid = ensure_object_id(comment_id, "commentId")
    content = require_text("content", content)
    await load_owned(store, COMMENTS, comment_oid, viewer, "Comment")

    updated = await store.update(COMMENTS, comment_oid, {"content": content, "updated_at": utcnow()})
    if updated is None:
        raise NotFound("Comment not found")
    return updated


async def delete_comment(store: DocumentStore, comment_id: Any, viewer: Viewer) -> ObjectId:
    """Delete a comment and every like on it"""
    comment_oid = ensure_object_id(comment_id, "commentId")
    await load_owned(store, COMMENTS, comment_oid, viewer, "Comment")

    if not await store.delete(COMMENTS, comment_oid):
        raise NotFound("Comment not found")
    removed = await store.delete_many(
        LIKES,
        Eq("target_kind", LikeTarget.COMMENT.value) & Eq("target_id", comment_oid)
    )
    logger.debug(f"Comment {comment_oid} deleted with {removed} likes")
    return comment_oid
