from typing import Any, Dict, Optional

from bson import ObjectId
from loguru import logger

from videotube import recipes
from videotube.errors import InvalidArgument, NotFound
from videotube.models import (
    COMMENTS,
    LIKES,
    USERS,
    VIDEOS,
    LikeTarget,
    VideoInDB,
    ensure_object_id,
    to_document,
    utcnow,
)
from videotube.pipeline.pagination import Page, PageRequest
from videotube.pipeline.predicates import Eq, In
from videotube.services.common import load_owned, require_text
from videotube.store.base import DocumentStore
from videotube.utils.background import BackgroundWriter
from videotube.utils.storage import MediaStorage, MediaUpload
from videotube.viewer import Viewer


async def list_videos(
    store: DocumentStore,
    viewer: Viewer,
    page: Any = None,
    page_size: Any = None,
    query: Optional[str] = None,
    user_id: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_type: Optional[str] = None,
) -> Page:
    owner_id = ensure_object_id(user_id, "userId") if user_id else None
    request = PageRequest.from_params(page, page_size)
    pipeline = recipes.video_feed(request, query, owner_id, sort_by, sort_type)
    return await pipeline.page(store, viewer)


async def get_video(
    store: DocumentStore,
    writer: BackgroundWriter,
    video_id: Any,
    viewer: Viewer,
) -> Dict[str, Any]:
    """
    Video detail with like/subscription state for the viewer.
    Counts the view and records watch history in the background; the
    returned ``views`` is the value before this request's increment.
    """
    video_oid = ensure_object_id(video_id, "videoId")

    video = await recipes.video_detail(video_oid).first(store, viewer)
    if video is None:
        raise NotFound("Video not found")

    # Unpublished videos are only visible to their owner
    owner = video.get("owner") or {}
    if not video.get("is_published") and not viewer.is_user(owner.get("_id")):
        raise NotFound("Video not found")

    record_view(store, writer, video_oid, viewer)
    return video


def record_view(store: DocumentStore, writer: BackgroundWriter, video_id: ObjectId, viewer: Viewer):
    writer.submit(
        f"views:{video_id}",
        lambda: store.increment(VIDEOS, video_id, "views", 1)
    )
    if viewer.is_authenticated:
        user_id = viewer.user_id
        writer.submit(
            f"watch_history:{user_id}",
            lambda: store.set_add(USERS, user_id, "watch_history", video_id)
        )


async def publish_video(
    store: DocumentStore,
    storage: MediaStorage,
    writer: BackgroundWriter,
    viewer: Viewer,
    title: Optional[str],
    description: Optional[str],
    video_file: Optional[MediaUpload],
    thumbnail: Optional[MediaUpload],
) -> Dict[str, Any]:
    """
    Upload media and create the video, unpublished.
    Nothing is written to the store unless both uploads succeed.
    """
    owner_id = viewer.require_user()
    title = require_text("title", title)
    description = require_text("description", description)
    if video_file is None or thumbnail is None:
        raise InvalidArgument("video file and thumbnail are required")

    stored_video = await storage.upload(video_file.data, video_file.filename, video_file.content_type)
    try:
        stored_thumbnail = await storage.upload(thumbnail.data, thumbnail.filename, thumbnail.content_type)
    except Exception:
        writer.submit(f"media:{stored_video.public_id}", lambda: storage.delete(stored_video.public_id))
        raise

    video = VideoInDB(
        owner=owner_id,
        title=title,
        description=description,
        video_file=stored_video.as_ref(),
        thumbnail=stored_thumbnail.as_ref(),
        duration=stored_video.duration,
        is_published=False,
    )
    try:
        created = await store.insert(VIDEOS, to_document(video))
    except Exception:
        for stored in (stored_video, stored_thumbnail):
            writer.submit(f"media:{stored.public_id}", lambda public_id=stored.public_id: storage.delete(public_id))
        raise
    logger.info(f"Video {created['_id']} published by {owner_id}")
    return created


async def update_video(
    store: DocumentStore,
    storage: MediaStorage,
    writer: BackgroundWriter,
    video_id: Any,
    viewer: Viewer,
    title: Optional[str],
    description: Optional[str],
    thumbnail: Optional[MediaUpload] = None,
) -> Dict[str, Any]:
    video_oid = ensure_object_id(video_id, "videoId")
    title = require_text("title", title)
    description = require_text("description", description)

    video = await load_owned(store, VIDEOS, video_oid, viewer, "Video")

    patch = {"title": title, "description": description, "updated_at": utcnow()}
    new_thumbnail = None
    if thumbnail is not None:
        new_thumbnail = await storage.upload(thumbnail.data, thumbnail.filename, thumbnail.content_type)
        patch["thumbnail"] = new_thumbnail.as_ref()

    updated = await store.update(VIDEOS, video_oid, patch)
    if updated is None:
        # Deleted while we were uploading
        if new_thumbnail is not None:
            writer.submit(f"media:{new_thumbnail.public_id}", lambda: storage.delete(new_thumbnail.public_id))
        raise NotFound("Video not found")

    old_thumbnail = (video.get("thumbnail") or {}).get("public_id")
    if new_thumbnail is not None and old_thumbnail:
        writer.submit(f"media:{old_thumbnail}", lambda: storage.delete(old_thumbnail))
    return updated


async def delete_video(
    store: DocumentStore,
    storage: MediaStorage,
    writer: BackgroundWriter,
    video_id: Any,
    viewer: Viewer,
) -> ObjectId:
    """Delete a video with its comments and every like on the video or those comments"""
    video_oid = ensure_object_id(video_id, "videoId")
    video = await load_owned(store, VIDEOS, video_oid, viewer, "Video")

    if not await store.delete(VIDEOS, video_oid):
        raise NotFound("Video not found")

    # Loop until empty: comments added mid-cascade go too, with their likes
    removed_comments = 0
    while True:
        comments = await store.find(COMMENTS, Eq("video", video_oid))
        if not comments:
            break
        comment_ids = [c["_id"] for c in comments]
        await store.delete_many(
            LIKES,
            Eq("target_kind", LikeTarget.COMMENT.value) & In("target_id", comment_ids)
        )
        removed_comments += await store.delete_many(COMMENTS, In("_id", comment_ids))
    await store.delete_many(
        LIKES,
        Eq("target_kind", LikeTarget.VIDEO.value) & Eq("target_id", video_oid)
    )

    for media in ("video_file", "thumbnail"):
        public_id = (video.get(media) or {}).get("public_id")
        if public_id:
            writer.submit(f"media:{public_id}", lambda public_id=public_id: storage.delete(public_id))

    logger.info(f"Video {video_oid} deleted with {removed_comments} comments")
    return video_oid


async def toggle_publish_status(store: DocumentStore, video_id: Any, viewer: Viewer) -> Dict[str, bool]:
    video_oid = ensure_object_id(video_id, "videoId")
    video = await load_owned(store, VIDEOS, video_oid, viewer, "Video")

    updated = await store.update(VIDEOS, video_oid, {
        "is_published": not video.get("is_published", False),
        "updated_at": utcnow(),
    })
    if updated is None:
        raise NotFound("Video not found")
    return {"is_published": updated["is_published"]}
