from typing import Any, Dict, Optional

from bson import ObjectId

from videotube import recipes
from videotube.errors import NotFound
from videotube.models import PLAYLISTS, VIDEOS, PlaylistInDB, ensure_object_id, to_document, utcnow
from videotube.pipeline.pagination import Page, PageRequest
from videotube.services.common import load, load_owned, require_text
from videotube.store.base import DocumentStore
from videotube.viewer import Viewer


async def create_playlist(
    store: DocumentStore,
    viewer: Viewer,
    name: Optional[str],
    description: Optional[str],
) -> Dict[str, Any]:
    owner_id = viewer.require_user()
    playlist = PlaylistInDB(
        owner=owner_id,
        name=require_text("name", name),
        description=require_text("description", description),
    )
    return await store.insert(PLAYLISTS, to_document(playlist))


async def update_playlist(
    store: DocumentStore,
    playlist_id: Any,
    viewer: Viewer,
    name: Optional[str],
    description: Optional[str],
) -> Dict[str, Any]:
    playlist_oid = ensure_object_id(playlist_id, "playlistId")
    patch = {
        "name": require_text("name", name),
        "description": require_text("description", description),
        "updated_at": utcnow(),
    }
    await load_owned(store, PLAYLISTS, playlist_oid, viewer, "Playlist")

    updated = await store.update(PLAYLISTS, playlist_oid, patch)
    if updated is None:
        raise NotFound("Playlist not found")
    return updated


async def delete_playlist(store: DocumentStore, playlist_id: Any, viewer: Viewer) -> ObjectId:
    playlist_oid = ensure_object_id(playlist_id, "playlistId")
    await load_owned(store, PLAYLISTS, playlist_oid, viewer, "Playlist")

    if not await store.delete(PLAYLISTS, playlist_oid):
        raise NotFound("Playlist not found")
    return playlist_oid


async def _change_membership(store, playlist_id, video_id, viewer, change) -> Dict[str, Any]:
    playlist_oid = ensure_object_id(playlist_id, "playlistId")
    video_oid = ensure_object_id(video_id, "videoId")
    await load_owned(store, PLAYLISTS, playlist_oid, viewer, "Playlist")
    await load(store, VIDEOS, video_oid, "Video")

    updated = await change(PLAYLISTS, playlist_oid, "videos", video_oid)
    if updated is None:
        raise NotFound("Playlist not found")
    return await store.update(PLAYLISTS, playlist_oid, {"updated_at": utcnow()}) or updated


async def add_video(store: DocumentStore, playlist_id: Any, video_id: Any, viewer: Viewer) -> Dict[str, Any]:
    """Append a video; the same video may appear more than once"""
    return await _change_membership(store, playlist_id, video_id, viewer, store.array_push)


async def remove_video(store: DocumentStore, playlist_id: Any, video_id: Any, viewer: Viewer) -> Dict[str, Any]:
    """Remove every occurrence of a video"""
    return await _change_membership(store, playlist_id, video_id, viewer, store.array_pull)


async def get_playlist(store: DocumentStore, playlist_id: Any, viewer: Viewer) -> Dict[str, Any]:
    playlist_oid = ensure_object_id(playlist_id, "playlistId")
    playlist = await recipes.playlist_detail(playlist_oid).first(store, viewer)
    if playlist is None:
        raise NotFound("Playlist not found")
    return playlist


async def list_user_playlists(
    store: DocumentStore,
    user_id: Any,
    viewer: Viewer,
    page: Any = None,
    page_size: Any = None,
) -> Page:
    owner_oid = ensure_object_id(user_id, "userId")
    request = PageRequest.from_params(page, page_size)
    return await recipes.user_playlists(owner_oid, request).page(store, viewer)
