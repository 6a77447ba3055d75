from fastapi import APIRouter, Depends, Query, Request, Response, status
from typing import Optional
from videotube.auth import get_current_viewer, get_viewer
from videotube.database import get_store
from videotube.schemas import APIResponse, PlaylistCreate
from videotube.services import playlists
from videotube.utils.rate_limit import limiter, RATE_LIMIT_READ, RATE_LIMIT_WRITE
from videotube.utils.serialization import page_data, to_jsonable
from videotube.viewer import Viewer

router = APIRouter(prefix="/playlists", tags=["playlists"])


@router.post("", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMIT_WRITE)
async def create_playlist(
    request: Request,
    response: Response,
    playlist_data: PlaylistCreate,
    viewer: Viewer = Depends(get_current_viewer)
):
    playlist = await playlists.create_playlist(get_store(), viewer, playlist_data.name, playlist_data.description)
    return APIResponse(
        status="success",
        message="Playlist created successfully",
        data={"playlist": to_jsonable(playlist)}
    )


@router.get("/user/{user_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_READ)
async def get_user_playlists(
    request: Request,
    response: Response,
    user_id: str,
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    viewer: Viewer = Depends(get_viewer)
):
    result = await playlists.list_user_playlists(get_store(), user_id, viewer, page, limit)
    return APIResponse(
        status="success",
        message="User playlists fetched successfully",
        data=page_data(result, "playlists")
    )


@router.get("/{playlist_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_READ)
async def get_playlist(
    request: Request,
    response: Response,
    playlist_id: str,
    viewer: Viewer = Depends(get_viewer)
):
    """
    Playlist with its published videos and totals
    """
    playlist = await playlists.get_playlist(get_store(), playlist_id, viewer)
    return APIResponse(
        status="success",
        message="Playlist fetched successfully",
        data={"playlist": to_jsonable(playlist)}
    )


@router.patch("/{playlist_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_WRITE)
async def update_playlist(
    request: Request,
    response: Response,
    playlist_id: str,
    playlist_data: PlaylistCreate,
    viewer: Viewer = Depends(get_current_viewer)
):
    playlist = await playlists.update_playlist(
        get_store(), playlist_id, viewer, playlist_data.name, playlist_data.description
    )
    return APIResponse(
        status="success",
        message="Playlist updated successfully",
        data={"playlist": to_jsonable(playlist)}
    )


@router.delete("/{playlist_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_WRITE)
async def delete_playlist(
    request: Request,
    response: Response,
    playlist_id: str,
    viewer: Viewer = Depends(get_current_viewer)
):
    await playlists.delete_playlist(get_store(), playlist_id, viewer)
    return APIResponse(
        status="success",
        message="Playlist deleted successfully",
        data=None
    )


@router.patch("/add/{video_id}/{playlist_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_WRITE)
async def add_video_to_playlist(
    request: Request,
    response: Response,
    video_id: str,
    playlist_id: str,
    viewer: Viewer = Depends(get_current_viewer)
):
    playlist = await playlists.add_video(get_store(), playlist_id, video_id, viewer)
    return APIResponse(
        status="success",
        message="Video added to playlist",
        data={"playlist": to_jsonable(playlist)}
    )


@router.patch("/remove/{video_id}/{playlist_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_WRITE)
async def remove_video_from_playlist(
    request: Request,
    response: Response,
    video_id: str,
    playlist_id: str,
    viewer: Viewer = Depends(get_current_viewer)
):
    playlist = await playlists.remove_video(get_store(), playlist_id, video_id, viewer)
    return APIResponse(
        status="success",
        message="Video removed from playlist",
        data={"playlist": to_jsonable(playlist)}
    )
