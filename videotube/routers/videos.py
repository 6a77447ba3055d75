from fastapi import APIRouter, Depends, File, Form, Query, Request, Response, UploadFile, status
from typing import Optional
from videotube.auth import get_current_viewer, get_viewer
from videotube.database import get_media_storage, get_store, get_writer
from videotube.errors import InvalidArgument
from videotube.config import settings
from videotube.schemas import APIResponse
from videotube.services import videos
from videotube.utils.rate_limit import limiter, RATE_LIMIT_READ, RATE_LIMIT_VIDEO_UPLOAD, RATE_LIMIT_WRITE
from videotube.utils.serialization import page_data, to_jsonable
from videotube.utils.storage import MediaUpload
from videotube.viewer import Viewer

router = APIRouter(prefix="/videos", tags=["videos"])


async def _read_upload(upload: Optional[UploadFile], allowed_types, label: str) -> Optional[MediaUpload]:
    if upload is None:
        return None
    if upload.content_type not in allowed_types:
        raise InvalidArgument(f"Invalid {label} format")
    data = await upload.read()
    if len(data) > settings.max_video_size_bytes:
        raise InvalidArgument(f"{label.capitalize()} size exceeds maximum limit of {settings.MAX_VIDEO_SIZE_MB}MB")
    return MediaUpload(data=data, filename=upload.filename or label, content_type=upload.content_type)


@router.get("", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_READ)
async def get_all_videos(
    request: Request,
    response: Response,
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    query: Optional[str] = Query(None, description="Search in titles and descriptions"),
    sort_by: Optional[str] = Query(None, description="views, created_at or duration"),
    sort_type: Optional[str] = Query(None, description="asc or desc"),
    user_id: Optional[str] = Query(None),
    viewer: Viewer = Depends(get_viewer)
):
    """
    Published videos with search, owner filter, sorting and pagination
    """
    result = await videos.list_videos(get_store(), viewer, page, limit, query, user_id, sort_by, sort_type)
    return APIResponse(
        status="success",
        message="Videos fetched successfully",
        data=page_data(result, "videos")
    )


@router.post("", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMIT_VIDEO_UPLOAD)
async def publish_video(
    request: Request,
    response: Response,
    title: str = Form(...),
    description: str = Form(...),
    videofile: UploadFile = File(...),
    thumbnail: UploadFile = File(...),
    viewer: Viewer = Depends(get_current_viewer)
):
    """
    Upload a new video. It starts unpublished.
    """
    video_upload = await _read_upload(videofile, settings.allowed_video_types_list, "video")
    thumbnail_upload = await _read_upload(thumbnail, settings.allowed_image_types_list, "thumbnail")
    video = await videos.publish_video(
        get_store(), get_media_storage(), get_writer(), viewer,
        title, description, video_upload, thumbnail_upload
    )
    return APIResponse(
        status="success",
        message="Video uploaded successfully",
        data={"video": to_jsonable(video)}
    )


@router.get("/{video_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_READ)
async def get_video(
    request: Request,
    response: Response,
    video_id: str,
    viewer: Viewer = Depends(get_viewer)
):
    """
    Video details with like and subscription state for the caller.
    Counts a view.
    """
    video = await videos.get_video(get_store(), get_writer(), video_id, viewer)
    return APIResponse(
        status="success",
        message="Video details fetched successfully",
        data={"video": to_jsonable(video)}
    )


@router.patch("/{video_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_WRITE)
async def update_video(
    request: Request,
    response: Response,
    video_id: str,
    title: str = Form(...),
    description: str = Form(...),
    thumbnail: Optional[UploadFile] = File(None),
    viewer: Viewer = Depends(get_current_viewer)
):
    """
    Update title, description and optionally the thumbnail (owner only)
    """
    thumbnail_upload = await _read_upload(thumbnail, settings.allowed_image_types_list, "thumbnail")
    video = await videos.update_video(
        get_store(), get_media_storage(), get_writer(), video_id, viewer,
        title, description, thumbnail_upload
    )
    return APIResponse(
        status="success",
        message="Video updated successfully",
        data={"video": to_jsonable(video)}
    )


@router.delete("/{video_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_WRITE)
async def delete_video(
    request: Request,
    response: Response,
    video_id: str,
    viewer: Viewer = Depends(get_current_viewer)
):
    """
    Delete a video with its comments and likes (owner only)
    """
    await videos.delete_video(get_store(), get_media_storage(), get_writer(), video_id, viewer)
    return APIResponse(
        status="success",
        message="Video deleted successfully",
        data=None
    )


@router.patch("/toggle/publish/{video_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_WRITE)
async def toggle_publish_status(
    request: Request,
    response: Response,
    video_id: str,
    viewer: Viewer = Depends(get_current_viewer)
):
    result = await videos.toggle_publish_status(get_store(), video_id, viewer)
    return APIResponse(
        status="success",
        message="Video publish status toggled",
        data=result
    )
