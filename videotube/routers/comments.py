from fastapi import APIRouter, Depends, Query, Request, Response, status
from typing import Optional
from videotube.auth import get_current_viewer, get_viewer
from videotube.database import get_store
from videotube.schemas import APIResponse, CommentCreate
from videotube.services import comments
from videotube.utils.rate_limit import limiter, RATE_LIMIT_COMMENT_CREATE, RATE_LIMIT_READ, RATE_LIMIT_WRITE
from videotube.utils.serialization import page_data, to_jsonable
from videotube.viewer import Viewer

router = APIRouter(prefix="/comments", tags=["comments"])


@router.get("/{video_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_READ)
async def get_video_comments(
    request: Request,
    response: Response,
    video_id: str,
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    viewer: Viewer = Depends(get_viewer)
):
    """
    Comments on a video, newest first, with like state for the caller
    """
    result = await comments.list_comments(get_store(), video_id, viewer, page, limit)
    return APIResponse(
        status="success",
        message="Comments fetched successfully",
        data=page_data(result, "comments")
    )


@router.post("/{video_id}", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMIT_COMMENT_CREATE)
async def add_comment(
    request: Request,
    response: Response,
    video_id: str,
    comment_data: CommentCreate,
    viewer: Viewer = Depends(get_current_viewer)
):
    comment = await comments.add_comment(get_store(), video_id, viewer, comment_data.content)
    return APIResponse(
        status="success",
        message="Comment added successfully",
        data={"comment": to_jsonable(comment)}
    )


@router.patch("/c/{comment_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_WRITE)
async def update_comment(
    request: Request,
    response: Response,
    comment_id: str,
    comment_data: CommentCreate,
    viewer: Viewer = Depends(get_current_viewer)
):
    comment = await comments.update_comment(get_store(), comment_id, viewer, comment_data.content)
    return APIResponse(
        status="success",
        message="Comment edited successfully",
        data={"comment": to_jsonable(comment)}
    )


@router.delete("/c/{comment_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_WRITE)
async def delete_comment(
    request: Request,
    response: Response,
    comment_id: str,
    viewer: Viewer = Depends(get_current_viewer)
):
    deleted = await comments.delete_comment(get_store(), comment_id, viewer)
    return APIResponse(
        status="success",
        message="Comment deleted successfully",
        data={"comment_id": str(deleted)}
    )
