from fastapi import APIRouter, Depends, Request, Response
from videotube.auth import get_current_viewer
from videotube.database import get_store
from videotube.models import LikeTarget
from videotube.schemas import APIResponse
from videotube.services import likes
from videotube.utils.rate_limit import limiter, RATE_LIMIT_INTERACTION
from videotube.viewer import Viewer

router = APIRouter(prefix="/likes", tags=["likes"])


@router.post("/toggle/v/{video_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_INTERACTION)
async def toggle_video_like(
    request: Request,
    response: Response,
    video_id: str,
    viewer: Viewer = Depends(get_current_viewer)
):
    """
    Like a video (toggle - like/unlike)
    """
    result = await likes.toggle_like(get_store(), LikeTarget.VIDEO, video_id, viewer)
    return APIResponse(
        status="success",
        message="Video liked" if result["liked"] else "Video unliked",
        data=result
    )


@router.post("/toggle/c/{comment_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_INTERACTION)
async def toggle_comment_like(
    request: Request,
    response: Response,
    comment_id: str,
    viewer: Viewer = Depends(get_current_viewer)
):
    """
    Like a comment (toggle - like/unlike)
    """
    result = await likes.toggle_like(get_store(), LikeTarget.COMMENT, comment_id, viewer)
    return APIResponse(
        status="success",
        message="Comment liked" if result["liked"] else "Comment unliked",
        data=result
    )
