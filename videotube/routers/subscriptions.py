from fastapi import APIRouter, Depends, Query, Request, Response
from typing import Optional
from videotube.auth import get_current_viewer, get_viewer
from videotube.database import get_store
from videotube.schemas import APIResponse
from videotube.services import subscriptions
from videotube.utils.rate_limit import limiter, RATE_LIMIT_INTERACTION, RATE_LIMIT_READ
from videotube.utils.serialization import page_data
from videotube.viewer import Viewer

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.post("/c/{channel_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_INTERACTION)
async def toggle_subscription(
    request: Request,
    response: Response,
    channel_id: str,
    viewer: Viewer = Depends(get_current_viewer)
):
    """
    Subscribe to a channel (toggle - subscribe/unsubscribe)
    """
    result = await subscriptions.toggle_subscription(get_store(), channel_id, viewer)
    return APIResponse(
        status="success",
        message="Subscribed successfully" if result["subscribed"] else "Unsubscribed successfully",
        data=result
    )


@router.get("/c/{channel_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_READ)
async def get_channel_subscribers(
    request: Request,
    response: Response,
    channel_id: str,
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    viewer: Viewer = Depends(get_viewer)
):
    """
    Subscribers of a channel, with whether the channel subscribes back
    """
    result = await subscriptions.list_subscribers(get_store(), channel_id, viewer, page, limit)
    return APIResponse(
        status="success",
        message="Subscribers fetched successfully",
        data=page_data(result, "subscribers")
    )


@router.get("/u/{subscriber_id}", response_model=APIResponse)
@limiter.limit(RATE_LIMIT_READ)
async def get_subscribed_channels(
    request: Request,
    response: Response,
    subscriber_id: str,
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    viewer: Viewer = Depends(get_viewer)
):
    """
    Channels a user subscribes to, each with its latest published video
    """
    result = await subscriptions.list_subscribed_channels(get_store(), subscriber_id, viewer, page, limit)
    return APIResponse(
        status="success",
        message="Subscribed channels fetched successfully",
        data=page_data(result, "channels")
    )
