from typing import Any, Dict

from loguru import logger

from videotube import recipes
from videotube.errors import Conflict
from videotube.models import SUBSCRIPTIONS, USERS, SubscriptionInDB, ensure_object_id, to_document
from videotube.pipeline.pagination import Page, PageRequest
from videotube.pipeline.predicates import Eq
from videotube.services.common import load
from videotube.store.base import DocumentStore
from videotube.viewer import Viewer


async def toggle_subscription(store: DocumentStore, channel_id: Any, viewer: Viewer) -> Dict[str, bool]:
    """
    Subscribe to or unsubscribe from a channel (toggle).
    Self-subscription is allowed. A duplicate create from a concurrent
    request counts as subscribed.
    """
    subscriber_id = viewer.require_user()
    channel_oid = ensure_object_id(channel_id, "channelId")
    await load(store, USERS, channel_oid, "Channel")

    existing = await store.find_one(
        SUBSCRIPTIONS,
        Eq("subscriber", subscriber_id) & Eq("channel", channel_oid)
    )
    if existing:
        # A concurrent unsubscribe may already have removed it; either way it's gone
        await store.delete(SUBSCRIPTIONS, existing["_id"])
        return {"subscribed": False}

    subscription = SubscriptionInDB(subscriber=subscriber_id, channel=channel_oid)
    try:
        await store.insert(SUBSCRIPTIONS, to_document(subscription))
    except Conflict:
        logger.debug(f"Duplicate subscription {subscriber_id} -> {channel_oid}")
    return {"subscribed": True}


async def list_subscribers(
    store: DocumentStore,
    channel_id: Any,
    viewer: Viewer,
    page: Any = None,
    page_size: Any = None,
) -> Page:
    channel_oid = ensure_object_id(channel_id, "channelId")
    request = PageRequest.from_params(page, page_size)
    return await recipes.channel_subscribers(channel_oid, request).page(store, viewer)


async def list_subscribed_channels(
    store: DocumentStore,
    subscriber_id: Any,
    viewer: Viewer,
    page: Any = None,
    page_size: Any = None,
) -> Page:
    subscriber_oid = ensure_object_id(subscriber_id, "subscriberId")
    request = PageRequest.from_params(page, page_size)
    return await recipes.subscribed_channels(subscriber_oid, request).page(store, viewer)
