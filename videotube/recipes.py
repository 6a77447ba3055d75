"""Declarative read pipelines.

Each function returns a ``Pipeline`` for one read use case. The services
decide what to do with the result (not-found handling, side effects); the
recipes only describe the joins, derived fields and output shape.
"""
from typing import Optional

from bson import ObjectId

from videotube.config import settings
from videotube.models import COMMENTS, LIKES, PLAYLISTS, SUBSCRIPTIONS, USERS, VIDEOS, LikeTarget
from videotube.pipeline.engine import Pipeline
from videotube.pipeline.pagination import DESC, PageRequest, SortKeys, ordering, parse_direction
from videotube.pipeline.predicates import Eq
from videotube.pipeline.stages import (
    DeriveField,
    Join,
    Match,
    Paginate,
    Project,
    Sort,
    TextSearch,
    first_of,
    latest_of,
    size_of,
    sum_of,
    value_in,
    viewer_in,
)

USER_SUMMARY = ("_id", "username", "full_name", "avatar.url")

VIDEO_CARD = (
    "_id",
    "title",
    "description",
    "video_file.url",
    "thumbnail.url",
    "duration",
    "views",
    "created_at",
)

FEED_SORT_FIELDS = ("views", "created_at", "duration")
NEWEST_FIRST: SortKeys = (("created_at", DESC), ("_id", DESC))


def _likes_of(kind: LikeTarget) -> Join:
    return Join(LIKES, "_id", "target_id", "likes", where=Eq("target_kind", kind.value))


def _owner_summary(local_key: str = "owner", as_: str = "owner") -> Join:
    return Join(USERS, local_key, "_id", as_, pipeline=[Project(*USER_SUMMARY)])


def video_detail(video_id: ObjectId) -> Pipeline:
    return Pipeline(VIDEOS, [
        Match(Eq("_id", video_id)),
        _likes_of(LikeTarget.VIDEO),
        Join(USERS, "owner", "_id", "owner", pipeline=[
            Join(SUBSCRIPTIONS, "_id", "channel", "subscribers"),
            DeriveField("subscribers_count", size_of("subscribers")),
            DeriveField("is_subscribed", viewer_in("subscribers", "subscriber")),
            Project(*USER_SUMMARY, "subscribers_count", "is_subscribed"),
        ]),
        DeriveField("likes_count", size_of("likes")),
        DeriveField("is_liked", viewer_in("likes", "liked_by")),
        DeriveField("owner", first_of("owner")),
        Project(*VIDEO_CARD, "is_published", "owner", "likes_count", "is_liked"),
    ])


def video_feed(
    page: PageRequest,
    query: Optional[str] = None,
    owner_id: Optional[ObjectId] = None,
    sort_by: Optional[str] = None,
    sort_type: Optional[str] = None,
) -> Pipeline:
    """Published videos, optionally searched and filtered by owner.

    With a search query and no explicit sort, results keep relevance order;
    sort_type still picks the direction (best match first by default).
    Unpublished videos never appear, not even for their owner.
    """
    search = TextSearch(settings.VIDEO_SEARCH_INDEX, ("title", "description"), query)
    stages = []
    if search.active:
        stages.append(search)
    stages.append(Match(Eq("is_published", True)))
    if owner_id is not None:
        stages.append(Match(Eq("owner", owner_id)))

    if search.active and not sort_by:
        direction = parse_direction(sort_type, DESC)
        keys: SortKeys = (("score", direction), ("created_at", direction), ("_id", direction))
    else:
        keys = ordering(sort_by, sort_type, allowed=FEED_SORT_FIELDS)

    stages += [
        Sort(*keys),
        Paginate(page),
        _owner_summary(),
        _likes_of(LikeTarget.VIDEO),
        DeriveField("owner", first_of("owner")),
        DeriveField("likes_count", size_of("likes")),
        DeriveField("is_liked", viewer_in("likes", "liked_by")),
        Project(*VIDEO_CARD, "owner", "likes_count", "is_liked", "score"),
    ]
    return Pipeline(VIDEOS, stages)


def video_comments(video_id: ObjectId, page: PageRequest) -> Pipeline:
    return Pipeline(COMMENTS, [
        Match(Eq("video", video_id)),
        Sort(*NEWEST_FIRST),
        Paginate(page),
        _owner_summary(),
        _likes_of(LikeTarget.COMMENT),
        DeriveField("likes_count", size_of("likes")),
        DeriveField("is_liked", viewer_in("likes", "liked_by")),
        DeriveField("owner", first_of("owner")),
        Project("_id", "content", "video", "created_at", "updated_at", "owner", "likes_count", "is_liked"),
    ])


def _published_members() -> Join:
    # Unpublished members are dropped for every viewer, owner included
    return Join(VIDEOS, "videos", "_id", "videos", where=Eq("is_published", True), pipeline=[
        _owner_summary(),
        DeriveField("owner", first_of("owner")),
    ])


def playlist_detail(playlist_id: ObjectId) -> Pipeline:
    return Pipeline(PLAYLISTS, [
        Match(Eq("_id", playlist_id)),
        DeriveField("video_refs", size_of("videos")),
        _published_members(),
        _owner_summary(),
        DeriveField("total_videos", size_of("videos")),
        DeriveField("total_views", sum_of("videos", "views")),
        DeriveField("owner", first_of("owner")),
        Project(
            "_id", "name", "description", "created_at", "updated_at",
            "total_videos", "total_views", "video_refs", "owner",
            *("videos." + path for path in VIDEO_CARD), "videos.owner",
        ),
    ])


def user_playlists(owner_id: ObjectId, page: PageRequest) -> Pipeline:
    return Pipeline(PLAYLISTS, [
        Match(Eq("owner", owner_id)),
        Sort(("updated_at", DESC), ("_id", DESC)),
        Paginate(page),
        DeriveField("video_refs", size_of("videos")),
        Join(VIDEOS, "videos", "_id", "videos", where=Eq("is_published", True)),
        DeriveField("total_videos", size_of("videos")),
        DeriveField("total_views", sum_of("videos", "views")),
        Project("_id", "name", "description", "created_at", "updated_at", "total_videos", "total_views", "video_refs"),
    ])


def channel_subscribers(channel_id: ObjectId, page: PageRequest) -> Pipeline:
    """Subscribers of a channel with the mutual-subscription flag.

    Two hops: subscription -> subscriber user -> that user's own
    subscribers. Paging happens first, so each hop is one query per page.
    """
    return Pipeline(SUBSCRIPTIONS, [
        Match(Eq("channel", channel_id)),
        Sort(*NEWEST_FIRST),
        Paginate(page),
        Join(USERS, "subscriber", "_id", "subscriber", pipeline=[
            Join(SUBSCRIPTIONS, "_id", "channel", "subscribers"),
            DeriveField("subscribed_to_subscriber", value_in(channel_id, "subscribers", "subscriber")),
            DeriveField("subscribers_count", size_of("subscribers")),
            DeriveField("is_subscribed", viewer_in("subscribers", "subscriber")),
            Project(*USER_SUMMARY, "subscribed_to_subscriber", "subscribers_count", "is_subscribed"),
        ]),
        DeriveField("subscriber", first_of("subscriber")),
        Project("subscriber", subscribed_at="created_at"),
    ])


def subscribed_channels(subscriber_id: ObjectId, page: PageRequest) -> Pipeline:
    return Pipeline(SUBSCRIPTIONS, [
        Match(Eq("subscriber", subscriber_id)),
        Sort(*NEWEST_FIRST),
        Paginate(page),
        Join(USERS, "channel", "_id", "channel", pipeline=[
            Join(VIDEOS, "_id", "owner", "videos", where=Eq("is_published", True)),
            Join(SUBSCRIPTIONS, "_id", "channel", "subscribers"),
            DeriveField("latest_video", latest_of("videos")),
            DeriveField("subscribers_count", size_of("subscribers")),
            DeriveField("is_subscribed", viewer_in("subscribers", "subscriber")),
            Project(
                *USER_SUMMARY, "subscribers_count", "is_subscribed",
                *("latest_video." + path for path in VIDEO_CARD),
            ),
        ]),
        DeriveField("channel", first_of("channel")),
        Project("channel", subscribed_at="created_at"),
    ])
