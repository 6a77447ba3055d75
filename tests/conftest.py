"""
Shared pytest fixtures for videotube tests.

Provides an in-memory store with a seeding helper, a running background
writer and a fake media storage.
"""
import itertools
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest
from bson import ObjectId

from videotube.errors import Unavailable
from videotube.models import (
    COMMENTS,
    LIKES,
    PLAYLISTS,
    SUBSCRIPTIONS,
    USERS,
    VIDEOS,
    CommentInDB,
    LikeInDB,
    LikeTarget,
    MediaRef,
    PlaylistInDB,
    SubscriptionInDB,
    UserInDB,
    VideoInDB,
    to_document,
)
from videotube.store.memory import MemoryStore
from videotube.utils.background import BackgroundWriter
from videotube.utils.storage import MediaStorage, StoredMedia

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeMediaStorage(MediaStorage):
    """Records uploads and deletes; uploads of filenames in fail_on raise Unavailable"""

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.uploaded: List[str] = []
        self.deleted: List[str] = []

    async def upload(self, data, filename, content_type):
        if filename in self.fail_on:
            raise Unavailable("Failed to upload media")
        public_id = f"{len(self.uploaded)}_{filename}"
        self.uploaded.append(public_id)
        duration = 12.5 if content_type.startswith("video/") else None
        return StoredMedia(url=f"https://media.test/{public_id}", public_id=public_id, duration=duration)

    async def delete(self, public_id):
        self.deleted.append(public_id)
        return True


class Seeder:
    """Writes fixture documents straight into a MemoryStore.

    Every document gets a created_at one minute after the previous one, so
    newest-first orderings are deterministic.
    """

    def __init__(self, store: MemoryStore):
        self.store = store
        self._clock = itertools.count(1)

    def _tick(self) -> datetime:
        return BASE_TIME + timedelta(minutes=next(self._clock))

    def _put(self, collection, model) -> ObjectId:
        doc = to_document(model)
        doc["_id"] = ObjectId()
        self.store.collections[collection][doc["_id"]] = doc
        return doc["_id"]

    def user(self, username: str) -> ObjectId:
        return self._put(USERS, UserInDB(
            username=username,
            full_name=username.capitalize(),
            avatar=MediaRef(url=f"https://media.test/{username}.png", public_id=f"{username}.png"),
            created_at=self._tick(),
        ))

    def video(
        self,
        owner: ObjectId,
        title: str = "A video",
        description: str = "Some description",
        published: bool = True,
        views: int = 0,
        duration: Optional[float] = 60.0,
    ) -> ObjectId:
        created = self._tick()
        slug = title.lower().replace(" ", "-")
        return self._put(VIDEOS, VideoInDB(
            owner=owner,
            title=title,
            description=description,
            video_file=MediaRef(url=f"https://media.test/{slug}.mp4", public_id=f"{slug}.mp4"),
            thumbnail=MediaRef(url=f"https://media.test/{slug}.jpg", public_id=f"{slug}.jpg"),
            duration=duration,
            views=views,
            is_published=published,
            created_at=created,
            updated_at=created,
        ))

    def comment(self, owner: ObjectId, video: ObjectId, content: str = "Nice one") -> ObjectId:
        created = self._tick()
        return self._put(COMMENTS, CommentInDB(
            owner=owner, video=video, content=content, created_at=created, updated_at=created,
        ))

    def like(self, user: ObjectId, target: ObjectId, kind: LikeTarget = LikeTarget.VIDEO) -> ObjectId:
        return self._put(LIKES, LikeInDB(
            liked_by=user, target_kind=kind, target_id=target, created_at=self._tick(),
        ))

    def subscribe(self, subscriber: ObjectId, channel: ObjectId) -> ObjectId:
        return self._put(SUBSCRIPTIONS, SubscriptionInDB(
            subscriber=subscriber, channel=channel, created_at=self._tick(),
        ))

    def playlist(self, owner: ObjectId, name: str = "Favourites", videos=()) -> ObjectId:
        created = self._tick()
        return self._put(PLAYLISTS, PlaylistInDB(
            owner=owner,
            name=name,
            description=f"{name} playlist",
            videos=list(videos),
            created_at=created,
            updated_at=created,
        ))


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def seed(store):
    return Seeder(store)


@pytest.fixture
def writer():
    background = BackgroundWriter(max_concurrency=4)
    background.start()
    return background


@pytest.fixture
def media():
    return FakeMediaStorage()
