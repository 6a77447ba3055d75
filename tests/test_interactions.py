"""Tests for likes, comments and subscriptions."""
import pytest
from bson import ObjectId

from videotube.errors import InvalidArgument, NotFound, PermissionDenied
from videotube.models import COMMENTS, LIKES, SUBSCRIPTIONS, LikeTarget
from videotube.services import comments, likes, subscriptions
from videotube.store.memory import MemoryStore
from videotube.viewer import Viewer

from tests.conftest import Seeder


class RacingStore(MemoryStore):
    """MemoryStore whose existence checks miss a row another request just wrote"""

    async def find_one(self, collection, predicate):
        if collection in (LIKES, SUBSCRIPTIONS):
            return None
        return await super().find_one(collection, predicate)


class TestLikes:

    @pytest.mark.asyncio
    async def test_toggle_video_like(self, store, seed):
        fan = Viewer.authenticated(seed.user("fan"))
        video = seed.video(seed.user("owner"))

        assert await likes.toggle_like(store, LikeTarget.VIDEO, str(video), fan) == {"liked": True, "likes_count": 1}
        assert await likes.toggle_like(store, LikeTarget.VIDEO, str(video), fan) == {"liked": False, "likes_count": 0}
        assert await likes.toggle_like(store, LikeTarget.VIDEO, str(video), fan) == {"liked": True, "likes_count": 1}

    @pytest.mark.asyncio
    async def test_toggle_comment_like(self, store, seed):
        owner = seed.user("owner")
        comment = seed.comment(owner, seed.video(owner))

        result = await likes.toggle_like(store, LikeTarget.COMMENT, comment, Viewer.authenticated(owner))

        assert result == {"liked": True, "likes_count": 1}
        assert list(store.collections[LIKES].values())[0]["target_kind"] == "comment"

    @pytest.mark.asyncio
    async def test_errors(self, store, seed):
        video = seed.video(seed.user("owner"))
        with pytest.raises(PermissionDenied):
            await likes.toggle_like(store, LikeTarget.VIDEO, video, Viewer.anonymous())

        fan = Viewer.authenticated(seed.user("fan"))
        with pytest.raises(InvalidArgument):
            await likes.toggle_like(store, LikeTarget.VIDEO, "123", fan)
        with pytest.raises(NotFound):
            await likes.toggle_like(store, LikeTarget.COMMENT, video, fan)

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_counts_as_liked(self):
        store = RacingStore()
        seed = Seeder(store)
        fan = seed.user("fan")
        video = seed.video(seed.user("owner"))
        seed.like(fan, video)

        result = await likes.toggle_like(store, LikeTarget.VIDEO, video, Viewer.authenticated(fan))

        assert result == {"liked": True, "likes_count": 1}
        assert len(store.collections[LIKES]) == 1


class TestComments:

    @pytest.mark.asyncio
    async def test_empty_listing(self, store, seed):
        video = seed.video(seed.user("owner"))

        page = await comments.list_comments(store, str(video), Viewer.anonymous(), page="1", page_size="10")

        assert page.items == []
        assert page.total == 0
        assert page.total_pages == 0

    @pytest.mark.asyncio
    async def test_listing_newest_first_with_likes(self, store, seed):
        owner, fan = seed.user("owner"), seed.user("fan")
        video = seed.video(owner)
        older = seed.comment(fan, video, "first!")
        newer = seed.comment(owner, video, "thanks")
        seed.like(owner, older, kind=LikeTarget.COMMENT)
        seed.comment(fan, seed.video(owner), "elsewhere")

        page = await comments.list_comments(store, video, Viewer.authenticated(owner))

        assert [c["_id"] for c in page.items] == [newer, older]
        assert page.items[1]["owner"]["username"] == "fan"
        assert page.items[1]["likes_count"] == 1
        assert page.items[1]["is_liked"] is True
        assert page.items[0]["is_liked"] is False
        assert page.total == 2

    @pytest.mark.asyncio
    async def test_listing_unknown_video(self, store):
        with pytest.raises(NotFound):
            await comments.list_comments(store, ObjectId(), Viewer.anonymous())

    @pytest.mark.asyncio
    async def test_add_update_delete(self, store, seed):
        owner = seed.user("owner")
        video = seed.video(owner)
        author = Viewer.authenticated(seed.user("author"))

        created = await comments.add_comment(store, video, author, "  hello ")
        assert created["content"] == "hello"
        assert created["video"] == video

        with pytest.raises(InvalidArgument):
            await comments.update_comment(store, created["_id"], author, "")
        with pytest.raises(PermissionDenied):
            await comments.update_comment(store, created["_id"], Viewer.authenticated(owner), "hijacked")

        updated = await comments.update_comment(store, created["_id"], author, "edited")
        assert updated["content"] == "edited"

        seed.like(owner, created["_id"], kind=LikeTarget.COMMENT)
        await comments.delete_comment(store, str(created["_id"]), author)

        assert not store.collections[COMMENTS]
        assert not store.collections[LIKES]

    @pytest.mark.asyncio
    async def test_add_requires_existing_video(self, store, seed):
        with pytest.raises(NotFound):
            await comments.add_comment(store, ObjectId(), Viewer.authenticated(seed.user("a")), "hi")


class TestSubscriptions:

    @pytest.mark.asyncio
    async def test_toggle_alternates_and_restores_state(self, store, seed):
        fan, channel = seed.user("fan"), seed.user("channel")
        viewer = Viewer.authenticated(fan)

        assert await subscriptions.toggle_subscription(store, channel, viewer) == {"subscribed": True}
        assert len(store.collections[SUBSCRIPTIONS]) == 1
        assert await subscriptions.toggle_subscription(store, str(channel), viewer) == {"subscribed": False}
        assert not store.collections[SUBSCRIPTIONS]
        assert await subscriptions.toggle_subscription(store, channel, viewer) == {"subscribed": True}
        assert len(store.collections[SUBSCRIPTIONS]) == 1

    @pytest.mark.asyncio
    async def test_self_subscription_allowed(self, store, seed):
        me = seed.user("me")
        assert await subscriptions.toggle_subscription(store, me, Viewer.authenticated(me)) == {"subscribed": True}

    @pytest.mark.asyncio
    async def test_unknown_channel(self, store, seed):
        with pytest.raises(NotFound):
            await subscriptions.toggle_subscription(store, ObjectId(), Viewer.authenticated(seed.user("fan")))

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_counts_as_subscribed(self):
        store = RacingStore()
        seed = Seeder(store)
        fan, channel = seed.user("fan"), seed.user("channel")
        seed.subscribe(fan, channel)

        result = await subscriptions.toggle_subscription(store, channel, Viewer.authenticated(fan))

        assert result == {"subscribed": True}
        assert len(store.collections[SUBSCRIPTIONS]) == 1

    @pytest.mark.asyncio
    async def test_subscriber_listing_marks_mutual_subscriptions(self, store, seed):
        a, b, c = seed.user("alice"), seed.user("bob"), seed.user("carol")
        seed.subscribe(a, c)
        seed.subscribe(b, c)
        seed.subscribe(a, b)

        page = await subscriptions.list_subscribers(store, c, Viewer.authenticated(a))
        by_name = {row["subscriber"]["username"]: row["subscriber"] for row in page.items}

        assert page.total == 2
        assert by_name["bob"]["subscribed_to_subscriber"] is False
        assert by_name["bob"]["subscribers_count"] == 1
        assert by_name["bob"]["is_subscribed"] is True
        assert by_name["alice"]["subscribed_to_subscriber"] is False
        assert all("subscribed_at" in row for row in page.items)

        seed.subscribe(c, b)
        page = await subscriptions.list_subscribers(store, c, Viewer.anonymous())
        by_name = {row["subscriber"]["username"]: row["subscriber"] for row in page.items}

        assert by_name["bob"]["subscribed_to_subscriber"] is True
        assert by_name["bob"]["is_subscribed"] is False
        assert by_name["alice"]["subscribed_to_subscriber"] is False

    @pytest.mark.asyncio
    async def test_subscribed_channels_with_latest_video(self, store, seed):
        fan, busy, quiet = seed.user("fan"), seed.user("busy"), seed.user("quiet")
        seed.video(busy, title="Older")
        seed.video(busy, title="Newer")
        seed.video(busy, title="Draft", published=False)
        seed.subscribe(fan, busy)
        seed.subscribe(fan, quiet)

        page = await subscriptions.list_subscribed_channels(store, fan, Viewer.authenticated(fan))
        channels = [row["channel"] for row in page.items]

        assert [ch["username"] for ch in channels] == ["quiet", "busy"]
        assert channels[0]["latest_video"] is None
        assert channels[1]["latest_video"]["title"] == "Newer"
        assert channels[1]["subscribers_count"] == 1
        assert channels[1]["is_subscribed"] is True
