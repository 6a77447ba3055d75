"""Tests for pipeline stages and the engine's source pushdown."""
import pytest

from videotube import recipes
from videotube.models import LIKES, PLAYLISTS, SUBSCRIPTIONS, USERS, VIDEOS, LikeTarget
from videotube.pipeline.engine import Pipeline
from videotube.pipeline.pagination import DESC, PageRequest
from videotube.pipeline.predicates import Eq
from videotube.pipeline.stages import (
    DeriveField,
    Join,
    Match,
    Paginate,
    Project,
    Sort,
    TextSearch,
    latest_of,
    size_of,
    viewer_in,
)
from videotube.viewer import Viewer


def calls_on(store, collection):
    return [op for op, coll in store.calls if coll == collection]


class TestProject:

    def test_nested_paths_renames_and_arrays(self):
        doc = {
            "_id": 1,
            "owner": {"username": "a", "email": "a@x", "avatar": {"url": "u", "public_id": "p"}},
            "videos": [{"title": "t", "views": 3}, {"title": "s", "views": 1}],
            "latest": None,
            "created_at": 5,
        }
        projected = Project(
            "_id", "owner.username", "owner.avatar.url", "videos.title", "latest.title",
            subscribed_at="created_at",
        ).project(doc)

        assert projected == {
            "_id": 1,
            "owner": {"username": "a", "avatar": {"url": "u"}},
            "videos": [{"title": "t"}, {"title": "s"}],
            "latest": None,
            "subscribed_at": 5,
        }

    def test_missing_fields_are_left_out(self):
        assert Project("_id", "score").project({"_id": 1}) == {"_id": 1}


class TestJoin:

    @pytest.mark.asyncio
    async def test_one_query_per_join_for_the_whole_page(self, store, seed):
        owners = [seed.user(f"user{i}") for i in range(4)]
        for owner in owners:
            video = seed.video(owner)
            seed.like(owner, video)
        store.calls.clear()

        pipeline = Pipeline(VIDEOS, [
            Sort(("created_at", DESC)),
            Paginate(PageRequest(page=1, page_size=10)),
            Join(USERS, "owner", "_id", "owner"),
            Join(LIKES, "_id", "target_id", "likes"),
        ])
        result = await pipeline.run(store)

        assert len(result.documents) == 4
        assert calls_on(store, VIDEOS) == ["count", "find"]
        assert calls_on(store, USERS) == ["find"]
        assert calls_on(store, LIKES) == ["find"]
        assert all(len(d["owner"]) == 1 and len(d["likes"]) == 1 for d in result.documents)

    @pytest.mark.asyncio
    async def test_nested_join_is_batched(self, store, seed):
        channel = seed.user("channel")
        for i in range(5):
            fan = seed.user(f"fan{i}")
            seed.subscribe(fan, channel)
            seed.subscribe(channel, fan)
        store.calls.clear()

        page = await recipes.channel_subscribers(channel, PageRequest(1, 10)).page(store, Viewer.anonymous())

        assert page.total == 5
        # source count + find, then one batched query for the nested hop
        assert calls_on(store, SUBSCRIPTIONS) == ["count", "find", "find"]
        assert calls_on(store, USERS) == ["find"]

    @pytest.mark.asyncio
    async def test_array_key_keeps_order_and_duplicates(self, store, seed):
        owner = seed.user("owner")
        first = seed.video(owner, title="First")
        second = seed.video(owner, title="Second")
        playlist = seed.playlist(owner, videos=[second, first, second])

        pipeline = Pipeline(PLAYLISTS, [
            Match(Eq("_id", playlist)),
            Join(VIDEOS, "videos", "_id", "videos"),
        ])
        doc = await pipeline.first(store)

        assert [v["title"] for v in doc["videos"]] == ["Second", "First", "Second"]

    @pytest.mark.asyncio
    async def test_left_outer_and_where_selects_one_arm(self, store, seed):
        owner = seed.user("owner")
        liked = seed.video(owner, title="Liked")
        lonely = seed.video(owner, title="Lonely")
        seed.like(owner, liked)
        # a like on the other arm that happens to share the id
        seed.like(owner, liked, kind=LikeTarget.COMMENT)

        pipeline = Pipeline(VIDEOS, [
            Sort(("created_at", DESC)),
            Join(LIKES, "_id", "target_id", "likes", where=Eq("target_kind", "video")),
            DeriveField("likes_count", size_of("likes")),
        ])
        result = await pipeline.run(store)
        counts = {d["_id"]: d["likes_count"] for d in result.documents}

        assert counts == {liked: 1, lonely: 0}

    def test_rejects_reordering_stages_inside_join(self):
        with pytest.raises(ValueError):
            Join(USERS, "owner", "_id", "owner", pipeline=[Sort(("created_at", DESC))])
        with pytest.raises(ValueError):
            Join(USERS, "owner", "_id", "owner", pipeline=[Paginate(PageRequest())])


class TestEngine:

    def test_text_search_must_lead(self):
        with pytest.raises(ValueError):
            Pipeline(VIDEOS, [Match(Eq("is_published", True)), TextSearch("idx", ("title",), "cats")])

    @pytest.mark.asyncio
    async def test_blank_search_falls_back_to_find(self, store, seed):
        seed.video(seed.user("owner"))
        store.calls.clear()

        result = await Pipeline(VIDEOS, [TextSearch("idx", ("title",), "   ")]).run(store)

        assert len(result.documents) == 1
        assert calls_on(store, VIDEOS) == ["find"]

    @pytest.mark.asyncio
    async def test_page_requires_paginate(self, store):
        with pytest.raises(ValueError):
            await Pipeline(VIDEOS, [Match(Eq("is_published", True))]).page(store)

    @pytest.mark.asyncio
    async def test_paginate_after_in_process_stages(self, store, seed):
        owner = seed.user("owner")
        for i in range(7):
            seed.video(owner, title=f"Video {i}", views=i)

        page = await Pipeline(VIDEOS, [
            DeriveField("double_views", lambda viewer, doc: doc["views"] * 2),
            Sort(("double_views", DESC)),
            Paginate(PageRequest(page=2, page_size=3)),
        ]).page(store)

        assert page.total == 7
        assert page.total_pages == 3
        assert [d["views"] for d in page.items] == [3, 2, 1]

    @pytest.mark.asyncio
    async def test_viewer_derivations(self, store, seed):
        fan = seed.user("fan")
        owner = seed.user("owner")
        video = seed.video(owner)
        seed.like(fan, video)

        pipeline = Pipeline(VIDEOS, [
            Join(LIKES, "_id", "target_id", "likes"),
            DeriveField("is_liked", viewer_in("likes", "liked_by")),
        ])

        assert (await pipeline.first(store, Viewer.authenticated(fan)))["is_liked"] is True
        assert (await pipeline.first(store, Viewer.authenticated(owner)))["is_liked"] is False
        assert (await pipeline.first(store, Viewer.anonymous()))["is_liked"] is False

    def test_latest_of_picks_newest(self):
        doc = {"videos": [{"_id": 1, "created_at": 3}, {"_id": 2, "created_at": 9}, {"_id": 3, "created_at": 5}]}
        assert latest_of("videos")(Viewer.anonymous(), doc)["_id"] == 2
        assert latest_of("videos")(Viewer.anonymous(), {"videos": []}) is None
