"""Tests for playlist services."""
import pytest
from bson import ObjectId

from videotube.errors import InvalidArgument, NotFound, PermissionDenied
from videotube.models import PLAYLISTS, VIDEOS
from videotube.services import playlists
from videotube.viewer import Viewer


@pytest.fixture
def library(seed):
    owner = seed.user("owner")
    return {
        "owner": owner,
        "hit": seed.video(owner, title="Hit", views=10),
        "draft": seed.video(owner, title="Draft", views=100, published=False),
        "other": seed.video(owner, title="Other", views=3),
    }


class TestPlaylistDetail:

    @pytest.mark.asyncio
    async def test_totals_cover_published_members_only(self, store, seed, library):
        playlist = seed.playlist(library["owner"], videos=[library["hit"], library["draft"], library["hit"]])

        for viewer in (Viewer.anonymous(), Viewer.authenticated(library["owner"])):
            detail = await playlists.get_playlist(store, str(playlist), viewer)
            assert detail["total_videos"] == 2
            assert detail["total_views"] == 20
            assert detail["video_refs"] == 3
            assert [v["title"] for v in detail["videos"]] == ["Hit", "Hit"]

    @pytest.mark.asyncio
    async def test_owner_summaries(self, store, seed, library):
        playlist = seed.playlist(library["owner"], videos=[library["other"]])

        detail = await playlists.get_playlist(store, playlist, Viewer.anonymous())

        assert detail["owner"]["username"] == "owner"
        assert detail["videos"][0]["owner"]["username"] == "owner"
        assert "public_id" not in detail["videos"][0]["video_file"]

    @pytest.mark.asyncio
    async def test_deleted_video_drops_out(self, store, seed, library):
        playlist = seed.playlist(library["owner"], videos=[library["hit"], library["other"]])
        del store.collections[VIDEOS][library["hit"]]

        detail = await playlists.get_playlist(store, playlist, Viewer.anonymous())

        assert detail["total_videos"] == 1
        assert detail["video_refs"] == 2

    @pytest.mark.asyncio
    async def test_unknown_and_invalid(self, store):
        with pytest.raises(NotFound):
            await playlists.get_playlist(store, ObjectId(), Viewer.anonymous())
        with pytest.raises(InvalidArgument):
            await playlists.get_playlist(store, "bogus", Viewer.anonymous())


class TestPlaylistMembership:

    @pytest.mark.asyncio
    async def test_add_keeps_duplicates_and_remove_drops_all(self, store, seed, library):
        playlist = seed.playlist(library["owner"])
        viewer = Viewer.authenticated(library["owner"])

        await playlists.add_video(store, playlist, library["hit"], viewer)
        await playlists.add_video(store, playlist, library["other"], viewer)
        updated = await playlists.add_video(store, playlist, str(library["hit"]), viewer)
        assert updated["videos"] == [library["hit"], library["other"], library["hit"]]

        updated = await playlists.remove_video(store, playlist, library["hit"], viewer)
        assert updated["videos"] == [library["other"]]
        assert updated["updated_at"] > updated["created_at"]

    @pytest.mark.asyncio
    async def test_membership_checks(self, store, seed, library):
        playlist = seed.playlist(library["owner"])

        with pytest.raises(PermissionDenied):
            await playlists.add_video(store, playlist, library["hit"], Viewer.authenticated(seed.user("intruder")))
        with pytest.raises(NotFound):
            await playlists.add_video(store, playlist, ObjectId(), Viewer.authenticated(library["owner"]))


class TestPlaylistLifecycle:

    @pytest.mark.asyncio
    async def test_create_update_delete(self, store, seed):
        owner = Viewer.authenticated(seed.user("owner"))

        created = await playlists.create_playlist(store, owner, "Road trip", "Songs")
        assert created["videos"] == []

        with pytest.raises(InvalidArgument):
            await playlists.create_playlist(store, owner, " ", "Songs")
        with pytest.raises(PermissionDenied):
            await playlists.update_playlist(store, created["_id"], Viewer.authenticated(seed.user("x")), "n", "d")

        updated = await playlists.update_playlist(store, created["_id"], owner, "Road trip 2", "More songs")
        assert updated["name"] == "Road trip 2"

        await playlists.delete_playlist(store, created["_id"], owner)
        assert not store.collections[PLAYLISTS]

    @pytest.mark.asyncio
    async def test_user_playlists_most_recently_updated_first(self, store, seed, library):
        owner = library["owner"]
        older = seed.playlist(owner, "Older", videos=[library["hit"], library["draft"]])
        newer = seed.playlist(owner, "Newer")
        seed.playlist(seed.user("someone"), "Not mine")

        page = await playlists.list_user_playlists(store, owner, Viewer.anonymous())

        assert [p["_id"] for p in page.items] == [newer, older]
        assert page.items[1]["total_videos"] == 1
        assert page.items[1]["total_views"] == 10
        assert page.items[1]["video_refs"] == 2
        assert "videos" not in page.items[1]
        assert page.total == 2
