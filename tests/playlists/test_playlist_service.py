"""Tests for user-initiated playlist operations."""

from datetime import timedelta

import pytest

from app.db.models import PlaylistStatus
from app.playlists.dispatcher import GenerationTaskKind
from app.playlists.errors import (
    COVER_UNAVAILABLE_MESSAGE,
    PLAYLIST_UNAVAILABLE_MESSAGE,
    PlaylistNotFoundError,
    PlaylistUnavailableError,
)
from app.playlists.service import NOT_ON_SPOTIFY_MESSAGE, PlaylistService


class FakeSpotifyClient:
    calls = []

    def __init__(self, account_id, refresh_token):
        self.account_id = account_id
        self.refresh_token = refresh_token

    def follow_playlist(self, spotify_playlist_id):
        FakeSpotifyClient.calls.append(("follow", self.account_id, spotify_playlist_id))

    def unfollow_playlist(self, spotify_playlist_id):
        FakeSpotifyClient.calls.append(("unfollow", self.account_id, spotify_playlist_id))


@pytest.fixture
def service(session_scope, dispatcher):
    FakeSpotifyClient.calls = []
    return PlaylistService(session_scope=session_scope, dispatcher=dispatcher, spotify_client_factory=FakeSpotifyClient)


class TestRegenerate:
    def test_ready_playlist_is_claimed_and_dispatched(self, service, dispatcher, make_user, make_playlist, load_playlist):
        user_id = make_user()
        playlist_id = make_playlist(user_id, "Run A")

        playlist = service.regenerate(user_id, playlist_id)

        assert playlist.status == PlaylistStatus.PROCESSING
        assert load_playlist(playlist_id).status == PlaylistStatus.PROCESSING
        assert dispatcher.playlist_ids(GenerationTaskKind.GENERATE_PLAYLIST) == [playlist_id]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"status": PlaylistStatus.PROCESSING},
            {"status": PlaylistStatus.GENERATING_COVER},
            {"locked": True},
        ],
    )
    def test_unavailable_playlist_is_rejected(self, service, dispatcher, make_user, make_playlist, load_playlist, kwargs):
        user_id = make_user()
        playlist_id = make_playlist(user_id, "Run A", **kwargs)
        before = load_playlist(playlist_id).status

        with pytest.raises(PlaylistUnavailableError) as exc_info:
            service.regenerate(user_id, playlist_id)

        assert exc_info.value.message == PLAYLIST_UNAVAILABLE_MESSAGE
        assert load_playlist(playlist_id).status == before
        assert dispatcher.tasks == []

    def test_second_request_loses(self, service, dispatcher, make_user, make_playlist):
        user_id = make_user()
        playlist_id = make_playlist(user_id, "Run A")

        service.regenerate(user_id, playlist_id)
        with pytest.raises(PlaylistUnavailableError):
            service.regenerate(user_id, playlist_id)

        assert len(dispatcher.tasks) == 1

    def test_other_users_playlist_is_not_found(self, service, dispatcher, make_user, make_playlist):
        owner = make_user("owner")
        intruder = make_user("intruder")
        playlist_id = make_playlist(owner, "Run A")

        with pytest.raises(PlaylistNotFoundError):
            service.regenerate(intruder, playlist_id)
        assert dispatcher.tasks == []

    def test_unknown_playlist_is_not_found(self, service, make_user):
        user_id = make_user()
        with pytest.raises(PlaylistNotFoundError):
            service.regenerate(user_id, "missing")


class TestRegenerateCover:
    def test_claims_cover_state(self, service, dispatcher, make_user, make_playlist, load_playlist):
        user_id = make_user()
        playlist_id = make_playlist(user_id, "Run A", cover_prompt="mountain sunrise")

        playlist = service.regenerate_cover(user_id, playlist_id)

        assert playlist.status == PlaylistStatus.GENERATING_COVER
        assert load_playlist(playlist_id).status == PlaylistStatus.GENERATING_COVER
        assert dispatcher.playlist_ids(GenerationTaskKind.GENERATE_COVER) == [playlist_id]

    def test_without_prompt_is_rejected(self, service, dispatcher, make_user, make_playlist):
        user_id = make_user()
        playlist_id = make_playlist(user_id, "Run A")

        with pytest.raises(PlaylistUnavailableError) as exc_info:
            service.regenerate_cover(user_id, playlist_id)

        assert exc_info.value.message == COVER_UNAVAILABLE_MESSAGE
        assert dispatcher.tasks == []

    def test_busy_playlist_is_rejected(self, service, dispatcher, make_user, make_playlist):
        user_id = make_user()
        playlist_id = make_playlist(user_id, "Run A", status=PlaylistStatus.PROCESSING, cover_prompt="x")

        with pytest.raises(PlaylistUnavailableError):
            service.regenerate_cover(user_id, playlist_id)
        assert dispatcher.tasks == []


class TestToggleLock:
    def test_lock_allowed_while_processing(self, service, dispatcher, make_user, make_playlist, load_playlist):
        user_id = make_user()
        playlist_id = make_playlist(user_id, "Run A", status=PlaylistStatus.PROCESSING)

        assert service.toggle_lock(user_id, playlist_id).locked is True
        after = load_playlist(playlist_id)
        assert after.locked is True
        assert after.status == PlaylistStatus.PROCESSING
        assert dispatcher.tasks == []

    def test_lock_then_unlock(self, service, make_user, make_playlist, load_playlist):
        user_id = make_user()
        playlist_id = make_playlist(user_id, "Run A")

        service.toggle_lock(user_id, playlist_id)
        service.toggle_lock(user_id, playlist_id)

        assert load_playlist(playlist_id).locked is False

    def test_locked_playlist_cannot_regenerate_until_unlocked(self, service, dispatcher, make_user, make_playlist):
        user_id = make_user()
        playlist_id = make_playlist(user_id, "Run A")

        service.toggle_lock(user_id, playlist_id)
        with pytest.raises(PlaylistUnavailableError):
            service.regenerate(user_id, playlist_id)

        service.toggle_lock(user_id, playlist_id)
        service.regenerate(user_id, playlist_id)
        assert dispatcher.playlist_ids() == [playlist_id]


class TestRegenerateToday:
    def test_only_eligible_playlists_of_today(self, service, dispatcher, make_user, make_playlist, today):
        user_id = make_user()
        ready = make_playlist(user_id, "Run A")
        make_playlist(user_id, "Run B", locked=True)
        make_playlist(user_id, "Run C", status=PlaylistStatus.PROCESSING)
        make_playlist(user_id, "Run A", day=today - timedelta(days=1))

        assert service.regenerate_todays_playlists(user_id) == [ready]
        assert dispatcher.playlist_ids() == [ready]

    def test_nothing_to_do(self, service, dispatcher, make_user):
        user_id = make_user()
        assert service.regenerate_todays_playlists(user_id) == []
        assert dispatcher.tasks == []


class TestFollowing:
    def test_follow_calls_spotify_and_records(self, service, make_user, make_playlist, load_playlist):
        user_id = make_user()
        playlist_id = make_playlist(user_id, "Run A", spotify_playlist_id="sp-1")

        playlist = service.follow(user_id, playlist_id)

        assert playlist.following is True
        assert load_playlist(playlist_id).following is True
        assert FakeSpotifyClient.calls == [("follow", "spotify-user-1", "sp-1")]

    def test_toggle_follow_twice(self, service, make_user, make_playlist, load_playlist):
        user_id = make_user()
        playlist_id = make_playlist(user_id, "Run A", spotify_playlist_id="sp-1")

        service.toggle_follow(user_id, playlist_id)
        service.toggle_follow(user_id, playlist_id)

        assert load_playlist(playlist_id).following is False
        assert [call[0] for call in FakeSpotifyClient.calls] == ["follow", "unfollow"]

    def test_not_on_spotify_yet(self, service, make_user, make_playlist):
        user_id = make_user()
        playlist_id = make_playlist(user_id, "Run A")

        with pytest.raises(PlaylistUnavailableError) as exc_info:
            service.follow(user_id, playlist_id)

        assert exc_info.value.message == NOT_ON_SPOTIFY_MESSAGE
        assert FakeSpotifyClient.calls == []

    def test_without_spotify_connection(self, service, make_user, make_playlist):
        user_id = make_user(spotify=False)
        playlist_id = make_playlist(user_id, "Run A", spotify_playlist_id="sp-1")

        with pytest.raises(PlaylistUnavailableError):
            service.unfollow(user_id, playlist_id)
        assert FakeSpotifyClient.calls == []


class TestListing:
    def test_pages_newest_first(self, service, make_user, make_playlist):
        user_id = make_user()
        ids = [make_playlist(user_id, f"Run {i}") for i in range(12)]

        first = service.list_playlists(user_id, page=1)
        second = service.list_playlists(user_id, page=2)

        assert len(first) == 10
        assert len(second) == 2
        assert {p.id for p in first} | {p.id for p in second} == set(ids)

    def test_only_own_playlists(self, service, make_user, make_playlist):
        make_user("a")
        make_user("b")
        mine = make_playlist("a", "Run A")
        make_playlist("b", "Run A")

        assert [p.id for p in service.list_playlists("a")] == [mine]
