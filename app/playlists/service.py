"""User-initiated playlist operations.

These run concurrently with scheduled reconciliation and with each other. Each
one reads the playlist, checks eligibility, claims the new state with a
conditional UPDATE, commits, and only then dispatches. A request that loses
the claim is rejected exactly like an ineligible one.
"""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from app.db.models import Playlist
from app.db.session import get_session
from app.integrations.spotify.client import SpotifyClient
from app.playlists import lifecycle, repository
from app.playlists.dispatcher import CeleryGenerationDispatcher, GenerationDispatcher, generate_cover, generate_playlist
from app.playlists.errors import COVER_UNAVAILABLE_MESSAGE, PlaylistUnavailableError
from app.playlists.reconciliation import SessionScope

NOT_ON_SPOTIFY_MESSAGE = "Your playlist isn't on Spotify yet."

SpotifyClientFactory = Callable[[str, str], SpotifyClient]


class PlaylistService:
    def __init__(
        self,
        session_scope: SessionScope = get_session,
        dispatcher: GenerationDispatcher | None = None,
        spotify_client_factory: SpotifyClientFactory = SpotifyClient,
    ) -> None:
        self._session_scope = session_scope
        self._dispatcher = dispatcher or CeleryGenerationDispatcher()
        self._spotify_client_factory = spotify_client_factory

    def get(self, user_id: str, playlist_id: str) -> Playlist:
        with self._session_scope() as session:
            return repository.get_for_user(session, user_id, playlist_id)

    def list_playlists(self, user_id: str, page: int = 1) -> list[Playlist]:
        with self._session_scope() as session:
            return repository.list_for_user(session, user_id, page=page)

    def toggle_lock(self, user_id: str, playlist_id: str) -> Playlist:
        """Flip locked. Always allowed; never changes status or dispatches."""
        with self._session_scope() as session:
            playlist = repository.get_for_user(session, user_id, playlist_id)
            lifecycle.toggle_lock(session, playlist)
            return playlist

    def regenerate(self, user_id: str, playlist_id: str) -> Playlist:
        """Start a new generation cycle.

        Raises:
            PlaylistNotFoundError: unknown playlist or not owned by user_id
            PlaylistUnavailableError: playlist is processing, generating a cover, or locked
        """
        with self._session_scope() as session:
            playlist = repository.get_for_user(session, user_id, playlist_id)
            if not lifecycle.eligible_for_reprocessing(playlist) or not lifecycle.claim_for_processing(session, playlist):
                logger.info(f"[PLAYLISTS] Regenerate rejected for playlist_id={playlist_id} status={playlist.status} locked={playlist.locked}")
                raise PlaylistUnavailableError(playlist_id)
            session.commit()
            self._dispatcher.dispatch(generate_playlist(user_id, playlist.id))
            return playlist

    def regenerate_cover(self, user_id: str, playlist_id: str) -> Playlist:
        """Regenerate cover art from the stored cover prompt.

        Raises:
            PlaylistNotFoundError: unknown playlist or not owned by user_id
            PlaylistUnavailableError: playlist is busy, locked, or has no cover prompt
        """
        with self._session_scope() as session:
            playlist = repository.get_for_user(session, user_id, playlist_id)
            if not lifecycle.eligible_for_cover_regeneration(playlist) or not lifecycle.claim_for_cover(session, playlist):
                logger.info(f"[PLAYLISTS] Cover regenerate rejected for playlist_id={playlist_id} status={playlist.status}")
                raise PlaylistUnavailableError(playlist_id, COVER_UNAVAILABLE_MESSAGE)
            session.commit()
            self._dispatcher.dispatch(generate_cover(user_id, playlist.id))
            return playlist

    def regenerate_todays_playlists(self, user_id: str) -> list[str]:
        """Start a new generation cycle for every eligible playlist of today. Returns the dispatched ids."""
        with self._session_scope() as session:
            preference = repository.preference_for(session, user_id)
            timezone_name = preference.timezone if preference else None
            claimed = [
                playlist.id
                for playlist in repository.todays_playlists(session, user_id, timezone_name)
                if lifecycle.eligible_for_reprocessing(playlist) and lifecycle.claim_for_processing(session, playlist)
            ]
            session.commit()

        for playlist_id in claimed:
            self._dispatcher.dispatch(generate_playlist(user_id, playlist_id))
        logger.info(f"[PLAYLISTS] Regenerating {len(claimed)} of today's playlist(s) for user_id={user_id}")
        return claimed

    def follow(self, user_id: str, playlist_id: str) -> Playlist:
        return self._set_following(user_id, playlist_id, following=True)

    def unfollow(self, user_id: str, playlist_id: str) -> Playlist:
        return self._set_following(user_id, playlist_id, following=False)

    def toggle_follow(self, user_id: str, playlist_id: str) -> Playlist:
        playlist = self.get(user_id, playlist_id)
        return self._set_following(user_id, playlist_id, following=not playlist.following)

    def _set_following(self, user_id: str, playlist_id: str, *, following: bool) -> Playlist:
        with self._session_scope() as session:
            playlist = repository.get_for_user(session, user_id, playlist_id)
            credential = repository.spotify_credential_for(session, user_id)
            spotify_playlist_id = playlist.spotify_playlist_id

        if not spotify_playlist_id or credential is None:
            raise PlaylistUnavailableError(playlist_id, NOT_ON_SPOTIFY_MESSAGE)

        client = self._spotify_client_factory(credential.account_id, credential.refresh_token)
        if following:
            client.follow_playlist(spotify_playlist_id)
        else:
            client.unfollow_playlist(spotify_playlist_id)

        with self._session_scope() as session:
            playlist = repository.get_for_user(session, user_id, playlist_id)
            playlist.following = following
            return playlist
