"""Playlist lookup and creation keyed by (user, workout name, calendar day)."""

from __future__ import annotations

from datetime import date

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.calendar.helpers import today_for
from app.calendar.sources import Workout
from app.db.models import Authentication, MusicRequest, Playlist, PlaylistStatus, Preference
from app.playlists.errors import PlaylistNotFoundError
from app.playlists.token_gate import SpotifyCredential

SPOTIFY_PROVIDER = "spotify"
PLAYLISTS_PER_PAGE = 10


def find_for_day(session: Session, user_id: str, workout_name: str, day: date) -> Playlist | None:
    return session.execute(
        select(Playlist).where(
            Playlist.user_id == user_id,
            Playlist.workout_name == workout_name,
            Playlist.workout_date == day,
        )
    ).scalar_one_or_none()


def create_or_get(session: Session, user_id: str, workout: Workout, day: date) -> tuple[Playlist, bool]:
    """Create the playlist for a workout occurrence, or return the one that already exists.

    The insert relies on uq_playlist_user_workout_day. A concurrent creator that
    loses the race gets an IntegrityError; the transaction is rolled back and the
    winning row is returned with created=False. Must be the first write in the
    session's transaction because the rollback discards everything before it.

    The new playlist starts in processing and unlocked; the insert is flushed
    but not committed.
    """
    playlist = Playlist(
        user_id=user_id,
        workout_name=workout.name,
        workout_description=workout.description,
        workout_duration=workout.duration,
        workout_date=day,
        status=PlaylistStatus.PROCESSING.value,
        locked=False,
    )
    session.add(playlist)
    try:
        session.flush()
    except IntegrityError:
        session.rollback()
        logger.info(f"[PLAYLISTS] Duplicate during create (race) user_id={user_id} workout={workout.name!r} day={day}")
        existing = find_for_day(session, user_id, workout.name, day)
        if existing is None:
            raise
        return existing, False
    return playlist, True


def get_for_user(session: Session, user_id: str, playlist_id: str) -> Playlist:
    """Load a playlist owned by user_id or raise PlaylistNotFoundError."""
    playlist = session.execute(
        select(Playlist).where(Playlist.id == playlist_id, Playlist.user_id == user_id)
    ).scalar_one_or_none()
    if playlist is None:
        raise PlaylistNotFoundError(playlist_id)
    return playlist


def todays_playlists(session: Session, user_id: str, timezone_name: str | None) -> list[Playlist]:
    day = today_for(timezone_name)
    return list(
        session.execute(
            select(Playlist).where(Playlist.user_id == user_id, Playlist.workout_date == day).order_by(Playlist.created_at)
        ).scalars()
    )


def list_for_user(session: Session, user_id: str, page: int = 1, per_page: int = PLAYLISTS_PER_PAGE) -> list[Playlist]:
    """One page of a user's playlists, newest first. Pages start at 1."""
    page = max(page, 1)
    return list(
        session.execute(
            select(Playlist)
            .where(Playlist.user_id == user_id)
            .order_by(Playlist.created_at.desc(), Playlist.id)
            .offset((page - 1) * per_page)
            .limit(per_page)
        ).scalars()
    )


def active_music_request(session: Session, user_id: str) -> MusicRequest | None:
    return session.execute(
        select(MusicRequest)
        .where(MusicRequest.user_id == user_id, MusicRequest.active.is_(True))
        .order_by(MusicRequest.created_at.desc())
        .limit(1)
    ).scalar_one_or_none()


def preference_for(session: Session, user_id: str) -> Preference | None:
    return session.execute(select(Preference).where(Preference.user_id == user_id)).scalar_one_or_none()


def spotify_credential_for(session: Session, user_id: str) -> SpotifyCredential | None:
    """Spotify account id and refresh token for the user, if they have connected Spotify."""
    auth = session.execute(
        select(Authentication).where(Authentication.user_id == user_id, Authentication.provider == SPOTIFY_PROVIDER)
    ).scalars().first()
    if auth is None:
        return None
    return SpotifyCredential(account_id=auth.uid, refresh_token=auth.refresh_token or "")


def users_with_active_music_request(session: Session) -> list[str]:
    return list(
        session.execute(select(MusicRequest.user_id).where(MusicRequest.active.is_(True)).distinct()).scalars()
    )
