"""Playlist generation lifecycle.

States and transitions:

    (no row) --create--> processing --worker done--> ready
    ready --claim_for_processing--> processing
    ready --claim_for_cover--> generating_cover --cover worker done--> ready

The status column is the only concurrency control for generation tasks. Every
transition into a busy state is a single conditional UPDATE, so of two callers
racing on the same playlist exactly one sees rowcount == 1 and may dispatch.
The caller must commit before dispatching, otherwise a second caller could read
the old state from a different transaction and dispatch a duplicate.

`locked` is orthogonal to status. Toggling it never changes status and never
dispatches anything.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from loguru import logger
from sqlalchemy import update
from sqlalchemy.orm import Session

from app.db.models import Playlist, PlaylistStatus, Track

BUSY_STATUSES = (PlaylistStatus.PROCESSING.value, PlaylistStatus.GENERATING_COVER.value)


class PlaylistState(Protocol):
    status: str
    locked: bool
    cover_prompt: str | None


@dataclass(frozen=True)
class GeneratedTrack:
    """A track produced by the playlist generation worker."""

    artist: str
    title: str
    spotify_uri: str | None = None


def eligible_for_reprocessing(playlist: PlaylistState) -> bool:
    """True when a new generation cycle may start: not mid-generation and not locked."""
    return playlist.status not in BUSY_STATUSES and not playlist.locked


def eligible_for_cover_regeneration(playlist: PlaylistState) -> bool:
    """True when cover art may be regenerated: reprocessable and has a cover prompt."""
    return eligible_for_reprocessing(playlist) and bool(playlist.cover_prompt)


def claim_for_processing(session: Session, playlist: Playlist) -> bool:
    """Move an eligible playlist to processing. Returns False if another caller won or it is ineligible."""
    result = session.execute(
        update(Playlist)
        .where(
            Playlist.id == playlist.id,
            Playlist.status.not_in(BUSY_STATUSES),
            Playlist.locked.is_(False),
        )
        .values(status=PlaylistStatus.PROCESSING.value)
        .execution_options(synchronize_session=False)
    )
    session.refresh(playlist, ["status", "locked"])
    claimed = result.rowcount == 1
    logger.debug(f"[PLAYLISTS] claim_for_processing playlist_id={playlist.id} claimed={claimed} status={playlist.status}")
    return claimed


def claim_for_cover(session: Session, playlist: Playlist) -> bool:
    """Move an eligible playlist to generating_cover. Returns False if another caller won or it is ineligible."""
    result = session.execute(
        update(Playlist)
        .where(
            Playlist.id == playlist.id,
            Playlist.status.not_in(BUSY_STATUSES),
            Playlist.locked.is_(False),
            Playlist.cover_prompt.is_not(None),
            Playlist.cover_prompt != "",
        )
        .values(status=PlaylistStatus.GENERATING_COVER.value)
        .execution_options(synchronize_session=False)
    )
    session.refresh(playlist, ["status", "locked", "cover_prompt"])
    claimed = result.rowcount == 1
    logger.debug(f"[PLAYLISTS] claim_for_cover playlist_id={playlist.id} claimed={claimed} status={playlist.status}")
    return claimed


def toggle_lock(session: Session, playlist: Playlist) -> bool:
    """Flip the locked flag in one statement and return the new value."""
    session.execute(
        update(Playlist)
        .where(Playlist.id == playlist.id)
        .values(locked=~Playlist.locked)
        .execution_options(synchronize_session=False)
    )
    session.refresh(playlist, ["locked"])
    logger.info(f"[PLAYLISTS] Playlist {playlist.id} locked={playlist.locked}")
    return playlist.locked


def complete_generation(
    session: Session,
    playlist_id: str,
    tracks: Sequence[GeneratedTrack],
    cover_prompt: str | None = None,
) -> bool:
    """Record a finished playlist generation (processing -> ready).

    Called by the generation worker. Redelivered or stale completions (the
    playlist is no longer processing) are ignored and return False.

    If the user locked the playlist while it was generating, the status still
    returns to ready but the existing tracks and cover prompt are kept.
    """
    result = session.execute(
        update(Playlist)
        .where(Playlist.id == playlist_id, Playlist.status == PlaylistStatus.PROCESSING.value)
        .values(status=PlaylistStatus.READY.value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info(f"[PLAYLISTS] Ignoring generation result for playlist_id={playlist_id}: not processing")
        return False

    playlist = session.get(Playlist, playlist_id)
    if playlist is None:
        return False
    session.refresh(playlist, ["status", "locked"])

    if playlist.locked:
        logger.warning(f"[PLAYLISTS] Playlist {playlist_id} was locked during generation; keeping existing tracks")
        return True

    playlist.tracks.clear()
    session.flush()
    for position, generated in enumerate(tracks):
        playlist.tracks.append(
            Track(
                position=position,
                spotify_uri=generated.spotify_uri,
                artist=generated.artist,
                title=generated.title,
            )
        )
    if cover_prompt:
        playlist.cover_prompt = cover_prompt
    session.flush()
    logger.info(f"[PLAYLISTS] Playlist {playlist_id} ready with {len(tracks)} track(s)")
    return True


def complete_cover(session: Session, playlist_id: str) -> bool:
    """Record finished cover art (generating_cover -> ready). Stale completions return False."""
    result = session.execute(
        update(Playlist)
        .where(Playlist.id == playlist_id, Playlist.status == PlaylistStatus.GENERATING_COVER.value)
        .values(status=PlaylistStatus.READY.value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info(f"[PLAYLISTS] Ignoring cover result for playlist_id={playlist_id}: not generating cover")
        return False
    logger.info(f"[PLAYLISTS] Cover art ready for playlist_id={playlist_id}")
    return True
