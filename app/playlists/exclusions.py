from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.db.models import Playlist, Track

EXCLUSION_HEADER = "The following songs have already been used in previous playlists, don't include them:"


def recent_tracks(session: Session, user_id: str, now: datetime | None = None, days: int | None = None) -> list[Track]:
    """Tracks with a Spotify URI from the user's playlists in the trailing window, newest first."""
    window = days if days is not None else settings.track_exclusion_days
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=window)
    return list(
        session.execute(
            select(Track)
            .join(Playlist, Track.playlist_id == Playlist.id)
            .where(
                Playlist.user_id == user_id,
                Track.spotify_uri.is_not(None),
                Track.spotify_uri != "",
                Track.created_at >= cutoff,
            )
            .order_by(Track.created_at.desc(), Track.id)
        ).scalars()
    )


def build_exclusion_list(session: Session, user_id: str, now: datetime | None = None) -> str:
    """Prompt fragment listing recently used tracks so a new generation does not repeat them.

    One line per distinct Spotify URI, newest first, where the most recent
    occurrence of a URI decides its position. Empty string if there is nothing to exclude.
    """
    seen: set[str] = set()
    lines: list[str] = []
    for track in recent_tracks(session, user_id, now=now):
        if track.spotify_uri in seen:
            continue
        seen.add(track.spotify_uri)
        lines.append(f"- {track.artist} - {track.title}")

    if not lines:
        return ""
    return EXCLUSION_HEADER + "\n" + "\n".join(lines)
