"""API contract schemas for the playlist endpoints."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from app.db.models import Playlist


class TrackResponse(BaseModel):
    """A track on a playlist."""

    model_config = ConfigDict(from_attributes=True)

    artist: str
    title: str
    spotify_uri: str | None = Field(default=None, description="Spotify track URI")


class PlaylistResponse(BaseModel):
    """A generated playlist for one workout occurrence."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    workout_name: str
    workout_description: str | None = None
    workout_duration: int | None = Field(default=None, description="Planned workout duration in minutes")
    workout_date: date = Field(description="Calendar day of the workout in the user's timezone")
    status: str = Field(description="processing | ready | generating_cover")
    locked: bool
    following: bool
    has_cover_prompt: bool = Field(description="Whether cover art can be regenerated once the playlist is ready")
    spotify_playlist_id: str | None = None
    created_at: datetime
    tracks: list[TrackResponse] = Field(default_factory=list)

    @classmethod
    def from_playlist(cls, playlist: Playlist) -> "PlaylistResponse":
        return cls(
            id=playlist.id,
            workout_name=playlist.workout_name,
            workout_description=playlist.workout_description,
            workout_duration=playlist.workout_duration,
            workout_date=playlist.workout_date,
            status=playlist.status,
            locked=playlist.locked,
            following=playlist.following,
            has_cover_prompt=bool(playlist.cover_prompt),
            spotify_playlist_id=playlist.spotify_playlist_id,
            created_at=playlist.created_at,
            tracks=[TrackResponse.model_validate(t) for t in playlist.tracks],
        )


class PlaylistPageResponse(BaseModel):
    """Response for GET /playlists."""

    page: int
    playlists: list[PlaylistResponse]


class RegenerateTodayResponse(BaseModel):
    """Response for POST /playlists/today/regenerate."""

    playlist_ids: list[str] = Field(description="Playlists that were moved to processing and dispatched")
