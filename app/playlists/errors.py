"""Error types for playlist operations.

Business logic errors that should not be logged as database errors.
"""

PLAYLIST_UNAVAILABLE_MESSAGE = "Your playlist can't be generated at this time."
COVER_UNAVAILABLE_MESSAGE = "Your playlist's cover art can't be regenerated at this time."


class PlaylistError(Exception):
    """Base exception for playlist operations."""


class PlaylistNotFoundError(PlaylistError):
    """Raised when a playlist does not exist or belongs to another user."""

    def __init__(self, playlist_id: str) -> None:
        super().__init__(f"Playlist not found: {playlist_id}")
        self.playlist_id = playlist_id


class PlaylistUnavailableError(PlaylistError):
    """Raised when a regenerate request hits a playlist that is not eligible.

    The playlist is mid-generation, locked, or (for covers) has no cover
    prompt yet. Nothing was changed and nothing was dispatched.
    """

    def __init__(self, playlist_id: str, message: str = PLAYLIST_UNAVAILABLE_MESSAGE) -> None:
        super().__init__(message)
        self.playlist_id = playlist_id
        self.message = message
