from __future__ import annotations

import httpx
from loguru import logger

from app.config.settings import settings

SPOTIFY_ACCOUNTS_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_BASE_URL = "https://api.spotify.com/v1"


class SpotifyClient:
    """Thin Spotify Web API client for one connected account.

    - Access tokens are never stored; each client refreshes on first use
    - No retries
    """

    def __init__(self, account_id: str, refresh_token: str):
        self._account_id = account_id
        self._refresh_token = refresh_token
        self._access_token: str | None = None

    def _refresh_access_token(self) -> httpx.Response:
        logger.debug(f"[SPOTIFY] Refreshing access token for account_id={self._account_id}")
        return httpx.post(
            SPOTIFY_ACCOUNTS_URL,
            data={
                "grant_type": "refresh_token",
                "refresh_token": self._refresh_token,
            },
            auth=(settings.spotify_client_id, settings.spotify_client_secret),
            timeout=10,
        )

    def _headers(self) -> dict[str, str]:
        if self._access_token is None:
            resp = self._refresh_access_token()
            resp.raise_for_status()
            self._access_token = resp.json()["access_token"]
        return {"Authorization": f"Bearer {self._access_token}"}

    def valid_token(self) -> bool:
        """True if the refresh token still yields an access token for this account.

        Rejected refresh tokens (4xx from the accounts service) return False.
        Transport errors and 5xx responses raise.
        """
        resp = self._refresh_access_token()
        if resp.status_code in (400, 401, 403):
            logger.info(f"[SPOTIFY] Refresh token rejected for account_id={self._account_id}: {resp.status_code}")
            return False
        resp.raise_for_status()
        self._access_token = resp.json()["access_token"]
        return True

    def follow_playlist(self, spotify_playlist_id: str) -> None:
        resp = httpx.put(
            f"{SPOTIFY_BASE_URL}/playlists/{spotify_playlist_id}/followers",
            headers=self._headers(),
            json={"public": False},
            timeout=15,
        )
        resp.raise_for_status()
        logger.info(f"[SPOTIFY] Followed playlist {spotify_playlist_id} for account_id={self._account_id}")

    def unfollow_playlist(self, spotify_playlist_id: str) -> None:
        resp = httpx.delete(
            f"{SPOTIFY_BASE_URL}/playlists/{spotify_playlist_id}/followers",
            headers=self._headers(),
            timeout=15,
        )
        resp.raise_for_status()
        logger.info(f"[SPOTIFY] Unfollowed playlist {spotify_playlist_id} for account_id={self._account_id}")


def account_token_valid(account_id: str, refresh_token: str) -> bool:
    """Check a Spotify account's refresh token. May raise on transport errors."""
    return SpotifyClient(account_id, refresh_token).valid_token()
