from __future__ import annotations

from collections.abc import Callable
from typing import NamedTuple

from loguru import logger

from app.integrations.spotify.client import account_token_valid


class SpotifyCredential(NamedTuple):
    """Spotify account id and refresh token, looked up by the caller."""

    account_id: str
    refresh_token: str


TokenChecker = Callable[[str, str], bool]


class TokenValidityGate:
    """Fail-closed wrapper around the music-service token check.

    Missing credentials, a False answer, and any exception from the checker
    all mean "not valid". Nothing propagates.
    """

    def __init__(self, checker: TokenChecker | None = None) -> None:
        self._checker = checker or account_token_valid

    def is_valid(self, credential: SpotifyCredential | None) -> bool:
        if credential is None:
            return False
        try:
            return bool(self._checker(credential.account_id, credential.refresh_token))
        except Exception as e:
            logger.warning(f"[SPOTIFY] Token check failed for account_id={credential.account_id}: {type(e).__name__}: {e}")
            return False
