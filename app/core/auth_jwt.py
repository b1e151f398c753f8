"""JWT token creation and verification utilities.

Tokens are issued by the web front end after the Spotify sign-in and carry the
user id in the 'sub' claim.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from loguru import logger

from app.config.settings import settings

TOKEN_ISSUER = "tempo-backend"


def create_access_token(user_id: str, expires_in: timedelta = timedelta(days=30)) -> str:
    """Create a JWT access token for a user."""
    user_id_str = str(user_id) if user_id is not None else ""
    if not user_id_str:
        raise ValueError("user_id cannot be None or empty")

    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id_str,
        "exp": now + expires_in,
        "iat": now,
        "iss": TOKEN_ISSUER,
    }
    return jwt.encode(payload, settings.auth_secret_key, algorithm=settings.auth_algorithm)


def decode_access_token(token: str) -> str:
    """Decode and verify a JWT access token.

    Returns:
        User ID (string) from token 'sub' claim

    Raises:
        ValueError: If token is invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.auth_secret_key,
            algorithms=[settings.auth_algorithm],
            issuer=TOKEN_ISSUER,
        )
        user_id = payload.get("sub")
        if not user_id:
            raise ValueError("Token missing user ID")
        return str(user_id)
    except JWTError as e:
        logger.warning(f"JWT decode failed: {e}")
        raise ValueError("Invalid or expired token") from e
