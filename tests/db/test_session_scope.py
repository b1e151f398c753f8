"""Tests for the get_session commit/rollback scope."""

import pytest
from fastapi import HTTPException

from app.db import session as db_session
from app.db.models import User
from app.playlists.errors import PlaylistNotFoundError


@pytest.fixture
def scope(monkeypatch, session_factory):
    monkeypatch.setattr(db_session, "_SessionLocal", session_factory)
    return db_session.get_session


def test_commits_on_clean_exit(scope, session_factory):
    with scope() as session:
        session.add(User(id="u1", email="u1@example.com"))

    with session_factory() as check:
        assert check.get(User, "u1") is not None


@pytest.mark.parametrize(
    "error",
    [PlaylistNotFoundError("p1"), HTTPException(status_code=404), RuntimeError("db down")],
)
def test_rolls_back_and_reraises(scope, session_factory, error):
    with pytest.raises(type(error)):
        with scope() as session:
            session.add(User(id="u1", email="u1@example.com"))
            session.flush()
            raise error

    with session_factory() as check:
        assert check.get(User, "u1") is None
