"""Root conftest for all tests.

Every test gets its own SQLite file database so that separate sessions see
each other's commits the way they would against Postgres.
"""

import os

os.environ.setdefault("AUTH_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from contextlib import contextmanager
from datetime import date

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.calendar.helpers import today_for
from app.calendar.sources import Workout
from app.db.models import Authentication, Base, MusicRequest, Playlist, PlaylistStatus, Preference, User
from app.db.session import _enable_sqlite_foreign_keys


class RecordingDispatcher:
    """Collects dispatched generation tasks instead of sending them."""

    def __init__(self):
        self.tasks = []

    def dispatch(self, task):
        self.tasks.append(task)

    def playlist_ids(self, kind=None):
        return [t.playlist_id for t in self.tasks if kind is None or t.kind == kind]


class StaticCalendar:
    """Calendar gateway returning a fixed list of workouts."""

    def __init__(self, workouts=None, error=None):
        self.workouts = list(workouts or [])
        self.error = error
        self.calls = 0
        self.days = []

    def todays_workouts(self, preference, day):
        self.calls += 1
        self.days.append(day)
        if self.error is not None:
            raise self.error
        return list(self.workouts)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False})
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def session_scope(session_factory):
    """Same contract as app.db.session.get_session, bound to the test database."""

    @contextmanager
    def scope():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return scope


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def today():
    return today_for("UTC")


@pytest.fixture
def make_user(session_scope):
    """Create a user with a preference, a Spotify authentication and an active music request."""

    def _make_user(
        user_id="user-1",
        timezone="UTC",
        active_request=True,
        spotify=True,
        calendar_provider="trainerroad",
        calendar_url="https://example.com/calendar.ics",
    ):
        with session_scope() as session:
            session.add(User(id=user_id, email=f"{user_id}@example.com"))
            session.flush()
            session.add(
                Preference(
                    user_id=user_id,
                    calendar_provider=calendar_provider,
                    calendar_url=calendar_url,
                    timezone=timezone,
                )
            )
            if spotify:
                session.add(
                    Authentication(
                        user_id=user_id,
                        provider="spotify",
                        uid=f"spotify-{user_id}",
                        token="access",
                        refresh_token="refresh",
                    )
                )
            session.add(MusicRequest(user_id=user_id, prompt="90s rock", active=active_request))
        return user_id

    return _make_user


@pytest.fixture
def make_playlist(session_scope, today):
    def _make_playlist(
        user_id,
        workout_name,
        status=PlaylistStatus.READY,
        locked=False,
        cover_prompt=None,
        day: date | None = None,
        spotify_playlist_id=None,
    ):
        with session_scope() as session:
            playlist = Playlist(
                user_id=user_id,
                workout_name=workout_name,
                workout_description=f"{workout_name} description",
                workout_duration=60,
                workout_date=day or today,
                status=status.value,
                locked=locked,
                cover_prompt=cover_prompt,
                spotify_playlist_id=spotify_playlist_id,
            )
            session.add(playlist)
        return playlist.id

    return _make_playlist


@pytest.fixture
def load_playlist(session_scope):
    def _load(playlist_id):
        with session_scope() as session:
            return session.get(Playlist, playlist_id)

    return _load


@pytest.fixture
def make_workouts():
    def _make_workouts(*names):
        return [Workout(name=name, description=f"{name} description", duration=45) for name in names]

    return _make_workouts


@pytest.fixture
def static_calendar():
    return StaticCalendar
