from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from enum import StrEnum

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all database models."""


class CalendarProvider(StrEnum):
    """Training calendars a user can point their preference at."""

    TRAINERROAD = "trainerroad"
    TRAININGPEAKS = "trainingpeaks"


class PlaylistStatus(StrEnum):
    """Generation state of a persisted playlist.

    A playlist that has not been created yet has no row, so there is no
    "new" member here.
    """

    PROCESSING = "processing"
    READY = "ready"
    GENERATING_COVER = "generating_cover"


class User(Base):
    """Account owner.

    Deleting a user removes every row it owns (preference, music requests,
    authentications, playlists and their tracks).
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid, index=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True, unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    preference: Mapped[Preference | None] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True, uselist=False
    )
    music_requests: Mapped[list[MusicRequest]] = relationship(cascade="all, delete-orphan", passive_deletes=True)
    authentications: Mapped[list[Authentication]] = relationship(cascade="all, delete-orphan", passive_deletes=True)
    playlists: Mapped[list[Playlist]] = relationship(back_populates="user", cascade="all, delete-orphan", passive_deletes=True)


class Preference(Base):
    """Calendar source and timezone for a user.

    The timezone decides what "today" means for reconciliation and for the
    calendar day stored on each playlist.
    """

    __tablename__ = "preferences"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    calendar_provider: Mapped[str | None] = mapped_column(String, nullable=True)  # CalendarProvider value
    calendar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    timezone: Mapped[str] = mapped_column(String, nullable=False, default="UTC")

    user: Mapped[User] = relationship(back_populates="preference")


class MusicRequest(Base):
    """What the user wants to listen to. At most one is active per user."""

    __tablename__ = "music_requests"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    prompt: Mapped[str] = mapped_column(Text, nullable=False, default="")
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Authentication(Base):
    """Per-provider OAuth credential (provider id, external account id, tokens)."""

    __tablename__ = "authentications"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider: Mapped[str] = mapped_column(String, nullable=False)
    uid: Mapped[str] = mapped_column(String, nullable=False)
    token: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (UniqueConstraint("provider", "uid", name="uq_authentication_provider_uid"),)


class Playlist(Base):
    """Generated playlist for one workout occurrence.

    Constraints:
    - Unique (user_id, workout_name, workout_date): one playlist per workout per
      calendar day. workout_date is the creation day in the user's timezone.
    - status is the mutual-exclusion signal for generation tasks. It is only
      moved out of processing/generating_cover by worker completion callbacks.
    - locked is independent of status; automated reconciliation never touches
      a locked playlist.
    """

    __tablename__ = "playlists"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid, index=True)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    workout_name: Mapped[str] = mapped_column(String, nullable=False)
    workout_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    workout_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # minutes
    workout_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default=PlaylistStatus.PROCESSING.value)
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cover_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    spotify_playlist_id: Mapped[str | None] = mapped_column(String, nullable=True)
    following: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    user: Mapped[User] = relationship(back_populates="playlists")
    tracks: Mapped[list[Track]] = relationship(
        back_populates="playlist",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Track.position",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "workout_name", "workout_date", name="uq_playlist_user_workout_day"),
        Index("idx_playlists_user_created_at", "user_id", "created_at"),
    )


class Track(Base):
    """A track on a generated playlist."""

    __tablename__ = "tracks"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_uuid)
    playlist_id: Mapped[str] = mapped_column(String, ForeignKey("playlists.id", ondelete="CASCADE"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    spotify_uri: Mapped[str | None] = mapped_column(String, nullable=True)
    artist: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    playlist: Mapped[Playlist] = relationship(back_populates="tracks")
