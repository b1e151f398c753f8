"""Workout sources backed by training-calendar iCal feeds.

Each provider publishes a private .ics URL. A source fetches the feed, keeps
the events that fall on the requested day in the user's timezone, and maps
them to Workout values. Providers differ only in how the planned duration is
encoded, so they share IcsWorkoutSource and override _duration_minutes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

import httpx
from icalendar import Calendar, Event
from loguru import logger

from app.calendar.helpers import resolve_timezone
from app.config.settings import settings
from app.db.models import CalendarProvider

PLANNED_TIME_RE = re.compile(r"Planned Time:\s*(\d+):(\d{2})(?::(\d{2}))?", re.IGNORECASE)
DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d{2})(?::(\d{2}))?", re.IGNORECASE)


@dataclass(frozen=True)
class Workout:
    """A workout scheduled for the day it was fetched for. Never persisted."""

    name: str
    description: str | None = None
    duration: int | None = None  # minutes


class WorkoutSource(Protocol):
    def workouts_for(self, day: date, timezone_name: str | None) -> list[Workout]: ...


def _minutes_from_match(match: re.Match[str] | None) -> int | None:
    if match is None:
        return None
    hours, minutes, seconds = match.groups()
    total_seconds = int(hours) * 3600 + int(minutes) * 60 + int(seconds or 0)
    return round(total_seconds / 60)


def _event_day(value: date | datetime, tz: ZoneInfo) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(tz).date()
    return value


def _span_minutes(event: Event) -> int | None:
    """Minutes between DTSTART and DTEND (or DURATION) for timed events."""
    start = event.decoded("DTSTART")
    if not isinstance(start, datetime):
        return None
    if "DTEND" in event:
        end = event.decoded("DTEND")
        if isinstance(end, datetime):
            return round((end - start) / timedelta(minutes=1))
    if "DURATION" in event:
        return round(event.decoded("DURATION") / timedelta(minutes=1))
    return None


class IcsWorkoutSource:
    """Fetches and filters an iCal feed. Subclasses decide how durations are read."""

    provider: CalendarProvider

    def __init__(self, calendar_url: str, client: httpx.Client | None = None) -> None:
        self._calendar_url = calendar_url
        self._client = client

    def _fetch(self) -> bytes:
        if self._client is not None:
            resp = self._client.get(self._calendar_url, timeout=settings.calendar_fetch_timeout_seconds)
        else:
            resp = httpx.get(self._calendar_url, timeout=settings.calendar_fetch_timeout_seconds, follow_redirects=True)
        resp.raise_for_status()
        return resp.content

    def _duration_minutes(self, event: Event, description: str | None) -> int | None:
        return _span_minutes(event)

    def workouts_for(self, day: date, timezone_name: str | None) -> list[Workout]:
        tz = resolve_timezone(timezone_name)
        calendar = Calendar.from_ical(self._fetch())

        workouts: list[Workout] = []
        for event in calendar.walk("VEVENT"):
            if "DTSTART" not in event:
                continue
            if _event_day(event.decoded("DTSTART"), tz) != day:
                continue
            name = str(event.get("SUMMARY", "")).strip()
            if not name:
                continue
            description = str(event.get("DESCRIPTION", "")).strip() or None
            workouts.append(
                Workout(
                    name=name,
                    description=description,
                    duration=self._duration_minutes(event, description),
                )
            )

        logger.info(f"[CALENDAR] {self.provider.value}: {len(workouts)} workout(s) on {day}")
        return workouts


class TrainerRoadSource(IcsWorkoutSource):
    """TrainerRoad calendar feed. Workouts are timed events; all-day entries carry "Duration: H:MM"."""

    provider = CalendarProvider.TRAINERROAD

    def _duration_minutes(self, event: Event, description: str | None) -> int | None:
        span = _span_minutes(event)
        if span is not None:
            return span
        return _minutes_from_match(DURATION_RE.search(description or ""))


class TrainingPeaksSource(IcsWorkoutSource):
    """TrainingPeaks calendar feed. Workouts are all-day events with "Planned Time: H:MM:SS"."""

    provider = CalendarProvider.TRAININGPEAKS

    def _duration_minutes(self, event: Event, description: str | None) -> int | None:
        planned = _minutes_from_match(PLANNED_TIME_RE.search(description or ""))
        if planned is not None:
            return planned
        return _span_minutes(event)


WORKOUT_SOURCES: dict[CalendarProvider, type[IcsWorkoutSource]] = {
    CalendarProvider.TRAINERROAD: TrainerRoadSource,
    CalendarProvider.TRAININGPEAKS: TrainingPeaksSource,
}
