from __future__ import annotations

from datetime import date

import httpx
from loguru import logger

from app.calendar.sources import WORKOUT_SOURCES, IcsWorkoutSource, Workout
from app.db.models import CalendarProvider, Preference


class CalendarGateway:
    """Today's workouts for a user, from whichever calendar their preference selects."""

    def __init__(
        self,
        sources: dict[CalendarProvider, type[IcsWorkoutSource]] | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._sources = sources if sources is not None else WORKOUT_SOURCES
        self._client = client

    def todays_workouts(self, preference: Preference | None, day: date) -> list[Workout]:
        """Workouts on day, read in the preference's timezone.

        day is the caller's "today" and must be the same day it stores on
        playlists created from the result. Returns [] when no calendar is configured. Feed errors propagate.
        """
        if preference is None or not preference.calendar_provider or not preference.calendar_url:
            return []

        try:
            provider = CalendarProvider(preference.calendar_provider)
        except ValueError:
            logger.warning(f"[CALENDAR] Unknown calendar provider {preference.calendar_provider!r} for user_id={preference.user_id}")
            return []

        source_cls = self._sources.get(provider)
        if source_cls is None:
            return []

        source = source_cls(preference.calendar_url, client=self._client)
        return source.workouts_for(day, preference.timezone)
