"""Match today's workouts against existing playlists and dispatch generation.

For each workout of the day:
1. No playlist for (user, workout name, day) -> create it in processing, dispatch.
2. Playlist exists and is eligible for reprocessing -> move to processing, dispatch.
3. Otherwise -> leave it alone.

Uniqueness of (user, workout name, day) is enforced by the database. A
reconciliation that loses the insert race re-reads the winner and continues
with step 2. Step 2 is a conditional UPDATE, so overlapping reconciliations
(or a manual regenerate) cannot both dispatch for the same playlist. Every
state change is committed before its task is sent.

Preconditions that are not met (invalid Spotify token, no active music
request, no calendar) end the run quietly. A failure on one workout is logged
and does not stop the others.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum

from loguru import logger
from sqlalchemy.orm import Session

from app.calendar.gateway import CalendarGateway
from app.calendar.helpers import today_for
from app.calendar.sources import Workout
from app.db.session import get_session
from app.playlists import repository
from app.playlists.dispatcher import CeleryGenerationDispatcher, GenerationDispatcher, generate_playlist
from app.playlists.lifecycle import claim_for_processing, eligible_for_reprocessing
from app.playlists.token_gate import TokenValidityGate

SessionScope = Callable[[], AbstractContextManager[Session]]


class WorkoutOutcome(StrEnum):
    CREATED = "created"
    REPROCESSED = "reprocessed"
    SKIPPED = "skipped"
    FAILED = "failed"


class SkipReason(StrEnum):
    INVALID_TOKEN = "invalid_token"
    NO_MUSIC_REQUEST = "no_music_request"
    CALENDAR_ERROR = "calendar_error"


@dataclass
class ReconcileResult:
    user_id: str
    day: date | None = None
    skipped_reason: SkipReason | None = None
    outcomes: dict[str, WorkoutOutcome] = field(default_factory=dict)

    @property
    def dispatched(self) -> int:
        return sum(1 for o in self.outcomes.values() if o in (WorkoutOutcome.CREATED, WorkoutOutcome.REPROCESSED))


def _unique_by_name(workouts: list[Workout]) -> list[Workout]:
    """First workout of each name, in feed order."""
    seen: set[str] = set()
    unique: list[Workout] = []
    for workout in workouts:
        if workout.name in seen:
            logger.debug(f"[RECONCILE] Ignoring repeated workout {workout.name!r}")
            continue
        seen.add(workout.name)
        unique.append(workout)
    return unique


class PlaylistReconciler:
    def __init__(
        self,
        session_scope: SessionScope = get_session,
        calendar: CalendarGateway | None = None,
        token_gate: TokenValidityGate | None = None,
        dispatcher: GenerationDispatcher | None = None,
    ) -> None:
        self._session_scope = session_scope
        self._calendar = calendar or CalendarGateway()
        self._token_gate = token_gate or TokenValidityGate()
        self._dispatcher = dispatcher or CeleryGenerationDispatcher()

    def reconcile(self, user_id: str) -> ReconcileResult:
        result = ReconcileResult(user_id=user_id)

        with self._session_scope() as session:
            credential = repository.spotify_credential_for(session, user_id)
            music_request = repository.active_music_request(session, user_id)
            preference = repository.preference_for(session, user_id)

        if not self._token_gate.is_valid(credential):
            logger.info(f"[RECONCILE] Skipping user_id={user_id}: no valid Spotify token")
            result.skipped_reason = SkipReason.INVALID_TOKEN
            return result

        if music_request is None:
            logger.info(f"[RECONCILE] Skipping user_id={user_id}: no active music request")
            result.skipped_reason = SkipReason.NO_MUSIC_REQUEST
            return result

        result.day = today_for(preference.timezone if preference else None)
        try:
            workouts = self._calendar.todays_workouts(preference, result.day)
        except Exception as e:
            logger.error(f"[RECONCILE] Calendar fetch failed for user_id={user_id}: {type(e).__name__}: {e}")
            result.skipped_reason = SkipReason.CALENDAR_ERROR
            return result

        if not workouts:
            logger.debug(f"[RECONCILE] No workouts today for user_id={user_id}")
            return result

        for workout in _unique_by_name(workouts):
            try:
                outcome = self._reconcile_workout(user_id, workout, result.day)
            except Exception:
                logger.exception(f"[RECONCILE] Failed to reconcile workout {workout.name!r} for user_id={user_id}")
                outcome = WorkoutOutcome.FAILED
            result.outcomes[workout.name] = outcome

        logger.info(
            f"[RECONCILE] user_id={user_id} day={result.day} workouts={len(workouts)} dispatched={result.dispatched}"
        )
        return result

    def _reconcile_workout(self, user_id: str, workout: Workout, day: date) -> WorkoutOutcome:
        with self._session_scope() as session:
            playlist = repository.find_for_day(session, user_id, workout.name, day)

            if playlist is None:
                playlist, created = repository.create_or_get(session, user_id, workout, day)
                if created:
                    session.commit()
                    self._dispatcher.dispatch(generate_playlist(user_id, playlist.id))
                    logger.info(f"[RECONCILE] Created playlist {playlist.id} for {workout.name!r} user_id={user_id}")
                    return WorkoutOutcome.CREATED

            if not eligible_for_reprocessing(playlist):
                logger.debug(
                    f"[RECONCILE] Skipping playlist {playlist.id}: status={playlist.status} locked={playlist.locked}"
                )
                return WorkoutOutcome.SKIPPED

            if not claim_for_processing(session, playlist):
                logger.debug(f"[RECONCILE] Playlist {playlist.id} claimed by another caller")
                return WorkoutOutcome.SKIPPED

            session.commit()
            self._dispatcher.dispatch(generate_playlist(user_id, playlist.id))
            logger.info(f"[RECONCILE] Reprocessing playlist {playlist.id} for {workout.name!r} user_id={user_id}")
            return WorkoutOutcome.REPROCESSED
