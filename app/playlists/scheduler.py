from datetime import datetime, timezone

from celery.app.task import Task
from loguru import logger
from sqlalchemy import select

from app.calendar.helpers import resolve_timezone
from app.config.settings import settings
from app.db.models import Preference
from app.db.session import get_session
from app.playlists.repository import users_with_active_music_request
from app.playlists.tasks import reconcile_user_task as _reconcile_user_task

# Properly typed reference to the Celery task
reconcile_user_task: Task = _reconcile_user_task


def users_due(user_timezones: dict[str, str | None], now: datetime, local_hour: int) -> list[str]:
    """Users whose local time is within local_hour at now."""
    return [
        user_id
        for user_id, timezone_name in user_timezones.items()
        if now.astimezone(resolve_timezone(timezone_name)).hour == local_hour
    ]


def reconciliation_tick(now: datetime | None = None, force: bool = False) -> list[str]:
    """Enqueue one reconciliation per due user.

    Runs at the top of every hour. A user is due when it is
    RECONCILE_LOCAL_HOUR in their timezone, so each active user is
    reconciled once a day. force=True enqueues every active user.
    Returns the enqueued user ids.
    """
    now = now or datetime.now(timezone.utc)
    logger.info(f"[SCHEDULER] Reconciliation tick at {now.isoformat()}")

    with get_session() as session:
        user_ids = users_with_active_music_request(session)
        if not user_ids:
            logger.info("[SCHEDULER] No users with an active music request")
            return []
        user_timezones: dict[str, str | None] = {user_id: None for user_id in user_ids}
        for user_id, timezone_name in session.execute(
            select(Preference.user_id, Preference.timezone).where(Preference.user_id.in_(user_ids))
        ):
            user_timezones[user_id] = timezone_name

    due = list(user_timezones) if force else users_due(user_timezones, now, settings.reconcile_local_hour)

    enqueued: list[str] = []
    for user_id in due:
        try:
            result = reconcile_user_task.delay(user_id)
        except Exception as e:
            logger.error(f"[SCHEDULER] Failed to enqueue reconciliation for user_id={user_id}: {e}")
            continue
        enqueued.append(user_id)
        logger.debug(f"[SCHEDULER] Reconcile task enqueued: task_id={result.id} for user_id={user_id}")

    logger.info(f"[SCHEDULER] Enqueued reconciliation for {len(enqueued)} of {len(user_timezones)} active user(s)")
    return enqueued
