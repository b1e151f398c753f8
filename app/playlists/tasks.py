import time

from loguru import logger

from app.celery_app import celery_app
from app.db.session import get_session
from app.playlists.lifecycle import GeneratedTrack, complete_cover, complete_generation
from app.playlists.locks import reconcile_lease
from app.playlists.reconciliation import PlaylistReconciler


@celery_app.task(name="playlists.reconcile_user")
def reconcile_user_task(user_id: str) -> None:
    """Reconcile today's workouts for one user.

    Not auto-retried: a failed workout is logged by the reconciler and picked
    up again on the next run. Overlapping runs for the same user are skipped
    while another run holds the user's Redis lease.
    """
    task_start = time.time()
    logger.info(f"[CELERY] Reconcile task STARTED for user_id={user_id}")

    with reconcile_lease.hold(user_id) as acquired:
        if not acquired:
            logger.warning(f"[CELERY] Could not acquire lock for reconciliation: user_id={user_id}")
            return

        result = PlaylistReconciler().reconcile(user_id)
        elapsed = time.time() - task_start
        logger.info(
            f"[CELERY] Reconcile task finished for user_id={user_id} in {elapsed:.2f}s "
            f"(dispatched={result.dispatched}, skipped_reason={result.skipped_reason})"
        )


@celery_app.task(
    name="playlists.generation_completed",
    autoretry_for=(Exception,),
    retry_backoff=30,
    retry_kwargs={"max_retries": 5},
)
def generation_completed_task(playlist_id: str, tracks: list[dict], cover_prompt: str | None = None) -> bool:
    """Callback sent by the playlist generation worker when tracks are ready."""
    generated = [
        GeneratedTrack(artist=t["artist"], title=t["title"], spotify_uri=t.get("spotify_uri"))
        for t in tracks
    ]
    with get_session() as session:
        return complete_generation(session, playlist_id, generated, cover_prompt)


@celery_app.task(
    name="playlists.cover_completed",
    autoretry_for=(Exception,),
    retry_backoff=30,
    retry_kwargs={"max_retries": 5},
)
def cover_completed_task(playlist_id: str) -> bool:
    """Callback sent by the cover art worker."""
    with get_session() as session:
        return complete_cover(session, playlist_id)
