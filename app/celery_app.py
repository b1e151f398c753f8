from celery import Celery
from celery.signals import setup_logging

from app.config.settings import settings
from app.core.logger import setup_logger

celery_app = Celery(
    "tempo",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.playlists.tasks"],
)

celery_app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_serializer="json",
    accept_content=["json"],
    task_routes={
        "playlists.reconcile_user": {"queue": "high"},
        "playlists.generate_playlist": {"queue": "generation"},
        "playlists.generate_cover": {"queue": "generation"},
    },
)


@setup_logging.connect
def configure_worker_logging(**_kwargs) -> None:
    """Keep Celery from installing its own handlers; workers log through loguru like the API."""
    setup_logger(level=settings.log_level, log_file=settings.log_file, json_logs=settings.log_format == "json")
