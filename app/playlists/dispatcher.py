"""Fire-and-forget dispatch of generation tasks to the worker queue.

Callers must have committed the lifecycle transition (processing or
generating_cover) before calling dispatch. The committed state is what stops
a concurrent caller from dispatching the same playlist again.

Delivery is at-least-once at the broker level, so workers have to tolerate
redelivery; lifecycle.complete_generation / complete_cover ignore results for
playlists that are no longer in the matching busy state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from loguru import logger

from app.celery_app import celery_app


class GenerationTaskKind(StrEnum):
    GENERATE_PLAYLIST = "playlists.generate_playlist"
    GENERATE_COVER = "playlists.generate_cover"


@dataclass(frozen=True)
class GenerationTask:
    kind: GenerationTaskKind
    user_id: str
    playlist_id: str


class GenerationDispatcher(Protocol):
    def dispatch(self, task: GenerationTask) -> None: ...


class CeleryGenerationDispatcher:
    """Sends generation tasks by name; the workers live in a separate service."""

    def dispatch(self, task: GenerationTask) -> None:
        result = celery_app.send_task(task.kind.value, args=[task.user_id, task.playlist_id])
        logger.info(
            f"[DISPATCH] {task.kind.value} enqueued: task_id={result.id} user_id={task.user_id} playlist_id={task.playlist_id}"
        )


def generate_playlist(user_id: str, playlist_id: str) -> GenerationTask:
    return GenerationTask(GenerationTaskKind.GENERATE_PLAYLIST, user_id, playlist_id)


def generate_cover(user_id: str, playlist_id: str) -> GenerationTask:
    return GenerationTask(GenerationTaskKind.GENERATE_COVER, user_id, playlist_id)
