from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger

from app.api.dependencies.auth import get_current_user_id
from app.api.schemas.schemas import PlaylistPageResponse, PlaylistResponse, RegenerateTodayResponse
from app.playlists.errors import PlaylistNotFoundError, PlaylistUnavailableError
from app.playlists.service import PlaylistService
from app.playlists.tasks import reconcile_user_task

router = APIRouter(prefix="/playlists", tags=["playlists"])


def get_playlist_service() -> PlaylistService:
    return PlaylistService()


def _run(action, user_id: str, playlist_id: str) -> PlaylistResponse:
    try:
        playlist = action(user_id, playlist_id)
    except PlaylistNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Playlist not found") from e
    except PlaylistUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message) from e
    except httpx.HTTPError as e:
        logger.error(f"[SPOTIFY] Upstream call failed for playlist_id={playlist_id}: {type(e).__name__}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Spotify request failed") from e
    return PlaylistResponse.from_playlist(playlist)


@router.get("", response_model=PlaylistPageResponse)
def list_playlists(
    page: int = Query(default=1, ge=1),
    user_id: str = Depends(get_current_user_id),
    service: PlaylistService = Depends(get_playlist_service),
):
    playlists = service.list_playlists(user_id, page=page)
    return PlaylistPageResponse(page=page, playlists=[PlaylistResponse.from_playlist(p) for p in playlists])


@router.post("/today/reconcile", status_code=status.HTTP_202_ACCEPTED)
def reconcile_today(user_id: str = Depends(get_current_user_id)):
    """Enqueue a reconciliation of today's workouts for the current user."""
    result = reconcile_user_task.delay(user_id)
    return {"status": "enqueued", "task_id": result.id}


@router.post("/today/regenerate", response_model=RegenerateTodayResponse)
def regenerate_today(
    user_id: str = Depends(get_current_user_id),
    service: PlaylistService = Depends(get_playlist_service),
):
    return RegenerateTodayResponse(playlist_ids=service.regenerate_todays_playlists(user_id))


@router.post("/{playlist_id}/lock", response_model=PlaylistResponse)
def toggle_lock(
    playlist_id: str,
    user_id: str = Depends(get_current_user_id),
    service: PlaylistService = Depends(get_playlist_service),
):
    return _run(service.toggle_lock, user_id, playlist_id)


@router.post("/{playlist_id}/regenerate", response_model=PlaylistResponse, status_code=status.HTTP_202_ACCEPTED)
def regenerate(
    playlist_id: str,
    user_id: str = Depends(get_current_user_id),
    service: PlaylistService = Depends(get_playlist_service),
):
    logger.info(f"[PLAYLISTS] Regenerate requested: user_id={user_id} playlist_id={playlist_id}")
    return _run(service.regenerate, user_id, playlist_id)


@router.post("/{playlist_id}/regenerate-cover", response_model=PlaylistResponse, status_code=status.HTTP_202_ACCEPTED)
def regenerate_cover(
    playlist_id: str,
    user_id: str = Depends(get_current_user_id),
    service: PlaylistService = Depends(get_playlist_service),
):
    logger.info(f"[PLAYLISTS] Cover regenerate requested: user_id={user_id} playlist_id={playlist_id}")
    return _run(service.regenerate_cover, user_id, playlist_id)


@router.post("/{playlist_id}/follow", response_model=PlaylistResponse)
def follow(
    playlist_id: str,
    user_id: str = Depends(get_current_user_id),
    service: PlaylistService = Depends(get_playlist_service),
):
    return _run(service.follow, user_id, playlist_id)


@router.post("/{playlist_id}/unfollow", response_model=PlaylistResponse)
def unfollow(
    playlist_id: str,
    user_id: str = Depends(get_current_user_id),
    service: PlaylistService = Depends(get_playlist_service),
):
    return _run(service.unfollow, user_id, playlist_id)


@router.post("/{playlist_id}/toggle-follow", response_model=PlaylistResponse)
def toggle_follow(
    playlist_id: str,
    user_id: str = Depends(get_current_user_id),
    service: PlaylistService = Depends(get_playlist_service),
):
    return _run(service.toggle_follow, user_id, playlist_id)
