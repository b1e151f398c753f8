import asyncio
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import FastAPI, Request
from loguru import logger

from app.api.playlists import router as playlists_router
from app.config.settings import settings
from app.core.logger import setup_logger
from app.db.session import init_db
from app.playlists.scheduler import reconciliation_tick

setup_logger(level=settings.log_level, log_file=settings.log_file, json_logs=settings.log_format == "json")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Create tables and start the reconciliation scheduler.

    FastAPI requires async for the lifespan context manager even though
    nothing here awaits real work.
    """
    logger.info("Ensuring database tables exist")
    init_db()

    scheduler = BackgroundScheduler(timezone="UTC")
    # Hourly; each user is only due at RECONCILE_LOCAL_HOUR in their own timezone
    scheduler.add_job(
        reconciliation_tick,
        trigger=CronTrigger(minute=0),
        id="playlist_reconciliation",
        name="Playlist Reconciliation Scheduler",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(f"[SCHEDULER] Started playlist reconciliation scheduler (local hour {settings.reconcile_local_hour})")

    await asyncio.sleep(0)
    yield

    scheduler.shutdown()
    logger.info("[SCHEDULER] Stopped playlist reconciliation scheduler")


app = FastAPI(title="Tempo", lifespan=lifespan)

app.include_router(playlists_router)

logger.info("FastAPI application initialized")


@app.get("/health")
def health():
    return {"status": "ok"}


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests."""
    logger.debug(f"Request: {request.method} {request.url.path}")
    response = await call_next(request)
    logger.debug(f"Response: {response.status_code} for {request.method} {request.url.path}")
    return response
