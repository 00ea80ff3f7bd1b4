"""ccpulse FastAPI service: main application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ccpulse import config
from ccpulse.observability import initialize as initialize_observability, shutdown as shutdown_observability
from ccpulse.routers.activity import activity_router
from ccpulse.services.activity_feed import ActivityFeed
from ccpulse.services.poll_loop import poll_loop
from ccpulse.services.queue_monitor import ClaudeQueueMonitor
from ccpulse.services.toasts import ToastStateMachine

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("ccpulse")


def build_activity_feed() -> ActivityFeed:
    """Wire the pipeline from configuration values."""
    max_age = config.INITIAL_PENDING_MAX_AGE_SECONDS
    monitor = ClaudeQueueMonitor(
        config.PROJECTS_DIR,
        emit_historical_events_on_first_poll=config.EMIT_HISTORICAL_EVENTS_ON_FIRST_POLL,
        initial_pending_max_age=timedelta(seconds=max_age) if max_age > 0 else None,
    )
    toasts = ToastStateMachine(
        auto_hide_after=timedelta(seconds=config.TOAST_AUTO_HIDE_SECONDS),
        max_visible=config.TOAST_MAX_VISIBLE,
    )
    return ActivityFeed(
        monitor,
        toasts,
        toasts_enabled=config.AGENT_TOASTS_ENABLED,
        session_window=timedelta(seconds=config.SESSION_ACTIVITY_WINDOW_SECONDS),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("ccpulse starting up (projects=%s)", config.PROJECTS_DIR)
    initialize_observability(app)

    feed = build_activity_feed()
    app.state.activity_feed = feed
    app.state.history_file = config.HISTORY_FILE

    await poll_loop.start(
        feed,
        config.POLL_INTERVAL_SECONDS,
        watch_root=config.PROJECTS_DIR if config.WATCHER_ENABLED else None,
    )

    yield

    logger.info("ccpulse shutting down")
    await poll_loop.stop()
    shutdown_observability(app)


app = FastAPI(
    title="ccpulse API",
    description="Live Claude Code task activity for status-bar dashboards",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(activity_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "poller": "running" if poll_loop.is_running else "stopped",
        "cycles": poll_loop.cycles,
    }


def run() -> None:
    import uvicorn

    uvicorn.run("ccpulse.main:app", host=config.HOST, port=config.PORT)
