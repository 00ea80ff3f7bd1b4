"""API router for live agent activity."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from ccpulse import config
from ccpulse.models import ActivityEntry, ActivitySnapshot, ToastsEnabledRequest
from ccpulse.parsers.history import load_recent
from ccpulse.services.activity_feed import ActivityFeed

logger = logging.getLogger("ccpulse.activity")

activity_router = APIRouter(prefix="/api/activity", tags=["activity"])


def _get_feed(request: Request) -> ActivityFeed:
    feed = getattr(request.app.state, "activity_feed", None)
    if not feed:
        raise HTTPException(status_code=503, detail="Activity feed not initialized")
    return feed


@activity_router.get("", response_model=ActivitySnapshot)
def get_activity(request: Request):
    """Visible toasts, active workspace and recently active sessions."""
    return _get_feed(request).snapshot()


@activity_router.post("/poll", response_model=ActivitySnapshot)
def poll_now(request: Request):
    """Run one poll cycle immediately."""
    return _get_feed(request).refresh()


@activity_router.post("/toasts/{toast_id}/dismiss", response_model=ActivitySnapshot)
def dismiss_toast(toast_id: str, request: Request):
    feed = _get_feed(request)
    if not feed.dismiss(toast_id):
        raise HTTPException(status_code=404, detail=f"Toast not found: {toast_id}")
    return feed.snapshot()


@activity_router.put("/toasts/enabled", response_model=ActivitySnapshot)
def set_toasts_enabled(payload: ToastsEnabledRequest, request: Request):
    feed = _get_feed(request)
    feed.set_enabled(payload.enabled)
    return feed.snapshot()


@activity_router.get("/history", response_model=list[ActivityEntry])
def get_history(
    request: Request,
    limit: int = Query(20, ge=1, le=500),
    project: Optional[str] = Query(None),
):
    """Most recent prompts from the agent's history file, newest first."""
    history_file = getattr(request.app.state, "history_file", None) or config.HISTORY_FILE
    return load_recent(history_file, limit, project)
