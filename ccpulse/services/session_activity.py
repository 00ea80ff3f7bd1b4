"""Latest tool activity per session, used as a "currently working" signal."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from ccpulse.models import SessionActivity


class SessionActivityTracker:
    def __init__(self) -> None:
        self._by_session: dict[str, SessionActivity] = {}

    def record(self, session_id: str, tool_label: str, timestamp: datetime, cwd: Optional[str] = None) -> None:
        current = self._by_session.get(session_id)
        if current is not None and timestamp < current.lastSeenAt:
            return
        self._by_session[session_id] = SessionActivity(
            sessionId=session_id,
            cwd=cwd if cwd is not None else (current.cwd if current else None),
            toolLabel=tool_label,
            lastSeenAt=timestamp,
        )

    def recent(self, now: datetime, window: timedelta) -> list[SessionActivity]:
        cutoff = now - window
        active = [item for item in self._by_session.values() if item.lastSeenAt >= cutoff]
        return sorted(active, key=lambda item: item.lastSeenAt, reverse=True)
