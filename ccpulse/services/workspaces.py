"""Per-session working directory tracking."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from ccpulse.models import WorkspaceObservation


class WorkspaceTracker:
    def __init__(self) -> None:
        self._latest_by_session: dict[str, WorkspaceObservation] = {}

    def observe(self, session_id: str, path: str, timestamp: datetime) -> bool:
        """Record ``path`` for the session unless a newer observation exists.

        Lines are replayed in file order, so equal timestamps overwrite.
        Returns True when the tracked path was updated.
        """
        current = self._latest_by_session.get(session_id)
        if current is not None and timestamp < current.timestamp:
            return False
        self._latest_by_session[session_id] = WorkspaceObservation(
            sessionId=session_id,
            path=path,
            timestamp=timestamp,
        )
        return True

    def workspace_for(self, session_id: str) -> Optional[str]:
        current = self._latest_by_session.get(session_id)
        return current.path if current else None

    def active_workspace(self) -> Optional[str]:
        """Path from the session with the most recent observation overall."""
        if not self._latest_by_session:
            return None
        latest = max(self._latest_by_session.values(), key=lambda obs: obs.timestamp)
        return latest.path

    def observations(self) -> list[WorkspaceObservation]:
        return sorted(self._latest_by_session.values(), key=lambda obs: obs.timestamp, reverse=True)
