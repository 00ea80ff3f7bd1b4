"""Pending task bookkeeping reconstructed from queue-operation lines."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from ccpulse.date_utils import epoch_millis
from ccpulse.models import QueuedTask


def generated_task_id(session_id: str, timestamp: datetime) -> str:
    """Synthetic id for enqueues that carry none.

    Two id-less enqueues in one session within the same millisecond share an id.
    """
    return f"generated-{session_id}-{epoch_millis(timestamp)}"


class TaskQueue:
    """Ordered pending tasks per session, oldest first."""

    def __init__(self) -> None:
        self._pending_by_session: dict[str, list[QueuedTask]] = {}

    def enqueue(
        self,
        session_id: str,
        *,
        timestamp: datetime,
        task_id: Optional[str] = None,
        description: Optional[str] = None,
        task_type: Optional[str] = None,
        cwd: Optional[str] = None,
    ) -> QueuedTask:
        task = QueuedTask(
            taskId=task_id or generated_task_id(session_id, timestamp),
            description=description,
            taskType=task_type,
            timestamp=timestamp,
            cwd=cwd,
        )
        self._pending_by_session.setdefault(session_id, []).append(task)
        return task

    def remove(self, session_id: str, task_id: Optional[str] = None) -> Optional[QueuedTask]:
        """Remove a pending task and return it.

        With ``task_id`` the first matching entry is removed; without one the
        oldest pending entry is assumed to be the one that finished.
        """
        queued = self._pending_by_session.get(session_id)
        if not queued:
            return None
        index = 0 if task_id is None else next(
            (i for i, task in enumerate(queued) if task.taskId == task_id), None
        )
        if index is None:
            return None
        task = queued.pop(index)
        if not queued:
            del self._pending_by_session[session_id]
        return task

    def pending(self, session_id: str) -> list[QueuedTask]:
        return list(self._pending_by_session.get(session_id, []))

    @property
    def tracked_sessions(self) -> list[str]:
        return sorted(self._pending_by_session)

    def all_pending(self) -> dict[str, list[QueuedTask]]:
        return {session_id: list(tasks) for session_id, tasks in self._pending_by_session.items()}

    def __len__(self) -> int:
        return sum(len(tasks) for tasks in self._pending_by_session.values())
