"""Running/done toast lifecycle driven by queue task events.

Each task key is either absent (no toast), ``_Running`` or ``_Done``; the
variant holds the id of the toast it owns. User dismissals of running toasts
are tracked separately so a later completion produces a fresh toast instead
of resurrecting the dismissed one.
"""
from __future__ import annotations

import itertools
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from ccpulse.models import QueueTaskEvent, ToastItem

logger = logging.getLogger("ccpulse.toasts")

DEFAULT_AUTO_HIDE_AFTER = timedelta(seconds=4)
DEFAULT_MAX_VISIBLE = 3
FALLBACK_TITLE = "Claude task"


@dataclass(frozen=True)
class _Running:
    toast_id: str


@dataclass(frozen=True)
class _Done:
    toast_id: str


_TaskState = Union[_Running, _Done]


def normalized_title(event: QueueTaskEvent) -> Optional[str]:
    text = (event.description or "").strip()
    if text:
        return text
    task_type = (event.taskType or "").strip()
    if task_type:
        return task_type
    return None


def _new_toast_id() -> str:
    return uuid.uuid4().hex


class ToastStateMachine:
    def __init__(
        self,
        auto_hide_after: timedelta = DEFAULT_AUTO_HIDE_AFTER,
        max_visible: int = DEFAULT_MAX_VISIBLE,
        id_factory: Callable[[], str] = _new_toast_id,
    ) -> None:
        self.auto_hide_after = auto_hide_after
        self.max_visible = max_visible
        self._id_factory = id_factory
        self._toasts: dict[str, ToastItem] = {}
        self._state_by_key: dict[str, _TaskState] = {}
        self._dismissed_keys: set[str] = set()
        self._created_seq: dict[str, int] = {}
        self._counter = itertools.count()

    # ── Transitions ────────────────────────────────────────────────

    def apply(self, event: QueueTaskEvent) -> Optional[ToastItem]:
        """Feed one lifecycle event. Returns the toast it touched, if any."""
        task_key = event.taskKey
        if task_key is None:
            return None
        if event.kind == "enqueue":
            return self._start(task_key, event)
        return self._finish(task_key, event)

    def apply_all(self, events: list[QueueTaskEvent]) -> None:
        for event in sorted(events, key=lambda e: e.timestamp):
            self.apply(event)

    def dismiss(self, toast_id: str) -> bool:
        toast = self._toasts.pop(toast_id, None)
        if toast is None:
            return False
        self._created_seq.pop(toast_id, None)
        if toast.status == "running":
            self._dismissed_keys.add(toast.taskKey)
        state = self._state_by_key.get(toast.taskKey)
        if state is not None and state.toast_id == toast_id:
            del self._state_by_key[toast.taskKey]
        logger.debug("Toast %s dismissed (%s)", toast_id, toast.status)
        return True

    def tick(self, now: datetime) -> list[str]:
        """Expire done toasts whose auto-hide delay has elapsed."""
        expired = [
            toast.id
            for toast in self._toasts.values()
            if toast.status == "done"
            and toast.finishedAt is not None
            and now - toast.finishedAt >= self.auto_hide_after
        ]
        for toast_id in expired:
            toast = self._toasts.pop(toast_id)
            self._created_seq.pop(toast_id, None)
            state = self._state_by_key.get(toast.taskKey)
            if isinstance(state, _Done) and state.toast_id == toast_id:
                del self._state_by_key[toast.taskKey]
        return expired

    def reset(self) -> None:
        self._toasts.clear()
        self._state_by_key.clear()
        self._dismissed_keys.clear()
        self._created_seq.clear()

    # ── Queries ────────────────────────────────────────────────────

    def visible(self, max_count: Optional[int] = None) -> list[ToastItem]:
        """Running toasts newest-started first, then done toasts newest-finished first."""
        limit = self.max_visible if max_count is None else max_count
        if limit <= 0:
            return []
        running = [t for t in self._toasts.values() if t.status == "running"]
        done = [t for t in self._toasts.values() if t.status == "done"]
        running.sort(key=lambda t: (t.startedAt, self._created_seq.get(t.id, 0)), reverse=True)
        done.sort(key=lambda t: (t.finishedAt or t.startedAt, self._created_seq.get(t.id, 0)), reverse=True)
        return (running + done)[:limit]

    def get(self, toast_id: str) -> Optional[ToastItem]:
        return self._toasts.get(toast_id)

    def is_dismissed(self, task_key: str) -> bool:
        return task_key in self._dismissed_keys

    def __len__(self) -> int:
        return len(self._toasts)

    # ── Internals ──────────────────────────────────────────────────

    def _store(self, toast: ToastItem) -> ToastItem:
        if toast.id not in self._created_seq:
            self._created_seq[toast.id] = next(self._counter)
        self._toasts[toast.id] = toast
        return toast

    def _start(self, task_key: str, event: QueueTaskEvent) -> Optional[ToastItem]:
        title = normalized_title(event)
        state = self._state_by_key.get(task_key)
        if isinstance(state, _Running):
            existing = self._toasts.get(state.toast_id)
            if existing is not None:
                self._dismissed_keys.discard(task_key)
                return self._store(existing.model_copy(update={"title": title or existing.title}))

        if title is None:
            logger.debug("Dropping enqueue for %s without a usable title", task_key)
            return None

        toast = self._store(
            ToastItem(
                id=self._id_factory(),
                taskKey=task_key,
                title=title,
                status="running",
                startedAt=event.timestamp,
            )
        )
        self._state_by_key[task_key] = _Running(toast.id)
        self._dismissed_keys.discard(task_key)
        return toast

    def _finish(self, task_key: str, event: QueueTaskEvent) -> Optional[ToastItem]:
        state = self._state_by_key.get(task_key)
        if isinstance(state, _Running) and task_key not in self._dismissed_keys:
            active = self._toasts.get(state.toast_id)
            if active is not None:
                done = self._store(
                    active.model_copy(update={"status": "done", "finishedAt": event.timestamp})
                )
                self._state_by_key[task_key] = _Done(done.id)
                return done

        self._dismissed_keys.discard(task_key)
        toast = self._store(
            ToastItem(
                id=self._id_factory(),
                taskKey=task_key,
                title=normalized_title(event) or FALLBACK_TITLE,
                status="done",
                startedAt=event.timestamp,
                finishedAt=event.timestamp,
            )
        )
        self._state_by_key[task_key] = _Done(toast.id)
        return toast
