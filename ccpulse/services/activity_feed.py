"""Glue between poll cycles and the toast state machine."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from ccpulse.date_utils import utc_now
from ccpulse.models import ActivitySnapshot, QueuePollResult
from ccpulse.services.queue_monitor import ClaudeQueueMonitor
from ccpulse.services.toasts import ToastStateMachine

logger = logging.getLogger("ccpulse.feed")


class ActivityFeed:
    """Runs a poll, feeds its events to the toasts, and serves snapshots."""

    def __init__(
        self,
        monitor: ClaudeQueueMonitor,
        toasts: ToastStateMachine,
        toasts_enabled: bool = True,
        session_window: timedelta = timedelta(minutes=2),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.monitor = monitor
        self.toasts = toasts
        self.session_window = session_window
        self._toasts_enabled = toasts_enabled
        self._clock = clock
        self._last_result: Optional[QueuePollResult] = None
        self._last_polled_at: Optional[datetime] = None

    @property
    def toasts_enabled(self) -> bool:
        return self._toasts_enabled

    def set_enabled(self, enabled: bool) -> None:
        if self._toasts_enabled and not enabled:
            self.toasts.reset()
        self._toasts_enabled = enabled
        logger.info("Agent toasts %s", "enabled" if enabled else "disabled")

    def refresh(self) -> ActivitySnapshot:
        """One full cycle: poll logs, apply events, expire finished toasts."""
        result = self.monitor.poll()
        now = self._clock()
        if self._toasts_enabled:
            self.toasts.apply_all(result.events)
            self.toasts.tick(now)
        self._last_result = result
        self._last_polled_at = now
        return self.snapshot()

    def dismiss(self, toast_id: str) -> bool:
        return self.toasts.dismiss(toast_id)

    def snapshot(self) -> ActivitySnapshot:
        now = self._clock()
        return ActivitySnapshot(
            toasts=self.toasts.visible() if self._toasts_enabled else [],
            activeWorkspacePath=self._last_result.activeWorkspacePath if self._last_result else None,
            sessions=self.monitor.sessions.recent(now, self.session_window),
            toastsEnabled=self._toasts_enabled,
            lastPolledAt=self._last_polled_at,
            pendingTaskCount=len(self.monitor.queue),
        )
