"""Fixed-interval poll scheduler with optional file-change wakeups.

Runs ``ActivityFeed.refresh`` on the event loop every interval. When a
watch root is given, `watchfiles` changes to ``.jsonl`` files wake the loop
early. Refreshes are synchronous, so cycles never overlap.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from watchfiles import Change, awatch

from ccpulse.services.activity_feed import ActivityFeed

logger = logging.getLogger("ccpulse.poll")


def _session_log_filter(change: Change, path: str) -> bool:
    return path.endswith(".jsonl")


class PollLoop:
    def __init__(self) -> None:
        self._task: Optional[asyncio.Task] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._wake: Optional[asyncio.Event] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._running = False
        self.cycles = 0

    async def start(
        self,
        feed: ActivityFeed,
        interval_seconds: float,
        watch_root: Optional[Path] = None,
    ) -> None:
        """Start polling in a background task."""
        if self._running:
            logger.warning("Poll loop already running")
            return

        self._running = True
        self._wake = asyncio.Event()
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._poll_loop(feed, max(0.05, float(interval_seconds))))
        if watch_root is not None and watch_root.is_dir():
            self._watch_task = asyncio.create_task(self._watch_loop(watch_root))
        logger.info(
            "Poll loop started (interval=%.2fs watch=%s)",
            interval_seconds,
            str(watch_root) if self._watch_task else "off",
        )

    async def stop(self) -> None:
        """Stop polling and watching."""
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        for task in (self._watch_task, self._task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._watch_task = None
        logger.info("Poll loop stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    def trigger(self) -> None:
        """Wake the loop for an immediate cycle."""
        if self._wake is not None:
            self._wake.set()

    async def _poll_loop(self, feed: ActivityFeed, interval: float) -> None:
        try:
            while self._running:
                self._wake.clear()
                try:
                    feed.refresh()
                    self.cycles += 1
                except Exception:
                    logger.exception("Poll cycle failed")
                try:
                    await asyncio.wait_for(self._wake.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            logger.debug("Poll loop task cancelled")
            raise

    async def _watch_loop(self, root: Path) -> None:
        try:
            async for changes in awatch(root, watch_filter=_session_log_filter, stop_event=self._stop_event):
                if not self._running:
                    break
                if changes:
                    logger.debug("Detected %d session log change(s)", len(changes))
                    self.trigger()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Session log watcher error: {e}")


poll_loop = PollLoop()
