"""Poll-cycle owner: tails session logs and emits queue lifecycle events.

One ``ClaudeQueueMonitor`` holds every piece of cross-poll state (tail
cursors, per-session workspaces, pending task queues, tool activity). Each
``poll()`` runs to completion and returns the events produced by the bytes
appended since the previous poll.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

from ccpulse import observability
from ccpulse.date_utils import utc_now
from ccpulse.models import QueuePollResult, QueueTaskEvent
from ccpulse.parsers.events import EventExtractor, QueueOperation
from ccpulse.parsers.tailer import LineBufferedTailer
from ccpulse.services.session_activity import SessionActivityTracker
from ccpulse.services.task_queue import TaskQueue
from ccpulse.services.workspaces import WorkspaceTracker

logger = logging.getLogger("ccpulse.monitor")


def discover_session_logs(projects_root: Path) -> list[Path]:
    """All ``*.jsonl`` files under the root, skipping hidden entries, sorted by path."""
    if not projects_root.is_dir():
        return []
    files: list[Path] = []
    for path in projects_root.rglob("*.jsonl"):
        relative = path.relative_to(projects_root)
        if any(part.startswith(".") for part in relative.parts):
            continue
        if not path.is_file():
            continue
        files.append(path)
    return sorted(files, key=lambda p: str(p))


class ClaudeQueueMonitor:
    def __init__(
        self,
        projects_root: Path,
        emit_historical_events_on_first_poll: bool = False,
        initial_pending_max_age: Optional[timedelta] = timedelta(minutes=30),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.projects_root = projects_root
        self.emit_historical_events_on_first_poll = emit_historical_events_on_first_poll
        self.initial_pending_max_age = initial_pending_max_age
        self._clock = clock
        self._primed = False
        self.tailer = LineBufferedTailer()
        self.extractor = EventExtractor()
        self.workspaces = WorkspaceTracker()
        self.queue = TaskQueue()
        self.sessions = SessionActivityTracker()

    @property
    def is_primed(self) -> bool:
        return self._primed

    def poll(self) -> QueuePollResult:
        t0 = time.monotonic()
        should_emit = self._primed or self.emit_historical_events_on_first_poll
        emitted: list[QueueTaskEvent] = []
        line_count = 0

        with observability.start_span("ccpulse.poll", {"primed": self._primed}):
            files = discover_session_logs(self.projects_root)
            for path in files:
                lines = self.tailer.read_new_lines(path)
                line_count += len(lines)
                for line in lines:
                    self._process_line(line, should_emit, emitted)

            active_workspace = self.workspaces.active_workspace()
            if not self._primed and not self.emit_historical_events_on_first_poll:
                emitted = self._initial_pending_events(active_workspace)
            self._primed = True

        emitted.sort(key=lambda event: event.timestamp)
        duration_ms = (time.monotonic() - t0) * 1000
        observability.record_poll(len(files), line_count, duration_ms)
        for event in emitted:
            observability.record_queue_event(event.kind)
        if emitted:
            logger.debug(
                "Poll read %d line(s) from %d file(s), emitted %d event(s) in %.1fms",
                line_count,
                len(files),
                len(emitted),
                duration_ms,
            )
        return QueuePollResult(events=emitted, activeWorkspacePath=active_workspace)

    # ── Line handling ──────────────────────────────────────────────

    def _process_line(self, line: str, emit: bool, emitted: list[QueueTaskEvent]) -> None:
        extracted = self.extractor.extract(line)
        if extracted is None:
            observability.record_dropped_line("unrecognized")
            return

        if extracted.workspace is not None:
            update = extracted.workspace
            self.workspaces.observe(update.sessionId, update.cwd, update.timestamp)

        if extracted.toolUse is not None:
            tool_use = extracted.toolUse
            self.sessions.record(
                tool_use.sessionId,
                tool_use.label,
                tool_use.timestamp,
                cwd=self.workspaces.workspace_for(tool_use.sessionId),
            )

        if extracted.queueOperation is not None:
            event = self._apply_queue_operation(extracted.queueOperation)
            if emit:
                emitted.append(event)

    def _apply_queue_operation(self, operation: QueueOperation) -> QueueTaskEvent:
        session_id = operation.sessionId
        workspace = self.workspaces.workspace_for(session_id)
        payload = operation.payload

        if operation.kind == "enqueue":
            task = self.queue.enqueue(
                session_id,
                timestamp=operation.timestamp,
                task_id=(payload.taskId or payload.toolUseId) if payload else None,
                description=payload.description if payload else None,
                task_type=payload.taskType if payload else None,
                cwd=workspace,
            )
            return QueueTaskEvent(
                sessionId=session_id,
                taskId=task.taskId,
                description=task.description,
                taskType=task.taskType,
                timestamp=operation.timestamp,
                kind="enqueue",
                cwd=task.cwd,
            )

        explicit_id = payload.taskId if payload else None
        removed = self.queue.remove(session_id, explicit_id)
        if removed is None:
            return QueueTaskEvent(
                sessionId=session_id,
                taskId=explicit_id,
                description=payload.description if payload else None,
                taskType=payload.taskType if payload else None,
                timestamp=operation.timestamp,
                kind="remove",
                cwd=workspace,
            )
        return QueueTaskEvent(
            sessionId=session_id,
            taskId=removed.taskId,
            description=removed.description or (payload.description if payload else None),
            taskType=removed.taskType or (payload.taskType if payload else None),
            timestamp=operation.timestamp,
            kind="remove",
            cwd=removed.cwd or workspace,
        )

    # ── First poll ─────────────────────────────────────────────────

    def _initial_pending_events(self, active_workspace: Optional[str]) -> list[QueueTaskEvent]:
        """Synthetic enqueues for recent tasks still pending in the active workspace."""
        if active_workspace is None:
            return []
        cutoff = None
        if self.initial_pending_max_age:
            cutoff = self._clock() - self.initial_pending_max_age

        events: list[QueueTaskEvent] = []
        skipped = 0
        for session_id, tasks in self.queue.all_pending().items():
            for task in tasks:
                if task.cwd != active_workspace:
                    continue
                if cutoff is not None and task.timestamp < cutoff:
                    skipped += 1
                    continue
                events.append(
                    QueueTaskEvent(
                        sessionId=session_id,
                        taskId=task.taskId,
                        description=task.description,
                        taskType=task.taskType,
                        timestamp=task.timestamp,
                        kind="enqueue",
                        cwd=task.cwd,
                    )
                )
        if skipped:
            logger.info("Suppressed %d stale pending task(s) found while priming", skipped)
        return events
