"""Pydantic models shared by the activity pipeline and the HTTP surface."""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

QueueEventKind = Literal["enqueue", "remove"]
ToastStatus = Literal["running", "done"]


def make_task_key(session_id: str, task_id: Optional[str]) -> Optional[str]:
    if not task_id:
        return None
    return f"{session_id}:{task_id}"


# ── Session log state ──────────────────────────────────────────────

class WorkspaceObservation(BaseModel):
    model_config = ConfigDict(frozen=True)

    sessionId: str
    path: str
    timestamp: datetime


class QueuedTask(BaseModel):
    model_config = ConfigDict(frozen=True)

    taskId: str
    description: Optional[str] = None
    taskType: Optional[str] = None
    timestamp: datetime
    cwd: Optional[str] = None


class QueueTaskEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    sessionId: str
    taskId: Optional[str] = None
    description: Optional[str] = None
    taskType: Optional[str] = None
    timestamp: datetime
    kind: QueueEventKind
    cwd: Optional[str] = None

    @property
    def taskKey(self) -> Optional[str]:
        return make_task_key(self.sessionId, self.taskId)


class QueuePollResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    events: list[QueueTaskEvent] = Field(default_factory=list)
    activeWorkspacePath: Optional[str] = None


class SessionActivity(BaseModel):
    model_config = ConfigDict(frozen=True)

    sessionId: str
    cwd: Optional[str] = None
    toolLabel: str
    lastSeenAt: datetime


# ── Toasts ─────────────────────────────────────────────────────────

class ToastItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    taskKey: str
    title: str
    status: ToastStatus
    startedAt: datetime
    finishedAt: Optional[datetime] = None
    wasDismissedByUser: bool = False


# ── Prompt history ─────────────────────────────────────────────────

class ActivityEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    text: str
    projectPath: Optional[str] = None
    sessionId: Optional[str] = None

    @property
    def id(self) -> str:
        return f"{self.timestamp.timestamp()}-{self.sessionId or 'session'}-{self.text}"


# ── API payloads ───────────────────────────────────────────────────

class ActivitySnapshot(BaseModel):
    toasts: list[ToastItem] = Field(default_factory=list)
    activeWorkspacePath: Optional[str] = None
    sessions: list[SessionActivity] = Field(default_factory=list)
    toastsEnabled: bool = True
    lastPolledAt: Optional[datetime] = None
    pendingTaskCount: int = 0


class ToastsEnabledRequest(BaseModel):
    enabled: bool
