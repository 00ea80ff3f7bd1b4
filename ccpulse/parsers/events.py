"""Classify Claude Code session log lines into pipeline events."""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ccpulse.date_utils import parse_iso8601

logger = logging.getLogger("ccpulse.events")

MAX_DESCRIPTION_LENGTH = 120
MAX_TOOL_LABEL_LENGTH = 60

_WHITESPACE_CONTROL_PATTERN = re.compile(r"[\r\n\t]+")

_QUEUE_OPERATIONS = {
    "enqueue": "enqueue",
    "remove": "remove",
    "dequeue": "remove",
}

# Content object keys, first match wins.
_TASK_ID_KEYS = ("task_id", "taskId")
_TOOL_USE_ID_KEYS = ("tool_use_id", "toolUseId")
_TASK_TYPE_KEYS = ("task_type", "taskType")

_NOTIFICATION_TAGS = ("task-id", "tool-use-id", "task-type", "description", "summary")

_TOOL_LABELS: dict[str, str] = {
    "Read": "Reading file",
    "NotebookRead": "Reading notebook",
    "Write": "Writing file",
    "Edit": "Editing file",
    "MultiEdit": "Editing file",
    "NotebookEdit": "Editing notebook",
    "Grep": "Searching code",
    "Glob": "Finding files",
    "LS": "Listing files",
    "WebFetch": "Fetching web page",
    "WebSearch": "Searching the web",
    "Task": "Running subagent",
    "TodoWrite": "Updating todos",
}


@dataclass(frozen=True)
class QueuePayload:
    taskId: Optional[str] = None
    description: Optional[str] = None
    taskType: Optional[str] = None
    toolUseId: Optional[str] = None


@dataclass(frozen=True)
class WorkspaceUpdate:
    sessionId: str
    cwd: str
    timestamp: datetime


@dataclass(frozen=True)
class QueueOperation:
    sessionId: str
    kind: str  # "enqueue" | "remove"
    timestamp: datetime
    payload: Optional[QueuePayload] = None


@dataclass(frozen=True)
class ToolUseActivity:
    sessionId: str
    toolName: str
    label: str
    timestamp: datetime


@dataclass(frozen=True)
class ExtractedLine:
    """Everything one log line contributes. Any field may be None."""

    workspace: Optional[WorkspaceUpdate] = None
    queueOperation: Optional[QueueOperation] = None
    toolUse: Optional[ToolUseActivity] = None


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def sanitize_task_description(raw: Any) -> Optional[str]:
    """Flatten a task description to one trimmed line of at most 120 chars."""
    if not isinstance(raw, str):
        return None
    flattened = _WHITESPACE_CONTROL_PATTERN.sub(" ", raw).strip()
    if not flattened:
        return None
    return _truncate(flattened, MAX_DESCRIPTION_LENGTH)


def _first_string(data: dict[str, Any], keys: tuple[str, ...]) -> Optional[str]:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _payload_from_dict(data: dict[str, Any]) -> QueuePayload:
    return QueuePayload(
        taskId=_first_string(data, _TASK_ID_KEYS),
        description=sanitize_task_description(data.get("description")),
        taskType=_first_string(data, _TASK_TYPE_KEYS),
        toolUseId=_first_string(data, _TOOL_USE_ID_KEYS),
    )


def _parse_notification_tags(text: str) -> dict[str, str]:
    details: dict[str, str] = {}
    for key in _NOTIFICATION_TAGS:
        match = re.search(rf"<{key}>\s*([\s\S]*?)\s*</{key}>", text, re.IGNORECASE)
        if match and match.group(1).strip():
            details[key] = match.group(1).strip()
    return details


def parse_queue_payload(raw: Any) -> Optional[QueuePayload]:
    """Decode the ``content`` field of a queue-operation line.

    Accepts a JSON object, a JSON object serialized into a string, a string of
    ``<task-id>``-style notification tags, or free text (used as the
    description with no task id).
    """
    if isinstance(raw, dict):
        return _payload_from_dict(raw)
    if not isinstance(raw, str):
        return None

    trimmed = raw.strip()
    if not trimmed:
        return None

    if trimmed.startswith("{"):
        try:
            decoded = json.loads(trimmed)
        except ValueError:
            decoded = None
        if isinstance(decoded, dict):
            return parse_queue_payload(decoded)

    tags = _parse_notification_tags(trimmed)
    if "task-id" in tags:
        return QueuePayload(
            taskId=tags["task-id"],
            description=sanitize_task_description(tags.get("description") or tags.get("summary")),
            taskType=tags.get("task-type"),
            toolUseId=tags.get("tool-use-id"),
        )

    return QueuePayload(description=sanitize_task_description(trimmed))


def tool_activity_label(tool_name: str, tool_input: Any) -> str:
    """Short human-readable label for a tool call."""
    if tool_name == "Bash":
        description = None
        if isinstance(tool_input, dict):
            description = sanitize_task_description(tool_input.get("description"))
        if description:
            return _truncate(description, MAX_TOOL_LABEL_LENGTH)
        return "Running command"
    label = _TOOL_LABELS.get(tool_name)
    if label:
        return label
    if tool_name.startswith("mcp__"):
        return "Calling MCP tool"
    return f"Using {tool_name}" if tool_name else "Working"


def _last_tool_use(message: Any) -> Optional[tuple[str, Any]]:
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if not isinstance(content, list):
        return None
    found = None
    for block in content:
        if not isinstance(block, dict) or block.get("type") != "tool_use":
            continue
        name = block.get("name")
        if isinstance(name, str) and name.strip():
            found = (name.strip(), block.get("input"))
    return found


class EventExtractor:
    """Turns raw JSONL lines into :class:`ExtractedLine` records.

    Malformed or unrelated lines are expected in session logs and yield None.
    """

    def extract(self, line: str) -> Optional[ExtractedLine]:
        stripped = line.strip()
        if not stripped:
            return None
        try:
            entry = json.loads(stripped)
        except ValueError:
            logger.debug("Dropping undecodable line: %.80s", stripped)
            return None
        if not isinstance(entry, dict):
            return None
        return self.extract_entry(entry)

    def extract_entry(self, entry: dict[str, Any]) -> Optional[ExtractedLine]:
        session_id = entry.get("sessionId")
        if not isinstance(session_id, str) or not session_id.strip():
            return None
        session_id = session_id.strip()
        timestamp = parse_iso8601(entry.get("timestamp"))
        if timestamp is None:
            return None

        workspace = None
        cwd = entry.get("cwd")
        if isinstance(cwd, str) and cwd:
            workspace = WorkspaceUpdate(sessionId=session_id, cwd=cwd, timestamp=timestamp)

        queue_operation = None
        tool_use = None
        entry_type = entry.get("type")
        if entry_type == "queue-operation":
            queue_operation = self._queue_operation(entry, session_id, timestamp)
        elif entry_type == "assistant":
            found = _last_tool_use(entry.get("message"))
            if found is not None:
                name, tool_input = found
                tool_use = ToolUseActivity(
                    sessionId=session_id,
                    toolName=name,
                    label=tool_activity_label(name, tool_input),
                    timestamp=timestamp,
                )

        if workspace is None and queue_operation is None and tool_use is None:
            return None
        return ExtractedLine(workspace=workspace, queueOperation=queue_operation, toolUse=tool_use)

    def _queue_operation(
        self,
        entry: dict[str, Any],
        session_id: str,
        timestamp: datetime,
    ) -> Optional[QueueOperation]:
        operation = entry.get("operation")
        if not isinstance(operation, str):
            return None
        kind = _QUEUE_OPERATIONS.get(operation.strip().lower())
        if kind is None:
            logger.debug("Ignoring unknown queue operation %r", operation)
            return None
        return QueueOperation(
            sessionId=session_id,
            kind=kind,
            timestamp=timestamp,
            payload=parse_queue_payload(entry.get("content")),
        )
