"""Read recent prompts from the agent's ``history.jsonl``."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from ccpulse.date_utils import from_epoch_millis
from ccpulse.models import ActivityEntry

logger = logging.getLogger("ccpulse.history")


def _parse_history_line(line: str) -> Optional[ActivityEntry]:
    try:
        raw = json.loads(line)
    except ValueError:
        return None
    if not isinstance(raw, dict):
        return None

    display = raw.get("display")
    if not isinstance(display, str) or not display.strip():
        return None
    timestamp = from_epoch_millis(raw.get("timestamp"))
    if timestamp is None:
        return None

    project = raw.get("project")
    session_id = raw.get("sessionId")
    return ActivityEntry(
        timestamp=timestamp,
        text=display.strip(),
        projectPath=project if isinstance(project, str) else None,
        sessionId=session_id if isinstance(session_id, str) else None,
    )


def load_recent(history_file: Path, limit: int, project_path: Optional[str] = None) -> list[ActivityEntry]:
    """Return up to ``limit`` entries, newest first.

    The file is append-only, so newest entries are read from the end.
    When ``project_path`` is given only entries for that project are kept.
    """
    if limit <= 0 or not history_file.exists():
        return []

    try:
        content = history_file.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.warning("Failed to read history file %s: %s", history_file, exc)
        return []

    entries: list[ActivityEntry] = []
    for line in reversed(content.splitlines()):
        if not line.strip():
            continue
        entry = _parse_history_line(line)
        if entry is None:
            continue
        if project_path is not None and entry.projectPath != project_path:
            continue
        entries.append(entry)
        if len(entries) == limit:
            break
    return entries
