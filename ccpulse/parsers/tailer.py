"""Incremental line reader for append-only JSONL session logs.

Each file gets a byte-offset cursor plus the bytes read after its last
newline. A poll reads only what was appended since the previous poll and
hands back complete lines; the unterminated remainder waits for the next
poll.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger("ccpulse.tailer")


@dataclass(frozen=True)
class TailCursor:
    offset: int = 0
    pending: bytes = b""


class LineBufferedTailer:
    """Per-file cursors over growing files, keyed by path."""

    def __init__(self) -> None:
        self._cursors: dict[str, TailCursor] = {}

    def cursor(self, path: Path | str) -> TailCursor:
        return self._cursors.get(str(path), TailCursor())

    @property
    def tracked_paths(self) -> list[str]:
        return sorted(self._cursors)

    def read_new_lines(self, path: Path | str) -> list[str]:
        """Return complete lines appended to ``path`` since the last call.

        A recorded offset past the current end of file means the file was
        truncated or replaced; reading restarts from byte 0 in the same call.
        Files that cannot be opened or read are skipped and keep their cursor.
        """
        key = str(path)
        cursor = self._cursors.get(key, TailCursor())
        start = cursor.offset
        pending = cursor.pending

        try:
            with open(key, "rb") as handle:
                end = os.fstat(handle.fileno()).st_size
                if start > end:
                    logger.info("Session log %s shrank (%d -> %d bytes); rereading from start", key, start, end)
                    start = 0
                    pending = b""
                if start == end:
                    self._cursors[key] = TailCursor(end, pending)
                    return []
                handle.seek(start)
                chunk = handle.read(end - start)
        except OSError as exc:
            logger.debug("Skipping unreadable session log %s: %s", key, exc)
            return []

        data = pending + chunk
        parts = data.split(b"\n")
        remainder = parts.pop()
        self._cursors[key] = TailCursor(start + len(chunk), remainder)

        # The remainder may end mid-character; only terminated lines are decoded.
        return [part.decode("utf-8", errors="replace") for part in parts if part]
