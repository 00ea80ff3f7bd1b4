"""Observability helpers."""

from ccpulse.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_poll,
    record_dropped_line,
    record_queue_event,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_poll",
    "record_dropped_line",
    "record_queue_event",
]
