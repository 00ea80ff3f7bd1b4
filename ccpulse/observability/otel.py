"""OpenTelemetry tracing and poll metrics, with a Prometheus fallback.

Everything here is a no-op until ``initialize`` succeeds. OpenTelemetry and
prometheus_client are imported lazily so the core pipeline runs without them.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from fastapi import FastAPI

from ccpulse import config

logger = logging.getLogger("ccpulse.observability")

# name -> (description, label names)
_METRICS: dict[str, tuple[str, tuple[str, ...]]] = {
    "ccpulse_poll_cycles_total": ("Count of session log poll cycles", ()),
    "ccpulse_lines_read_total": ("Complete log lines read from session logs", ()),
    "ccpulse_lines_dropped_total": ("Log lines dropped as malformed or unrelated", ("reason",)),
    "ccpulse_queue_events_total": ("Queue lifecycle events emitted by poll cycles", ("kind",)),
}
_LATENCY_METRIC = "ccpulse_poll_latency_ms"
_LATENCY_DESCRIPTION = "Duration of one poll cycle over all session logs"


@dataclass
class _State:
    initialized: bool = False
    tracer: Any = None
    providers: list[Any] = field(default_factory=list)
    instrumentor: Any = None
    counters: dict[str, Any] = field(default_factory=dict)
    latency: Any = None
    prom_counters: dict[str, Any] = field(default_factory=dict)
    prom_latency: Any = None


_state = _State()


def _otlp_endpoint(signal_path: str) -> str | None:
    base = (config.OTEL_ENDPOINT or "").strip().rstrip("/")
    if not base:
        return None
    if base.endswith(signal_path):
        return base
    if base.endswith("/v1"):
        base = base[:-3]
    return f"{base}{signal_path}"


def _start_prometheus() -> None:
    try:
        from prometheus_client import Counter, Histogram, start_http_server

        start_http_server(config.PROM_PORT)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Prometheus fallback not started: %s", exc)
        return
    for name, (description, labels) in _METRICS.items():
        _state.prom_counters[name] = Counter(name, description, list(labels))
    _state.prom_latency = Histogram(_LATENCY_METRIC, _LATENCY_DESCRIPTION)
    logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)


def initialize(app: FastAPI | None = None) -> None:
    if _state.initialized:
        if app is not None and _state.instrumentor is not None:
            _state.instrumentor.instrument_app(app)
        return
    _state.initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (CCPULSE_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    service_name = config.OTEL_SERVICE_NAME or "ccpulse"
    resource = Resource.create({"service.name": service_name, "service.namespace": "ccpulse"})

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=_otlp_endpoint("/v1/traces"))))
    trace.set_tracer_provider(trace_provider)

    reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=_otlp_endpoint("/v1/metrics")))
    meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("ccpulse")

    _state.tracer = trace.get_tracer("ccpulse")
    _state.providers = [meter_provider, trace_provider]
    _state.counters = {
        name: meter.create_counter(name, unit="1", description=description)
        for name, (description, _labels) in _METRICS.items()
    }
    _state.latency = meter.create_histogram(_LATENCY_METRIC, unit="ms", description=_LATENCY_DESCRIPTION)
    _state.instrumentor = FastAPIInstrumentor()
    if app is not None:
        _state.instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        _start_prometheus()

    logger.info("OpenTelemetry initialized (service=%s endpoint=%s)", service_name, config.OTEL_ENDPOINT)


def shutdown(app: FastAPI | None = None) -> None:
    if app is not None and _state.instrumentor is not None:
        try:
            _state.instrumentor.uninstrument_app(app)
        except Exception:
            logger.debug("FastAPI uninstrumentation failed", exc_info=True)
    for provider in _state.providers:
        try:
            provider.shutdown()
        except Exception:
            logger.debug("Telemetry provider shutdown failed", exc_info=True)
    _state.tracer = None
    _state.providers = []
    _state.counters = {}
    _state.latency = None


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if _state.tracer is None:
        yield None
        return
    with _state.tracer.start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        yield span


def _count(name: str, amount: int = 1, **labels: str) -> None:
    counter = _state.counters.get(name)
    if counter is not None:
        counter.add(amount, labels or None)
    prom_counter = _state.prom_counters.get(name)
    if prom_counter is not None:
        (prom_counter.labels(**labels) if labels else prom_counter).inc(amount)


def record_poll(file_count: int, line_count: int, duration_ms: float) -> None:
    duration = max(0.0, float(duration_ms))
    _count("ccpulse_poll_cycles_total")
    lines = max(0, int(line_count))
    if lines:
        _count("ccpulse_lines_read_total", lines)
    if _state.latency is not None:
        _state.latency.record(duration, {"files": str(max(0, int(file_count)))})
    if _state.prom_latency is not None:
        _state.prom_latency.observe(duration)


def record_dropped_line(reason: str) -> None:
    _count("ccpulse_lines_dropped_total", reason=(reason or "").strip() or "unknown")


def record_queue_event(kind: str) -> None:
    _count("ccpulse_queue_events_total", kind=(kind or "").strip() or "unknown")
