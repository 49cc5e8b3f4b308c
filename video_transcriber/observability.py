"""Observability utilities for structured logging and telemetry."""

from __future__ import annotations

import contextlib
import threading
import time
from typing import Dict, Iterator, Mapping, Optional

from opentelemetry import metrics, trace

from . import logging_manager as log_mgr

logger = log_mgr.get_logger()

_tracer = trace.get_tracer("video_transcriber.pipeline")
_meter = metrics.get_meter("video_transcriber.pipeline")
_histograms: Dict[str, metrics.Histogram] = {}
_histogram_lock = threading.Lock()


def _get_histogram(name: str) -> metrics.Histogram:
    with _histogram_lock:
        histogram = _histograms.get(name)
        if histogram is None:
            histogram = _meter.create_histogram(name)
            _histograms[name] = histogram
        return histogram


def _metric_attributes(attributes: Optional[Mapping[str, object]]) -> Dict[str, object]:
    cleaned: Dict[str, object] = {}
    for key, value in (attributes or {}).items():
        if value is None:
            continue
        if isinstance(value, (str, bool, int, float)):
            cleaned[key] = value
        else:
            cleaned[key] = str(value)
    return cleaned


def record_metric(
    name: str,
    value: float,
    attributes: Optional[Mapping[str, object]] = None,
) -> None:
    """Record a numeric observation through the OpenTelemetry metrics API."""

    attrs = _metric_attributes(attributes)
    _get_histogram(name).record(value, attributes=attrs)
    logger.debug(
        "Metric recorded",
        extra={
            "event": "observability.metric_recorded",
            "metric": name,
            "value": value,
            "attributes": attrs,
            "console_suppress": True,
        },
    )


@contextlib.contextmanager
def pipeline_stage(stage: str, attributes: Optional[Mapping[str, object]] = None) -> Iterator[None]:
    """Instrument a pipeline stage with structured logging and a span."""

    attrs = _metric_attributes(attributes)

    with log_mgr.log_context(stage=stage):
        start = time.perf_counter()
        logger.info(
            "Stage started",
            extra={
                "event": "transcriber.stage.start",
                "stage": stage,
                "attributes": attrs,
                "console_suppress": True,
            },
        )
        with _tracer.start_as_current_span(f"transcriber.stage.{stage}", attributes=attrs):
            yield
        duration_ms = (time.perf_counter() - start) * 1000.0
        record_metric("pipeline.stage.duration", duration_ms, {**attrs, "stage": stage})
        logger.info(
            "Stage completed",
            extra={
                "event": "transcriber.stage.complete",
                "stage": stage,
                "duration_ms": round(duration_ms, 2),
                "attributes": attrs,
                "console_suppress": True,
            },
        )


@contextlib.contextmanager
def pipeline_operation(
    name: str,
    *,
    attributes: Optional[Mapping[str, object]] = None,
) -> Iterator[None]:
    """Context manager that wraps a whole job run in a span."""

    attrs = _metric_attributes(attributes)
    with _tracer.start_as_current_span(f"transcriber.operation.{name}", attributes=attrs):
        yield


def worker_pool_event(
    action: str,
    *,
    max_workers: int,
    attributes: Optional[Mapping[str, object]] = None,
) -> None:
    """Emit a structured log for worker pool lifecycle transitions."""

    attrs: Dict[str, object] = {"max_workers": max_workers}
    if attributes:
        attrs.update(dict(attributes))
    logger.info(
        "Worker pool event",
        extra={
            "event": "worker_pool.%s" % action,
            "stage": "worker_pool",
            "attributes": attrs,
            "console_suppress": True,
        },
    )


__all__ = [
    "pipeline_operation",
    "pipeline_stage",
    "record_metric",
    "worker_pool_event",
]
