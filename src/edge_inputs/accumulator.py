"""Metric accumulator shared by the inputs.

Inputs never deliver metrics themselves. They hand flat records to an
accumulator through ``add_fields`` and report per-target failures through
``add_error``; whatever owns the accumulator decides where records go.
"""

import threading
from datetime import datetime, timezone
from typing import Any, Optional, Protocol, Union

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger()

FieldValue = Union[bool, int, float, str]


class Metric(BaseModel):
    """A single flat metric record."""

    measurement: str
    fields: dict[str, FieldValue]
    tags: dict[str, str] = Field(default_factory=dict)
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Accumulator(Protocol):
    """Interface inputs use to emit metrics and errors."""

    def add_fields(
        self,
        measurement: str,
        fields: dict[str, Any],
        tags: Optional[dict[str, str]] = None,
        timestamp: Optional[datetime] = None,
    ) -> None:
        ...

    def add_error(self, error: Optional[BaseException]) -> None:
        ...


class MetricAccumulator:
    """In-memory accumulator, safe to share between gather threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.metrics: list[Metric] = []
        self.errors: list[BaseException] = []

    def add_fields(
        self,
        measurement: str,
        fields: dict[str, Any],
        tags: Optional[dict[str, str]] = None,
        timestamp: Optional[datetime] = None,
    ) -> None:
        """Record a metric; empty field sets are dropped."""
        if not fields:
            logger.debug("Dropping metric without fields", measurement=measurement)
            return

        metric = Metric(
            measurement=measurement,
            fields=dict(fields),
            tags=dict(tags or {}),
            time=timestamp or datetime.now(timezone.utc),
        )
        with self._lock:
            self.metrics.append(metric)

    def add_error(self, error: Optional[BaseException]) -> None:
        """Record a gather error. ``None`` means the worker succeeded."""
        if error is None:
            return

        logger.error("Error in input gather", error=str(error), error_type=type(error).__name__)
        with self._lock:
            self.errors.append(error)

    def get_metrics(self, measurement: Optional[str] = None) -> list[Metric]:
        """Return recorded metrics, optionally only those of one measurement."""
        with self._lock:
            if measurement is None:
                return list(self.metrics)
            return [m for m in self.metrics if m.measurement == measurement]

    def clear(self) -> None:
        """Forget all recorded metrics and errors."""
        with self._lock:
            self.metrics.clear()
            self.errors.clear()
