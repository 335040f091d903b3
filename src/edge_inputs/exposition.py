"""Rendering of accumulated metrics.

Two formats are supported: InfluxDB line protocol and the Prometheus text
exposition format. Prometheus output goes through a ``CollectorRegistry``
with a custom collector, so every field becomes a gauge named
``<measurement>_<field>`` labelled with the metric's tags.
"""

import re
from collections.abc import Iterable, Iterator
from typing import Any

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import Metric as PrometheusMetric
from prometheus_client.registry import Collector

from .accumulator import Metric

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def sanitize_name(name: str) -> str:
    """Make ``name`` a valid Prometheus metric or label name."""
    name = _INVALID_NAME_CHARS.sub("_", name)
    if name and name[0].isdigit():
        name = f"_{name}"
    return name


class AccumulatedMetricsCollector(Collector):
    """Prometheus collector exposing a snapshot of accumulated metrics."""

    def __init__(self, metrics: Iterable[Metric]):
        self.metrics = list(metrics)

    def collect(self) -> Iterator[PrometheusMetric]:
        families: dict[str, PrometheusMetric] = {}

        for metric in self.metrics:
            labels = {sanitize_name(k): v for k, v in sorted(metric.tags.items())}
            for field, value in metric.fields.items():
                # Prometheus samples are numeric only
                if isinstance(value, str):
                    continue

                name = sanitize_name(f"{metric.measurement}_{field}")
                family = families.get(name)
                if family is None:
                    family = PrometheusMetric(name, f"{metric.measurement} {field}", "gauge")
                    families[name] = family
                family.add_sample(name, labels, float(value))

        yield from families.values()


def format_prometheus(metrics: Iterable[Metric]) -> str:
    """Render metrics in the Prometheus text exposition format."""
    registry = CollectorRegistry()
    registry.register(AccumulatedMetricsCollector(metrics))
    return generate_latest(registry).decode("utf-8")


def _escape(value: str, chars: str) -> str:
    value = value.replace("\\", "\\\\")
    for char in chars:
        value = value.replace(char, f"\\{char}")
    return value


def _format_field_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"{value}i"
    if isinstance(value, float):
        return repr(value)
    return '"' + str(value).replace("\\", "\\\\").replace('"', '\\"') + '"'


def format_line(metric: Metric) -> str:
    """Render one metric as an InfluxDB line protocol line."""
    parts = [_escape(metric.measurement, ", ")]
    for key, value in sorted(metric.tags.items()):
        # Empty tag values are not representable
        if value == "":
            continue
        parts.append(f"{_escape(key, ',= ')}={_escape(value, ',= ')}")

    fields = ",".join(
        f"{_escape(key, ',= ')}={_format_field_value(value)}"
        for key, value in sorted(metric.fields.items())
    )
    timestamp = int(metric.time.timestamp()) * 1_000_000_000 + metric.time.microsecond * 1000

    return f"{','.join(parts)} {fields} {timestamp}"


def format_line_protocol(metrics: Iterable[Metric]) -> str:
    """Render metrics as InfluxDB line protocol, one line per metric."""
    return "".join(f"{format_line(metric)}\n" for metric in metrics)
