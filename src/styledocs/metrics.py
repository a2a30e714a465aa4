"""Prometheus metrics for documentation build stages.

Metrics live on a dedicated :class:`~prometheus_client.CollectorRegistry` so
they never collide with the default process registry of a host application.
CI jobs can export them through the node-exporter textfile collector by
setting ``STYLEDOCS_METRICS_TEXTFILE``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Histogram, write_to_textfile

if TYPE_CHECKING:
    from pathlib import Path

__all__ = ["REGISTRY", "StageMetrics", "write_metrics"]

REGISTRY = CollectorRegistry(auto_describe=True)

_STAGE_TOTAL = Counter(
    "styledocs_stage_total",
    "Documentation build stages grouped by outcome.",
    ("stage", "status"),
    registry=REGISTRY,
)
_STAGE_DURATION = Histogram(
    "styledocs_stage_duration_seconds",
    "Duration of documentation build stages in seconds.",
    ("stage", "status"),
    registry=REGISTRY,
)


@dataclass(slots=True)
class StageMetrics:
    """Record outcomes and durations of build stages."""

    def observe(self, stage: str, status: str, duration_seconds: float) -> None:
        """Record one finished stage."""
        _STAGE_TOTAL.labels(stage=stage, status=status).inc()
        _STAGE_DURATION.labels(stage=stage, status=status).observe(duration_seconds)

    def count(self, stage: str, status: str) -> float:
        """Return how many times ``stage`` finished with ``status``."""
        value = REGISTRY.get_sample_value(
            "styledocs_stage_total", {"stage": stage, "status": status}
        )
        return value or 0.0


def write_metrics(path: Path, registry: CollectorRegistry = REGISTRY) -> None:
    """Write ``registry`` to ``path`` in the Prometheus text format."""
    path.parent.mkdir(parents=True, exist_ok=True)
    write_to_textfile(str(path), registry)
