# =============================================================================
# AI PULL REQUEST AGENT - METRICS COLLECTION
# =============================================================================
"""
Metrics Collection Module

Collects Prometheus metrics for workflow executions.

Metric Categories:
    - Workflow metrics: runs by outcome, duration of each step
    - LLM metrics: completion calls and token usage per provider
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)


class MetricsCollector:
    """
    Central metrics collector for workflow executions.

    Every collector owns its own registry so several orchestrators (and
    tests) can coexist in one process.

    Usage::

        metrics = MetricsCollector()
        with metrics.time_step("cloning"):
            tree.clone(...)
        metrics.record_workflow("success", 42.0)
        metrics.record_llm_call("anthropic", "branch_name", 120, 8)
    """

    STEP_BUCKETS = [0.5, 1, 2, 5, 10, 30, 60, 120, 300, 600, 1200]

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.workflow_runs = Counter(
            "workflow_runs_total",
            "Workflow executions by outcome",
            ["outcome"],
            registry=self.registry,
        )
        self.workflow_duration = Histogram(
            "workflow_duration_seconds",
            "End-to-end workflow duration",
            buckets=self.STEP_BUCKETS,
            registry=self.registry,
        )
        self.step_duration = Histogram(
            "workflow_step_duration_seconds",
            "Duration of each workflow step",
            ["step"],
            buckets=self.STEP_BUCKETS,
            registry=self.registry,
        )
        self.step_failures = Counter(
            "workflow_step_failures_total",
            "Workflow failures by the step they happened in",
            ["step", "error_type"],
            registry=self.registry,
        )
        self.llm_requests = Counter(
            "llm_requests_total",
            "AI completion and code generation calls",
            ["provider", "purpose"],
            registry=self.registry,
        )
        self.llm_tokens = Counter(
            "llm_tokens_total",
            "Tokens consumed",
            ["provider", "purpose", "direction"],
            registry=self.registry,
        )

    # -- Workflow metrics --------------------------------------------------

    def record_workflow(self, outcome: str, duration: float) -> None:
        """Record a finished workflow execution."""
        self.workflow_runs.labels(outcome=outcome).inc()
        self.workflow_duration.observe(duration)

    def record_failure(self, step: str, error_type: str) -> None:
        """Record the step and error class of a failed execution."""
        self.step_failures.labels(step=step, error_type=error_type).inc()

    @contextmanager
    def time_step(self, step: str) -> Iterator[None]:
        """Observe the wall-clock duration of the enclosed block."""
        start = time.monotonic()
        try:
            yield
        finally:
            self.step_duration.labels(step=step).observe(time.monotonic() - start)

    # -- LLM metrics -------------------------------------------------------

    def record_llm_call(
        self,
        provider: str,
        purpose: str,
        input_tokens: int,
        output_tokens: int,
    ) -> None:
        """Record an AI call with its token counts."""
        self.llm_requests.labels(provider=provider, purpose=purpose).inc()
        self.llm_tokens.labels(
            provider=provider, purpose=purpose, direction="input"
        ).inc(max(0, input_tokens))
        self.llm_tokens.labels(
            provider=provider, purpose=purpose, direction="output"
        ).inc(max(0, output_tokens))

    # -- Export -------------------------------------------------------------

    def value(self, name: str, **labels: str) -> float:
        """Return the current value of a sample (0.0 when absent)."""
        sample = self.registry.get_sample_value(name, labels)
        return sample or 0.0

    def render(self) -> str:
        """Prometheus text exposition of every metric in the registry."""
        return generate_latest(self.registry).decode("utf-8")

    def write(self, path: str) -> None:
        """Write the exposition text to *path* (node-exporter textfile style)."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.render(), encoding="utf-8")
        logger.debug(f"Metrics written to {target}")


def create_metrics_collector() -> MetricsCollector:
    """Factory function to create a metrics collector."""
    return MetricsCollector()


__all__ = [
    "MetricsCollector",
    "create_metrics_collector",
]
