# =============================================================================
# AI PULL REQUEST AGENT - MONITORING PACKAGE
# =============================================================================
"""
Monitoring Package

Logging and metrics infrastructure shared by the orchestrator and agents.

Components:
    - Logger: structlog-rendered logging with secret masking
    - Metrics: Prometheus metrics for workflow executions

Usage:
    from monitoring import setup_logging, MetricsCollector

    setup_logging(level="INFO", fmt="json")
    metrics = MetricsCollector()
    metrics.record_workflow("success", 95.2)
"""

from monitoring.logger import (
    setup_logging,
    LogContext,
    log_context,
    mask_sensitive_data,
    mask_dict,
    redact_secrets,
)

from monitoring.metrics import (
    MetricsCollector,
    create_metrics_collector,
)


__all__ = [
    # Logger
    "setup_logging",
    "LogContext",
    "log_context",
    "mask_sensitive_data",
    "mask_dict",
    "redact_secrets",
    # Metrics
    "MetricsCollector",
    "create_metrics_collector",
]
