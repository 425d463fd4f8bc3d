# =============================================================================
# AI PULL REQUEST AGENT - STRUCTURED LOGGING
# =============================================================================
"""
Structured Logging Module

Provides consistent, structured logging across all components.
Uses structlog to render both structlog and stdlib log records.

Features:
    - JSON-formatted logs for easy parsing
    - Contextual information (workflow id, repository, branch) in all logs
    - Sensitive data masking, including tokens embedded in free text
    - Optional file output with rotation

Modules keep logging through ``logging.getLogger(__name__)``; the
records are passed through the structlog processor chain by
``structlog.stdlib.ProcessorFormatter``.
"""

from __future__ import annotations

import logging
import logging.handlers
import re
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from structlog.contextvars import bind_contextvars, merge_contextvars, unbind_contextvars


# =============================================================================
# SENSITIVE DATA MASKING
# =============================================================================

# Keys whose values should be masked
SENSITIVE_KEYS = frozenset([
    "token", "api_key", "password", "secret", "credential",
    "private_key", "access_token", "authorization",
    "github_token", "anthropic_api_key", "openai_api_key",
])

# Secrets that may show up inside messages (command output, URLs)
SECRET_PATTERNS = [
    re.compile(r"(https?://)[^/\s:@]+(?::[^/\s@]*)?@"),
    re.compile(r"\bgh[pousr]_[A-Za-z0-9]{10,}\b"),
    re.compile(r"\bgithub_pat_[A-Za-z0-9_]{10,}\b"),
    re.compile(r"\bsk-[A-Za-z0-9_\-]{8,}"),
]


def _is_sensitive(key: str) -> bool:
    """Check if a key name indicates sensitive data."""
    key_lower = key.lower().replace("-", "_")
    return any(s in key_lower for s in SENSITIVE_KEYS)


def _mask_value(value: Any) -> str:
    """Mask a sensitive value, keeping first/last 4 chars if long enough."""
    if not isinstance(value, str):
        return "****"
    if len(value) > 12:
        return value[:4] + "****" + value[-4:]
    return "****"


def redact_secrets(text: str, extra: Optional[List[str]] = None) -> str:
    """
    Remove credentials from free text.

    Args:
        text: Text that may contain tokens or credentialed URLs
        extra: Literal secrets to remove as well (e.g. the token in use)

    Returns:
        Text with every secret replaced by ``****``
    """
    if not text:
        return text
    for secret in extra or []:
        if secret:
            text = text.replace(secret, "****")
    for pattern in SECRET_PATTERNS:
        if pattern.groups:
            text = pattern.sub(r"\1****@", text)
        else:
            text = pattern.sub("****", text)
    return text


def mask_sensitive_data(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Structlog processor that masks sensitive data in log events.

    Values under sensitive keys are masked; string values elsewhere are
    scanned for embedded tokens.
    """

    def _process(d: Dict[str, Any]) -> Dict[str, Any]:
        result = {}
        for key, value in d.items():
            if _is_sensitive(key):
                result[key] = _mask_value(value)
            elif isinstance(value, dict):
                result[key] = _process(value)
            elif isinstance(value, str):
                result[key] = redact_secrets(value)
            else:
                result[key] = value
        return result

    return _process(event_dict)


def mask_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Mask sensitive data in an arbitrary dict."""
    return mask_sensitive_data(None, "", data)


# =============================================================================
# LOGGING SETUP
# =============================================================================


def _shared_processors(mask_sensitive: bool) -> list:
    processors: list = [
        merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if mask_sensitive:
        processors.append(mask_sensitive_data)
    return processors


def setup_logging(
    level: str = "INFO",
    fmt: str = "json",
    log_file: Optional[str] = None,
    mask_sensitive: bool = True,
    max_bytes: int = 50 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        fmt: Output format – ``"json"`` or ``"text"``.
        log_file: Optional log file path (JSON, rotated).
        mask_sensitive: Mask sensitive values in logs.
        max_bytes: Max file size before rotation.
        backup_count: Number of rotated files to keep.

    Returns:
        Root logger instance.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    shared = _shared_processors(mask_sensitive)

    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    def _formatter(final_renderer) -> structlog.stdlib.ProcessorFormatter:
        return structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                final_renderer,
            ],
        )

    root = logging.getLogger()
    root.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicates on re-init
    root.handlers.clear()

    # Console goes to stderr so stdout stays clean for command output
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(_formatter(renderer))
    root.addHandler(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer()))
        root.addHandler(file_handler)

    # Suppress noisy third-party loggers
    for name in ("urllib3", "httpx", "httpcore", "anthropic", "openai"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return root


# =============================================================================
# LOG CONTEXT MANAGER
# =============================================================================


class LogContext:
    """
    Context manager that binds key-value pairs to all logs emitted
    inside the block.

    Usage::

        with LogContext(workflow_id="a1b2", repository="acme/widgets"):
            logger.info("Cloning")
            # All logs include workflow_id and repository
    """

    def __init__(self, **kwargs: Any):
        self.context = kwargs

    def __enter__(self) -> "LogContext":
        bind_contextvars(**self.context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_contextvars(*self.context.keys())

    def bind(self, **kwargs: Any) -> None:
        """Add fields to an already-entered context."""
        self.context.update(kwargs)
        bind_contextvars(**kwargs)


@contextmanager
def log_context(**kwargs: Any):
    """Functional alias for :class:`LogContext`."""
    with LogContext(**kwargs) as ctx:
        yield ctx


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "setup_logging",
    "mask_sensitive_data",
    "mask_dict",
    "redact_secrets",
    "LogContext",
    "log_context",
]
