"""Observability: structured logging and metrics hooks for imagelink."""

from __future__ import annotations

from .logger import StructuredFormatter, current_log_context, get_logger, log_context
from .metrics import MetricsHook, NoopMetricsHook

__all__ = [
    "MetricsHook",
    "NoopMetricsHook",
    "StructuredFormatter",
    "current_log_context",
    "get_logger",
    "log_context",
]
