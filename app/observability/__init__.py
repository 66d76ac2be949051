"""
Observability module - Logging and Metrics.
"""

from app.observability.logging import get_logger, log_context, setup_logging
from app.observability.metrics import metrics

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
]
