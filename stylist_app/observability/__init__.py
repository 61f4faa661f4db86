"""
Observability: structured event log and product metrics.
"""

from .logger import EventLogger, append_log, event_logger, redact_url, short_key
from .metrics import MetricsTracker, metrics, track_event

__all__ = [
    "EventLogger",
    "append_log",
    "event_logger",
    "redact_url",
    "short_key",
    "MetricsTracker",
    "metrics",
    "track_event",
]
