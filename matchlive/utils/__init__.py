"""
Utilities package for the live match tracker.

This package contains time helpers, rule constants and configuration.
"""
from .time_utils import fmt_mmss, now_ts, minute_for_seconds
from .constants import (
    APP_TITLE, MIN_LINEUP_SIZE, MIN_MATCH_END_MINUTE,
    DEFAULT_HOST, DEFAULT_PORT, EVENT_LABELS
)
from .config import LiveMatchConfig
from .logging_config import configure_logging

__all__ = [
    "fmt_mmss", "now_ts", "minute_for_seconds", "APP_TITLE",
    "MIN_LINEUP_SIZE", "MIN_MATCH_END_MINUTE", "DEFAULT_HOST", "DEFAULT_PORT",
    "EVENT_LABELS", "LiveMatchConfig", "configure_logging"
]
