"""Match clock service for the live match tracker."""

import logging

from ..models import ClockState
from ..utils import now_ts, fmt_mmss, minute_for_seconds

logger = logging.getLogger(__name__)


class MatchClockService:
    """Start, pause, reset and read a persisted match clock."""

    def __init__(self, clock: ClockState):
        self.clock = clock

    # ------------------------------------------------------------------
    # Core clock controls
    # ------------------------------------------------------------------
    def start(self) -> bool:
        """Start or resume the clock. Returns False when it was already running."""

        if self.clock.running_since is not None:
            return False
        self.clock.running_since = now_ts()
        return True

    def pause(self) -> bool:
        """Fold the running interval into the offset. Returns False when already paused."""

        if self.clock.running_since is None:
            return False
        self.clock.accumulated_offset_seconds += self.clock.running_interval_seconds(now_ts())
        self.clock.running_since = None
        return True

    def reset(self) -> None:
        """Zero the clock and leave it paused, whatever its prior state."""

        self.clock.accumulated_offset_seconds = 0
        self.clock.running_since = None

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------
    @property
    def is_running(self) -> bool:
        return self.clock.is_running

    def elapsed_seconds(self) -> int:
        return self.clock.elapsed_seconds(now_ts())

    def current_minute(self) -> int:
        """1-indexed minute used to tag new events."""
        return minute_for_seconds(self.elapsed_seconds())

    def describe(self) -> dict:
        elapsed = self.elapsed_seconds()
        return {
            "running": self.is_running,
            "elapsed_seconds": elapsed,
            "display": fmt_mmss(elapsed),
            "current_minute": minute_for_seconds(elapsed),
            "running_since": self.clock.running_since,
            "accumulated_offset_seconds": self.clock.accumulated_offset_seconds,
        }
