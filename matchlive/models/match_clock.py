"""
Match clock state for the live match tracker.

The clock is persisted as a ``(running_since, accumulated_offset_seconds)``
pair so any client can reconstruct the elapsed time without a shared ticking
process.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass
class ClockState:
    """
    Resumable elapsed-time counter for a single match.

    Attributes:
        running_since: Epoch seconds when the current running interval began,
                       or None while paused
        accumulated_offset_seconds: Seconds banked from prior running intervals
    """
    running_since: Optional[float] = None
    accumulated_offset_seconds: int = 0

    @property
    def is_running(self) -> bool:
        return self.running_since is not None

    def running_interval_seconds(self, now: float) -> int:
        """Whole seconds in the current running interval, rounded to the nearest second."""
        if self.running_since is None:
            return 0
        return max(0, round(now - self.running_since))

    def elapsed_seconds(self, now: float) -> int:
        """Elapsed match seconds at ``now``."""
        return self.accumulated_offset_seconds + self.running_interval_seconds(now)

    def to_json(self) -> dict:
        return {
            "running_since": self.running_since,
            "accumulated_offset_seconds": self.accumulated_offset_seconds,
        }

    @staticmethod
    def from_json(data: Optional[dict]) -> "ClockState":
        if not data:
            return ClockState()
        running_since = data.get("running_since")
        return ClockState(
            running_since=float(running_since) if running_since is not None else None,
            accumulated_offset_seconds=max(0, int(data.get("accumulated_offset_seconds", 0))),
        )
