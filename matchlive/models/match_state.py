"""
Match-level models for the live match tracker.

This module contains the match record (phase, status, clock, final result),
the starting lineup and the bench roster entries.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .match_clock import ClockState
from .participant import ParticipantKind


class MatchPhase(Enum):
    """Coarse stage of a match. Advisory only: it tags events and gates finalization."""
    NOT_STARTED = "not_started"
    FIRST_HALF = "first_half"
    HALF_TIME = "half_time"
    SECOND_HALF = "second_half"
    EXTRA_TIME = "extra_time"
    ENDED = "ended"

    @property
    def is_terminal(self) -> bool:
        return self is MatchPhase.ENDED


class MatchStatus(Enum):
    """Scheduling status of a match."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"


@dataclass
class MatchRecord:
    """
    Single mutable row per match.

    Attributes:
        id: Match identifier
        opponent_name: Name of the opposing team
        phase: Current match phase
        status: Scheduling status
        clock: Persisted match clock
        our_score: Permanent result for our team, set at finalization
        opponent_score: Permanent result for the opponent, set at finalization
    """
    id: str
    opponent_name: str = ""
    phase: MatchPhase = MatchPhase.NOT_STARTED
    status: MatchStatus = MatchStatus.SCHEDULED
    clock: ClockState = field(default_factory=ClockState)
    our_score: Optional[int] = None
    opponent_score: Optional[int] = None

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "opponent_name": self.opponent_name,
            "phase": self.phase.value,
            "status": self.status.value,
            "clock": self.clock.to_json(),
            "our_score": self.our_score,
            "opponent_score": self.opponent_score,
        }

    @staticmethod
    def from_json(data: dict) -> "MatchRecord":
        return MatchRecord(
            id=data["id"],
            opponent_name=data.get("opponent_name", ""),
            phase=MatchPhase(data.get("phase", MatchPhase.NOT_STARTED.value)),
            status=MatchStatus(data.get("status", MatchStatus.SCHEDULED.value)),
            clock=ClockState.from_json(data.get("clock")),
            our_score=data.get("our_score"),
            opponent_score=data.get("opponent_score"),
        )


@dataclass
class StartingLineup:
    """
    Formation slots filled at kickoff.

    ``slots`` maps formation slot ids to participant ids; an empty slot holds
    None. Substitutions never mutate this mapping: the on-field picture is
    derived from it by replaying the event log.
    """
    match_id: str
    formation_name: str = ""
    slots: Dict[str, Optional[str]] = field(default_factory=dict)

    def assigned_slots(self) -> Dict[str, str]:
        """Slots that hold a participant, in slot order."""
        return {slot: pid for slot, pid in self.slots.items() if pid}

    def assigned_count(self) -> int:
        return len(self.assigned_slots())

    def occupants(self) -> List[str]:
        return list(self.assigned_slots().values())

    def to_json(self) -> dict:
        return {
            "match_id": self.match_id,
            "formation_name": self.formation_name,
            "slots": dict(self.slots),
        }

    @staticmethod
    def from_json(data: dict) -> "StartingLineup":
        return StartingLineup(
            match_id=data["match_id"],
            formation_name=data.get("formation_name", ""),
            slots={str(k): (v or None) for k, v in (data.get("slots") or {}).items()},
        )


@dataclass
class BenchEntry:
    """A participant eligible to be substituted in."""
    participant_id: str
    kind: ParticipantKind = ParticipantKind.PLAYER

    def to_json(self) -> dict:
        return {"participant_id": self.participant_id, "kind": self.kind.value}

    @staticmethod
    def from_json(data: dict) -> "BenchEntry":
        return BenchEntry(
            participant_id=data["participant_id"],
            kind=ParticipantKind(data.get("kind", ParticipantKind.PLAYER.value)),
        )
