"""
Match event model for the live match tracker.

Events are immutable once persisted: the event log only ever appends or deletes
whole events. Replay order is the store-assigned ``sequence``; the ``minute``
field is advisory and used for display and statistics only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .match_state import MatchPhase


class EventType(Enum):
    """Discrete things that can happen during a match."""
    GOAL = "goal"
    OWN_GOAL = "own_goal"
    PEN_SCORED = "pen_scored"
    PEN_MISSED = "pen_missed"
    ASSIST = "assist"
    YELLOW_CARD = "yellow_card"
    RED_CARD = "red_card"
    FOUL = "foul"
    SAVE = "save"
    NOTE = "note"
    SUBSTITUTION = "substitution"


class Team(Enum):
    """Side an event is credited to."""
    US = "us"
    OPPONENT = "opponent"

    def other(self) -> "Team":
        return Team.OPPONENT if self is Team.US else Team.US


@dataclass(frozen=True)
class MatchEvent:
    """
    A single entry of the event log.

    Attributes:
        id: Opaque unique identifier
        match_id: Owning match
        type: Kind of event
        minute: 1-indexed match minute when the event was posted
        phase: Match phase in effect when the event was posted
        team: Side the event is credited to (substitutions are always ours)
        participant_ref: Participant the event is attributed to
        assist_ref: Secondary participant credited with the assist
        comment: Free text, required for notes
        metadata: Structured payload; ``{"out_id", "in_id"}`` for substitutions
        sequence: Creation order assigned by the store
        created_ts: Epoch seconds when the event was created
    """
    id: str
    match_id: str
    type: EventType
    minute: int
    phase: MatchPhase
    team: Team = Team.US
    participant_ref: Optional[str] = None
    assist_ref: Optional[str] = None
    comment: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    sequence: int = 0
    created_ts: Optional[float] = None

    @property
    def is_substitution(self) -> bool:
        return self.type is EventType.SUBSTITUTION

    @property
    def out_id(self) -> Optional[str]:
        return self.metadata.get("out_id") if self.is_substitution else None

    @property
    def in_id(self) -> Optional[str]:
        return self.metadata.get("in_id") if self.is_substitution else None

    def referenced_participants(self) -> tuple:
        """Participant ids this event mentions, attribution first."""
        if self.is_substitution:
            refs = (self.out_id, self.in_id)
        else:
            refs = (self.participant_ref, self.assist_ref)
        return tuple(ref for ref in refs if ref)

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "match_id": self.match_id,
            "type": self.type.value,
            "minute": self.minute,
            "phase": self.phase.value,
            "team": self.team.value,
            "participant_ref": self.participant_ref,
            "assist_ref": self.assist_ref,
            "comment": self.comment,
            "metadata": dict(self.metadata),
            "sequence": self.sequence,
            "created_ts": self.created_ts,
        }

    @staticmethod
    def from_json(data: dict) -> "MatchEvent":
        return MatchEvent(
            id=data["id"],
            match_id=data["match_id"],
            type=EventType(data["type"]),
            minute=int(data.get("minute", 1)),
            phase=MatchPhase(data.get("phase", MatchPhase.NOT_STARTED.value)),
            team=Team(data.get("team") or Team.US.value),
            participant_ref=data.get("participant_ref"),
            assist_ref=data.get("assist_ref"),
            comment=data.get("comment"),
            metadata=dict(data.get("metadata") or {}),
            sequence=int(data.get("sequence", 0)),
            created_ts=data.get("created_ts"),
        )
