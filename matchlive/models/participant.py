"""
Participant models for the live match tracker.

A participant is anyone who can appear in a lineup, on the bench or in an
event: a rostered player or a trial participant. Directory data (name, jersey
number) is used for rendering only and never for derivation.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ParticipantKind(Enum):
    """Whether a participant is a rostered player or on trial."""
    PLAYER = "player"
    TRIALIST = "trialist"


@dataclass
class Participant:
    """
    Read-only directory entry for a participant.

    Attributes:
        id: Unique participant identifier
        name: Display name
        jersey_number: Shirt number, if any
        kind: Rostered player or trialist
        role: Preferred role label (e.g. "GK", "CB"), display only
    """
    id: str
    name: str
    jersey_number: Optional[int] = None
    kind: ParticipantKind = ParticipantKind.PLAYER
    role: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.jersey_number is not None:
            return f"#{self.jersey_number} {self.name}"
        return self.name

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "jersey_number": self.jersey_number,
            "kind": self.kind.value,
            "role": self.role,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Participant':
        """Create from dictionary for JSON deserialization."""
        number = data.get("jersey_number")
        return cls(
            id=str(data["id"]),
            name=data.get("name") or str(data["id"]),
            jersey_number=int(number) if number not in (None, "") else None,
            kind=ParticipantKind(data.get("kind", ParticipantKind.PLAYER.value)),
            role=data.get("role"),
        )


@dataclass
class ParticipantStatsRow:
    """Per-participant statistics produced when a match is finalized."""
    match_id: str
    participant_id: str
    started: bool = False
    minutes_played: int = 0
    goals: int = 0
    assists: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    fouls_committed: int = 0
    saves: int = 0
    sub_in_minute: Optional[int] = None
    sub_out_minute: Optional[int] = None
    was_in_squad: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "match_id": self.match_id,
            "participant_id": self.participant_id,
            "started": self.started,
            "minutes_played": self.minutes_played,
            "goals": self.goals,
            "assists": self.assists,
            "yellow_cards": self.yellow_cards,
            "red_cards": self.red_cards,
            "fouls_committed": self.fouls_committed,
            "saves": self.saves,
            "sub_in_minute": self.sub_in_minute,
            "sub_out_minute": self.sub_out_minute,
            "was_in_squad": self.was_in_squad,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ParticipantStatsRow':
        """Create from dictionary for JSON deserialization."""
        return cls(
            match_id=data["match_id"],
            participant_id=data["participant_id"],
            started=bool(data.get("started", False)),
            minutes_played=data.get("minutes_played", 0),
            goals=data.get("goals", 0),
            assists=data.get("assists", 0),
            yellow_cards=data.get("yellow_cards", 0),
            red_cards=data.get("red_cards", 0),
            fouls_committed=data.get("fouls_committed", 0),
            saves=data.get("saves", 0),
            sub_in_minute=data.get("sub_in_minute"),
            sub_out_minute=data.get("sub_out_minute"),
            was_in_squad=bool(data.get("was_in_squad", False)),
        )
