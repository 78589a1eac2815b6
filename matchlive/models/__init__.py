"""
Models package for the live match tracker.

This package contains the core data models used throughout the application.
"""
from .participant import Participant, ParticipantKind, ParticipantStatsRow
from .match_clock import ClockState
from .match_state import MatchPhase, MatchStatus, MatchRecord, StartingLineup, BenchEntry
from .match_event import EventType, Team, MatchEvent
from .formation import (
    Formation, FormationCatalog, FormationSlot, FormationTemplates,
    FormationType, DisplayRole, Position
)

__all__ = [
    "Participant", "ParticipantKind", "ParticipantStatsRow", "ClockState",
    "MatchPhase", "MatchStatus", "MatchRecord", "StartingLineup", "BenchEntry",
    "EventType", "Team", "MatchEvent", "Formation", "FormationCatalog",
    "FormationSlot", "FormationTemplates", "FormationType", "DisplayRole", "Position"
]
