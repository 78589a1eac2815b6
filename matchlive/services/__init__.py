"""
Services package for the live match tracker.

This package contains the event log, clock, derivations, statistics
finalization and the live command surface, plus a factory that wires them.
"""
from .errors import (
    MatchLiveError, ValidationError, NotFoundError, StoreError, FinalizationError
)
from .change_feed import ChangeFeed, ChangeNotice
from .persistence_service import MatchStore, InMemoryMatchStore, JsonFileMatchStore
from .event_log import EventLog
from .clock_service import MatchClockService
from .score import Score, project_score, score_contribution
from .roster import (
    derive_on_field, entered_via_substitution, exited_via_substitution, role_for_slot
)
from .stats_finalizer import (
    StatsFinalizer, StatsReportExporter, FinalizationResult,
    compute_participant_stats, match_end_minute
)
from .match_commands import CommandResult, CommandStatus, SubstitutionOverlay, PendingSubstitution
from .live_match import LiveMatchSession, LiveView
from .service_factory import ServiceFactory

__all__ = [
    "MatchLiveError", "ValidationError", "NotFoundError", "StoreError", "FinalizationError",
    "ChangeFeed", "ChangeNotice", "MatchStore", "InMemoryMatchStore", "JsonFileMatchStore",
    "EventLog", "MatchClockService", "Score", "project_score", "score_contribution",
    "derive_on_field", "entered_via_substitution", "exited_via_substitution", "role_for_slot",
    "StatsFinalizer", "StatsReportExporter", "FinalizationResult",
    "compute_participant_stats", "match_end_minute", "CommandResult", "CommandStatus",
    "SubstitutionOverlay", "PendingSubstitution", "LiveMatchSession", "LiveView", "ServiceFactory"
]
