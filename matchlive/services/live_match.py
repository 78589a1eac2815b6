"""
Live match session.

The session is the mutation surface an operator works against during a match:
it validates commands, applies the optimistic substitution overlay, writes to
the store, and rebuilds every derived view from the authoritative event log
whenever the store reports a change.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from ..models import (
    BenchEntry, EventType, FormationCatalog, MatchEvent, MatchPhase, MatchRecord,
    ParticipantKind, StartingLineup, Team
)
from ..utils import LiveMatchConfig, EVENT_LABELS
from .change_feed import ChangeNotice
from .clock_service import MatchClockService
from .errors import StoreError, ValidationError
from .event_log import EventLog
from .match_commands import (
    ClockCommand, CommandJournal, CommandResult, DeleteEventCommand, FinalizeMatchCommand,
    PostEventCommand, RemoveFromBenchCommand, SaveBenchCommand, SetLineupCommand,
    SetPhaseCommand, SubstituteCommand, SubstitutionOverlay
)
from .persistence_service import MatchStore
from .roster import (
    derive_on_field, entered_via_substitution, exited_via_substitution,
    find_duplicate_occupants, group_by_role, substituted_out_in_order
)
from .score import Score, project_score
from .stats_finalizer import StatsFinalizer

logger = logging.getLogger(__name__)


@dataclass
class LiveView:
    """Confirmed state rebuilt from the store on every refresh."""
    match: MatchRecord
    lineup: Optional[StartingLineup]
    bench: List[BenchEntry]
    events: List[MatchEvent]
    on_field: Dict[str, str] = field(default_factory=dict)
    entered: Set[str] = field(default_factory=set)
    exited: Set[str] = field(default_factory=set)
    score: Score = field(default_factory=Score)


class LiveMatchSession:
    """
    Command surface for one match.

    Every public command returns a :class:`CommandResult`; failures carry a
    human-readable reason and never raise.
    """

    def __init__(
        self,
        match_id: str,
        store: MatchStore,
        config: Optional[LiveMatchConfig] = None,
        formations: Optional[FormationCatalog] = None,
        finalizer: Optional[StatsFinalizer] = None,
    ):
        self.match_id = match_id
        self.store = store
        self.config = config or LiveMatchConfig()
        self.formations = formations or FormationCatalog()
        self.finalizer = finalizer or StatsFinalizer(store, self.config)
        self.event_log = EventLog(store, match_id)
        self.overlay = SubstitutionOverlay()
        self.journal = CommandJournal()

        self._lock = threading.RLock()
        self._view: Optional[LiveView] = None
        self._stale = False
        self.refresh()
        self._unsubscribe = self.event_log.subscribe(self._on_change)

    def close(self) -> None:
        """Stop listening for store changes."""
        self._unsubscribe()

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------
    def refresh(self) -> LiveView:
        """Re-fetch everything and recompute the derived views from scratch."""
        with self._lock:
            # Cleared before reading so a change landing mid-refresh marks the view again
            self._stale = False
            match = self.store.get_match(self.match_id)
            lineup = self.store.get_lineup(self.match_id)
            bench = self.store.list_bench(self.match_id)
            events = self.event_log.list()

            starting = lineup.slots if lineup else {}
            duplicates = find_duplicate_occupants(starting)
            if duplicates:
                logger.warning("Match %s lineup repeats participants: %s", self.match_id, sorted(duplicates))

            self._view = LiveView(
                match=match,
                lineup=lineup,
                bench=bench,
                events=events,
                on_field=derive_on_field(starting, events),
                entered=entered_via_substitution(events),
                exited=exited_via_substitution(events),
                score=project_score(events),
            )
            self.overlay.reconcile(events)
            return self._view

    def _on_change(self, notice: ChangeNotice) -> None:
        """
        Recompute on a store change without ever waiting on this session's lock.

        Notices are delivered on the writer's thread. When another thread is
        inside this session the view is only marked stale and the next read
        rebuilds it.
        """
        if not self._lock.acquire(blocking=False):
            logger.debug("Change on %s (%s %s) while busy, marking stale", notice.match_id, notice.table, notice.action)
            self._stale = True
            return
        try:
            logger.debug("Change on %s (%s %s), recomputing", notice.match_id, notice.table, notice.action)
            self.refresh()
        except StoreError as exc:
            logger.error("Refresh of match %s failed, keeping last state: %s", self.match_id, exc)
        finally:
            self._lock.release()

    @property
    def view(self) -> LiveView:
        with self._lock:
            if self._view is None or self._stale:
                return self.refresh()
            return self._view

    @property
    def phase(self) -> MatchPhase:
        return self.view.match.phase

    @property
    def score(self) -> Score:
        return self.view.score

    def load_match(self) -> MatchRecord:
        """Fresh copy of the match row, for commands that stamp the clock."""
        return self.store.get_match(self.match_id)

    def on_field(self) -> Dict[str, str]:
        """Slot -> participant with pending substitutions applied on top."""
        return self.overlay.apply(self.view.on_field)

    def exited(self) -> Set[str]:
        return self.view.exited | self.overlay.pending_out_ids()

    def bench_ids(self) -> List[str]:
        pending_in = self.overlay.pending_in_ids()
        ids = [entry.participant_id for entry in self.view.bench if entry.participant_id not in pending_in]
        for out_id in self.overlay.pending_out_ids():
            if out_id not in ids:
                ids.append(out_id)
        return ids

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------
    def tracking_disabled_reason(self) -> Optional[str]:
        """Why posting, clock and substitution commands are blocked, or None."""
        view = self.view
        if view.match.phase.is_terminal:
            return "Match has ended"
        assigned = view.lineup.assigned_count() if view.lineup else 0
        if assigned < self.config.min_lineup_size:
            return (
                f"Starting lineup needs at least {self.config.min_lineup_size} players "
                f"(has {assigned})"
            )
        return None

    @property
    def is_enabled(self) -> bool:
        return self.tracking_disabled_reason() is None

    def require_tracking_enabled(self) -> None:
        reason = self.tracking_disabled_reason()
        if reason:
            raise ValidationError(reason)

    def require_not_ended(self, message: str = "Match has ended") -> None:
        if self.view.match.phase.is_terminal:
            raise ValidationError(message)

    def validate_substitution(self, out_id: Optional[str], in_id: Optional[str]) -> None:
        """Reject substitutions that do not fit the field, the bench, or the no re-entry rule."""
        if not out_id or not in_id:
            raise ValidationError("Both the outgoing and incoming participant are required")
        if out_id == in_id:
            raise ValidationError("A participant cannot replace themselves")

        playing = set(self.on_field().values())
        if out_id not in playing:
            raise ValidationError(f"{self.participant_label(out_id)} is not on the field")
        if in_id in self.exited():
            raise ValidationError(f"{self.participant_label(in_id)} was substituted out and cannot re-enter")
        if in_id in playing:
            raise ValidationError(f"{self.participant_label(in_id)} is already on the field")
        if in_id not in self.bench_ids():
            raise ValidationError(f"{self.participant_label(in_id)} is not on the bench")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def post_event(
        self,
        event_type,
        team=Team.US,
        participant_ref: Optional[str] = None,
        assist_ref: Optional[str] = None,
        comment: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> CommandResult:
        """Post an event; substitutions are routed through :meth:`substitute`."""
        if event_type in (EventType.SUBSTITUTION, EventType.SUBSTITUTION.value):
            metadata = metadata or {}
            return self.substitute(metadata.get("out_id"), metadata.get("in_id"))
        return self._run(PostEventCommand(
            self, event_type, team, participant_ref, assist_ref, comment, metadata
        ))

    def delete_event(self, event_id: str) -> CommandResult:
        return self._run(DeleteEventCommand(self, event_id))

    def start_clock(self) -> CommandResult:
        return self._run(ClockCommand(self, "start"))

    def pause_clock(self) -> CommandResult:
        return self._run(ClockCommand(self, "pause"))

    def reset_clock(self) -> CommandResult:
        return self._run(ClockCommand(self, "reset"))

    def set_phase(self, phase) -> CommandResult:
        """Jump to any phase; choosing ``ended`` finalizes the match."""
        if phase in (MatchPhase.ENDED, MatchPhase.ENDED.value):
            return self.finalize_match()
        return self._run(SetPhaseCommand(self, phase))

    def substitute(self, out_id: Optional[str], in_id: Optional[str]) -> CommandResult:
        return self._run(SubstituteCommand(self, out_id, in_id))

    def finalize_match(self) -> CommandResult:
        return self._run(FinalizeMatchCommand(self))

    def set_lineup(self, formation_name: str, slots: Dict[str, Optional[str]]) -> CommandResult:
        return self._run(SetLineupCommand(self, formation_name, slots))

    def save_bench(self, entries: Iterable[BenchEntry]) -> CommandResult:
        return self._run(SaveBenchCommand(self, entries))

    def remove_from_bench(self, participant_id: str) -> CommandResult:
        return self._run(RemoveFromBenchCommand(self, participant_id))

    def _run(self, command) -> CommandResult:
        with self._lock:
            result = self.journal.run(command)
            if result.success:
                try:
                    self.refresh()
                except StoreError as exc:
                    logger.error("Refresh after %s failed: %s", command.description, exc)
            return result

    # ------------------------------------------------------------------
    # Rendering helpers
    # ------------------------------------------------------------------
    def participant_label(self, participant_id: Optional[str]) -> str:
        if not participant_id:
            return ""
        participant = self.store.get_participant(participant_id)
        return participant.display_name if participant else participant_id

    def participant_kind(self, participant_id: str) -> ParticipantKind:
        participant = self.store.get_participant(participant_id)
        return participant.kind if participant else ParticipantKind.PLAYER

    def timeline(self) -> List[Dict[str, Any]]:
        """Events newest first, with display names resolved."""
        entries = []
        for event in self.event_log.list_newest_first():
            entry = event.to_json()
            entry["label"] = EVENT_LABELS.get(event.type.value, event.type.value)
            entry["participant_name"] = self.participant_label(event.participant_ref)
            entry["assist_name"] = self.participant_label(event.assist_ref)
            if event.is_substitution:
                entry["out_name"] = self.participant_label(event.out_id)
                entry["in_name"] = self.participant_label(event.in_id)
            entries.append(entry)
        return entries

    def snapshot(self) -> Dict[str, Any]:
        """Everything the live screen needs in one read."""
        with self._lock:
            view = self.view
            lineup = view.lineup
            formation = self.formations.get(lineup.formation_name) if lineup else None
            on_field = self.on_field()
            clock = MatchClockService(view.match.clock).describe()

            field_groups = {
                role.value: [
                    {"slot": slot, "participant_id": pid, "name": self.participant_label(pid)}
                    for slot, pid in members
                ]
                for role, members in group_by_role(on_field, formation).items()
            }

            return {
                "match": view.match.to_json(),
                "phase": view.match.phase.value,
                "status": view.match.status.value,
                "clock": clock,
                "score": view.score.to_dict(),
                "formation": lineup.formation_name if lineup else None,
                "on_field": field_groups,
                "substituted_out": [
                    {"participant_id": pid, "name": self.participant_label(pid), "minute": minute}
                    for pid, minute in substituted_out_in_order(view.events)
                ],
                "bench": [
                    {"participant_id": pid, "name": self.participant_label(pid)}
                    for pid in self.bench_ids()
                    if pid not in on_field.values()
                ],
                "pending_substitutions": [p.to_dict() for p in self.overlay.pending()],
                "enabled": self.is_enabled,
                "disabled_reason": self.tracking_disabled_reason(),
                "event_count": len(view.events),
            }
