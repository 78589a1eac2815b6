"""
Command pattern implementation for live match actions.

Every mutation an operator can perform is a command object that validates,
optionally applies an optimistic local effect, persists, and is then either
confirmed or rolled back. The journal keeps a short history of outcomes so a
failed action can be reported to the operator.
"""
from __future__ import annotations

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Set

from ..models import (
    BenchEntry, EventType, MatchEvent, MatchPhase, MatchStatus, StartingLineup, Team
)
from ..utils import now_ts
from .clock_service import MatchClockService
from .errors import FinalizationError, MatchLiveError, NotFoundError, StoreError, ValidationError
from .roster import apply_substitution, substitution_events

if TYPE_CHECKING:
    from .live_match import LiveMatchSession

logger = logging.getLogger(__name__)


class CommandStatus(Enum):
    """Lifecycle of an issued command."""
    ISSUED = "issued"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"
    REJECTED = "rejected"


@dataclass
class CommandResult:
    """
    Outcome reported back to the operator.

    Attributes:
        success: Whether the command took effect
        message: Human-readable summary on success
        error: Human-readable reason on failure
        error_kind: ``"validation"``, ``"not_found"`` or ``"backend"`` on failure
        data: Extra payload (new event id, clock reading, ...)
    """
    success: bool
    message: str = ""
    error: Optional[str] = None
    error_kind: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, **data: Any) -> "CommandResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def failed(cls, error: str, kind: str) -> "CommandResult":
        return cls(success=False, error=error, error_kind=kind)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.success:
            payload["message"] = self.message
        else:
            payload["error"] = self.error
            payload["error_kind"] = self.error_kind
        payload.update(self.data)
        return payload


# ----------------------------------------------------------------------
# Optimistic substitution overlay
# ----------------------------------------------------------------------
@dataclass
class PendingSubstitution:
    """A substitution shown locally before the event log confirms it."""
    correlation_id: str
    out_id: str
    in_id: str
    status: CommandStatus = CommandStatus.ISSUED
    issued_ts: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correlation_id": self.correlation_id,
            "out_id": self.out_id,
            "in_id": self.in_id,
            "status": self.status.value,
        }


class SubstitutionOverlay:
    """
    View-only list of pending substitutions applied over the confirmed roster.

    Entries are cleared by :meth:`reconcile` as soon as a log replay contains a
    substitution the overlay has not seen before, whether or not it matches, so
    a missed confirmation can never leave the view drifting.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: Dict[str, PendingSubstitution] = {}
        self._seen_substitution_ids: Set[str] = set()

    def issue(self, out_id: str, in_id: str) -> PendingSubstitution:
        pending = PendingSubstitution(
            correlation_id=uuid.uuid4().hex, out_id=out_id, in_id=in_id, issued_ts=now_ts()
        )
        with self._lock:
            self._pending[pending.correlation_id] = pending
        return pending

    def confirm(self, correlation_id: str) -> None:
        with self._lock:
            pending = self._pending.get(correlation_id)
            if pending is not None:
                pending.status = CommandStatus.CONFIRMED

    def roll_back(self, correlation_id: str) -> None:
        with self._lock:
            pending = self._pending.pop(correlation_id, None)
        if pending is not None:
            pending.status = CommandStatus.ROLLED_BACK

    def pending(self) -> List[PendingSubstitution]:
        with self._lock:
            return list(self._pending.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def pending_out_ids(self) -> Set[str]:
        return {p.out_id for p in self.pending()}

    def pending_in_ids(self) -> Set[str]:
        return {p.in_id for p in self.pending()}

    def apply(self, on_field: Dict[str, str]) -> Dict[str, str]:
        """Return a copy of ``on_field`` with every pending substitution applied."""
        result = dict(on_field)
        for pending in self.pending():
            apply_substitution(result, pending.out_id, pending.in_id)
        return result

    def reconcile(self, events: Iterable[MatchEvent]) -> int:
        """
        Drop pending entries confirmed by a fresh replay of the log.

        Returns:
            Number of entries cleared
        """
        subs = substitution_events(events)
        confirmed_pairs = {(e.out_id, e.in_id) for e in subs}
        current_ids = {e.id for e in subs}

        with self._lock:
            new_ids = current_ids - self._seen_substitution_ids
            self._seen_substitution_ids = current_ids

            if new_ids:
                cleared = list(self._pending.values())
            else:
                cleared = [p for p in self._pending.values() if (p.out_id, p.in_id) in confirmed_pairs]
            for pending in cleared:
                self._pending.pop(pending.correlation_id, None)
                if (pending.out_id, pending.in_id) in confirmed_pairs:
                    pending.status = CommandStatus.CONFIRMED

        if cleared:
            logger.debug("Reconciled %d pending substitutions", len(cleared))
        return len(cleared)


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------
class MatchCommand(ABC):
    """Abstract base class for all live match commands - Command pattern."""

    def __init__(self, session: "LiveMatchSession"):
        self.session = session
        self.status: Optional[CommandStatus] = None

    def validate(self) -> None:
        """Raise :class:`ValidationError` to reject the command before any store call."""

    def apply_optimistic(self) -> None:
        """Apply the local effect shown before the store confirms."""

    @abstractmethod
    def persist(self) -> CommandResult:
        """Write to the store and describe the outcome."""

    def confirm(self) -> None:
        """Called after :meth:`persist` succeeded."""

    def roll_back(self) -> None:
        """Undo the optimistic effect after a failed :meth:`persist`."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Get human-readable description of the command."""


def _parse_enum(enum_cls, value, label: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Unknown {label} '{value}' (expected one of: {choices})")


class PostEventCommand(MatchCommand):
    """Append a non-substitution event stamped with the current minute and phase."""

    def __init__(
        self,
        session: "LiveMatchSession",
        event_type,
        team=Team.US,
        participant_ref: Optional[str] = None,
        assist_ref: Optional[str] = None,
        comment: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(session)
        self.event_type = event_type
        self.team = team
        self.participant_ref = participant_ref or None
        self.assist_ref = assist_ref or None
        self.comment = comment.strip() if isinstance(comment, str) else comment
        self.metadata = dict(metadata or {})

    def validate(self) -> None:
        self.event_type = _parse_enum(EventType, self.event_type, "event type")
        self.team = _parse_enum(Team, self.team or Team.US, "team")
        self.session.require_tracking_enabled()

        if self.event_type is EventType.SUBSTITUTION:
            raise ValidationError("Substitutions must go through the substitution command")
        if self.event_type is EventType.NOTE and not self.comment:
            raise ValidationError("A note needs some text")

    def persist(self) -> CommandResult:
        match = self.session.load_match()
        minute = MatchClockService(match.clock).current_minute()
        event = MatchEvent(
            id="",
            match_id=self.session.match_id,
            type=self.event_type,
            minute=minute,
            phase=match.phase,
            team=self.team,
            participant_ref=self.participant_ref,
            assist_ref=self.assist_ref,
            comment=self.comment or None,
            metadata=self.metadata,
        )
        event_id = self.session.event_log.append(event)
        return CommandResult.ok(f"{self.description} at {minute}'", event_id=event_id, minute=minute)

    @property
    def description(self) -> str:
        label = self.event_type.value if isinstance(self.event_type, EventType) else self.event_type
        return f"Post {label}"


class DeleteEventCommand(MatchCommand):
    """Remove a mistaken event from the log."""

    def __init__(self, session: "LiveMatchSession", event_id: str):
        super().__init__(session)
        self.event_id = event_id

    def validate(self) -> None:
        self.session.require_not_ended()
        if not self.event_id:
            raise ValidationError("An event id is required")

    def persist(self) -> CommandResult:
        self.session.event_log.remove(self.event_id)
        return CommandResult.ok("Event deleted", event_id=self.event_id)

    @property
    def description(self) -> str:
        return f"Delete event {self.event_id}"


class ClockCommand(MatchCommand):
    """Start, pause or reset the persisted match clock."""

    ACTIONS = ("start", "pause", "reset")

    def __init__(self, session: "LiveMatchSession", action: str):
        super().__init__(session)
        self.action = action

    def validate(self) -> None:
        if self.action not in self.ACTIONS:
            raise ValidationError(f"Unknown clock action '{self.action}'")
        self.session.require_tracking_enabled()

    def persist(self) -> CommandResult:
        match = self.session.load_match()
        clock = MatchClockService(match.clock)

        if self.action == "start":
            changed = clock.start()
            if match.status is MatchStatus.SCHEDULED:
                match.status = MatchStatus.IN_PROGRESS
        elif self.action == "pause":
            changed = clock.pause()
        else:
            clock.reset()
            changed = True

        if changed:
            self.session.store.save_match(match)
        message = {
            "start": "Clock running" if changed else "Clock already running",
            "pause": "Clock paused" if changed else "Clock already paused",
            "reset": "Clock reset",
        }[self.action]
        return CommandResult.ok(message, clock=clock.describe())

    @property
    def description(self) -> str:
        return f"{self.action.capitalize()} clock"


class SetPhaseCommand(MatchCommand):
    """Move the match to an operator-selected phase."""

    def __init__(self, session: "LiveMatchSession", phase):
        super().__init__(session)
        self.phase = phase

    def validate(self) -> None:
        self.phase = _parse_enum(MatchPhase, self.phase, "phase")
        self.session.require_not_ended()
        if self.phase is MatchPhase.ENDED:
            raise ValidationError("Use finalize to end the match")

    def persist(self) -> CommandResult:
        match = self.session.load_match()
        match.phase = self.phase
        if match.status is MatchStatus.SCHEDULED and self.phase is not MatchPhase.NOT_STARTED:
            match.status = MatchStatus.IN_PROGRESS
        self.session.store.save_match(match)
        return CommandResult.ok(f"Phase set to {self.phase.value}", phase=self.phase.value)

    @property
    def description(self) -> str:
        label = self.phase.value if isinstance(self.phase, MatchPhase) else self.phase
        return f"Set phase {label}"


class SubstituteCommand(MatchCommand):
    """Replace an on-field participant with a bench participant."""

    def __init__(self, session: "LiveMatchSession", out_id: str, in_id: str):
        super().__init__(session)
        self.out_id = out_id
        self.in_id = in_id
        self.pending = None

    def validate(self) -> None:
        self.session.require_tracking_enabled()
        self.session.validate_substitution(self.out_id, self.in_id)

    def apply_optimistic(self) -> None:
        self.pending = self.session.overlay.issue(self.out_id, self.in_id)

    def persist(self) -> CommandResult:
        session = self.session
        match = session.load_match()
        minute = MatchClockService(match.clock).current_minute()
        event = MatchEvent(
            id="",
            match_id=session.match_id,
            type=EventType.SUBSTITUTION,
            minute=minute,
            phase=match.phase,
            team=Team.US,
            metadata={"out_id": self.out_id, "in_id": self.in_id},
        )

        # Bench membership must follow the field: the event and bench update land together
        with session.store.transaction(session.match_id):
            event_id = session.event_log.append(event)
            session.store.add_to_bench(
                session.match_id, BenchEntry(self.out_id, session.participant_kind(self.out_id))
            )
            session.store.remove_from_bench(session.match_id, self.in_id)

        return CommandResult.ok(
            f"{session.participant_label(self.in_id)} on for "
            f"{session.participant_label(self.out_id)} at {minute}'",
            event_id=event_id,
            minute=minute,
            correlation_id=self.pending.correlation_id if self.pending else None,
        )

    def confirm(self) -> None:
        if self.pending is not None:
            self.session.overlay.confirm(self.pending.correlation_id)

    def roll_back(self) -> None:
        if self.pending is not None:
            self.session.overlay.roll_back(self.pending.correlation_id)

    @property
    def description(self) -> str:
        return f"Substitute {self.out_id} → {self.in_id}"


class FinalizeMatchCommand(MatchCommand):
    """Replay the log into statistics, store the result and end the match."""

    def validate(self) -> None:
        self.session.require_not_ended("Match has already ended")

    def persist(self) -> CommandResult:
        result = self.session.finalizer.finalize(self.session.match_id)
        return CommandResult.ok(
            f"Match finalized {result.score.us}-{result.score.opponent}",
            score=result.score.to_dict(),
            match_end_minute=result.match_end_minute,
            stats=[row.to_dict() for row in result.rows],
        )

    @property
    def description(self) -> str:
        return "Finalize match"


class SetLineupCommand(MatchCommand):
    """Store the starting lineup; only allowed before kickoff."""

    def __init__(self, session: "LiveMatchSession", formation_name: str, slots: Dict[str, Optional[str]]):
        super().__init__(session)
        self.formation_name = formation_name or ""
        self.slots = {str(slot): (pid or None) for slot, pid in (slots or {}).items()}

    def validate(self) -> None:
        view = self.session.view
        if view.match.phase is not MatchPhase.NOT_STARTED:
            raise ValidationError("The starting lineup is fixed once the match has started")

        formation = self.session.formations.get(self.formation_name) if self.formation_name else None
        if self.formation_name and formation is None:
            raise ValidationError(f"Unknown formation '{self.formation_name}'")
        if formation is not None:
            unknown = [slot for slot in self.slots if slot not in formation.slot_ids()]
            if unknown:
                raise ValidationError(f"Slots not in {formation.name}: {', '.join(sorted(unknown))}")

        assigned = [pid for pid in self.slots.values() if pid]
        duplicates = sorted({pid for pid in assigned if assigned.count(pid) > 1})
        if duplicates:
            raise ValidationError(f"Assigned to more than one slot: {', '.join(duplicates)}")

        benched = sorted(set(assigned) & {entry.participant_id for entry in view.bench})
        if benched:
            raise ValidationError(f"Already on the bench: {', '.join(benched)}")

    def persist(self) -> CommandResult:
        lineup = StartingLineup(
            match_id=self.session.match_id, formation_name=self.formation_name, slots=self.slots
        )
        self.session.store.save_lineup(lineup)
        return CommandResult.ok("Starting lineup saved", assigned=lineup.assigned_count())

    @property
    def description(self) -> str:
        return "Set starting lineup"


class SaveBenchCommand(MatchCommand):
    """Replace the bench roster."""

    def __init__(self, session: "LiveMatchSession", entries: Iterable[BenchEntry]):
        super().__init__(session)
        self.entries = list(entries)

    def validate(self) -> None:
        self.session.require_not_ended()
        playing = set(self.session.on_field().values())
        clash = sorted(entry.participant_id for entry in self.entries if entry.participant_id in playing)
        if clash:
            raise ValidationError(f"Currently on the field: {', '.join(clash)}")

    def persist(self) -> CommandResult:
        self.session.store.save_bench(self.session.match_id, self.entries)
        return CommandResult.ok("Bench saved", size=len(self.entries))

    @property
    def description(self) -> str:
        return "Save bench"


class RemoveFromBenchCommand(MatchCommand):
    """Take a single participant off the bench."""

    def __init__(self, session: "LiveMatchSession", participant_id: str):
        super().__init__(session)
        self.participant_id = participant_id

    def validate(self) -> None:
        self.session.require_not_ended()

    def persist(self) -> CommandResult:
        if not self.session.store.remove_from_bench(self.session.match_id, self.participant_id):
            raise NotFoundError(f"{self.participant_id} is not on the bench")
        return CommandResult.ok("Removed from bench", participant_id=self.participant_id)

    @property
    def description(self) -> str:
        return f"Remove {self.participant_id} from bench"


# ----------------------------------------------------------------------
# Journal
# ----------------------------------------------------------------------
@dataclass
class JournalEntry:
    """History line for one command."""
    description: str
    status: CommandStatus
    detail: str
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "status": self.status.value,
            "detail": self.detail,
            "timestamp": self.timestamp,
        }


class CommandJournal:
    """
    Runs commands and keeps a bounded history of their outcomes.

    No command is retried automatically: a failed command is reported and the
    operator re-issues it.
    """

    def __init__(self, max_history: int = 50):
        self.max_history = max_history
        self._history: List[JournalEntry] = []

    def run(self, command: MatchCommand) -> CommandResult:
        try:
            command.validate()
        except ValidationError as exc:
            return self._finish(command, CommandStatus.REJECTED, CommandResult.failed(str(exc), _kind(exc)))

        command.apply_optimistic()
        command.status = CommandStatus.ISSUED
        try:
            result = command.persist()
        except ValidationError as exc:
            command.roll_back()
            return self._finish(command, CommandStatus.REJECTED, CommandResult.failed(str(exc), _kind(exc)))
        except (StoreError, FinalizationError) as exc:
            command.roll_back()
            logger.error("%s failed: %s", command.description, exc)
            return self._finish(
                command,
                CommandStatus.ROLLED_BACK,
                CommandResult.failed(f"{command.description} failed: {exc}", "backend"),
            )

        command.confirm()
        return self._finish(command, CommandStatus.CONFIRMED, result)

    def history(self) -> List[JournalEntry]:
        return list(self._history)

    def _finish(self, command: MatchCommand, status: CommandStatus, result: CommandResult) -> CommandResult:
        command.status = status
        detail = result.message if result.success else (result.error or "")
        self._history.append(JournalEntry(command.description, status, detail, now_ts()))
        if len(self._history) > self.max_history:
            self._history.pop(0)
        if status is CommandStatus.REJECTED:
            logger.info("%s rejected: %s", command.description, detail)
        return result


def _kind(exc: MatchLiveError) -> str:
    return "not_found" if isinstance(exc, NotFoundError) else "validation"
