"""
Statistics finalization for the live match tracker.

At match end the whole event log is replayed against the starting lineup and
bench to produce one statistics row per participant who touched the match.
Rows, the final score and the phase flip are committed together or not at all.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ..models import (
    EventType, MatchEvent, MatchPhase, MatchStatus, Participant, ParticipantStatsRow
)
from ..utils import LiveMatchConfig, MIN_MATCH_END_MINUTE
from ..utils.constants import STAT_FIELD_BY_EVENT_TYPE
from .clock_service import MatchClockService
from .errors import FinalizationError, StoreError, ValidationError
from .persistence_service import MatchStore
from .roster import substitution_events
from .score import Score, project_score

logger = logging.getLogger(__name__)

ASSIST_CREDIT_EVENT_TYPES = (EventType.GOAL, EventType.PEN_SCORED)


@dataclass
class FinalizationResult:
    """Outcome of a successful finalization."""
    match_id: str
    score: Score
    match_end_minute: int
    rows: List[ParticipantStatsRow] = field(default_factory=list)


def match_end_minute(
    events: Iterable[MatchEvent],
    clock_minute: int,
    floor: int = MIN_MATCH_END_MINUTE,
) -> int:
    """
    Minute the match is considered to end at.

    Respects stoppage-time events and a clock that ran long, with ``floor`` as
    the minimum. There is no ceiling.
    """
    highest_event_minute = max((event.minute for event in events), default=0)
    return max(floor, highest_event_minute, clock_minute)


def _first_minutes(subs: Sequence[MatchEvent], attribute: str) -> Dict[str, int]:
    first: Dict[str, int] = {}
    for event in subs:
        pid = getattr(event, attribute)
        if pid and pid not in first:
            first[pid] = event.minute
    return first


def compute_participant_stats(
    match_id: str,
    starting_lineup: Mapping[str, Optional[str]],
    bench_ids: Iterable[str],
    events: Sequence[MatchEvent],
    clock_minute: int,
    min_end_minute: int = MIN_MATCH_END_MINUTE,
) -> List[ParticipantStatsRow]:
    """
    Replay the event log into per-participant statistics rows.

    Args:
        match_id: Match the rows belong to
        starting_lineup: Slot id -> participant id at kickoff
        bench_ids: Participants recorded on the bench
        events: Full event log in creation order
        clock_minute: ``current_minute()`` of the clock at finalize time
        min_end_minute: Floor for the match end minute

    Returns:
        One row per starter, bench member, substitution participant and
        event-attributed participant, in that order of first appearance
    """
    events = list(events)
    subs = substitution_events(events)
    end_minute = match_end_minute(events, clock_minute, min_end_minute)

    starters = list(dict.fromkeys(pid for pid in starting_lineup.values() if pid))
    starter_set = set(starters)
    first_in = _first_minutes(subs, "in_id")
    first_out = _first_minutes(subs, "out_id")

    # Substituted-out participants join the bench; substituted-in ones came from it
    ever_on_bench = set(bench_ids) | set(first_in) | set(first_out)

    universe: Dict[str, None] = {}
    for pid in starters:
        universe[pid] = None
    for pid in bench_ids:
        universe[pid] = None
    for event in subs:
        for pid in (event.out_id, event.in_id):
            if pid:
                universe[pid] = None
    for event in events:
        if not event.is_substitution:
            for pid in event.referenced_participants():
                universe[pid] = None

    rows: Dict[str, ParticipantStatsRow] = {}
    for pid in universe:
        started = pid in starter_set
        entry_minute: Optional[int] = 0 if started else first_in.get(pid)
        exit_minute = first_out.get(pid)

        minutes = 0
        if entry_minute is not None:
            end = exit_minute if exit_minute is not None else end_minute
            minutes = max(0, end - entry_minute)

        rows[pid] = ParticipantStatsRow(
            match_id=match_id,
            participant_id=pid,
            started=started,
            minutes_played=minutes,
            sub_in_minute=None if started else first_in.get(pid),
            sub_out_minute=exit_minute,
            was_in_squad=started or pid in ever_on_bench,
        )

    for event in events:
        if event.is_substitution:
            continue
        stat_field = STAT_FIELD_BY_EVENT_TYPE.get(event.type.value)
        if stat_field and event.participant_ref in rows:
            row = rows[event.participant_ref]
            setattr(row, stat_field, getattr(row, stat_field) + 1)
        if event.type in ASSIST_CREDIT_EVENT_TYPES and event.assist_ref in rows:
            rows[event.assist_ref].assists += 1

    return list(rows.values())


class StatsFinalizer:
    """Runs the one-off end-of-match replay and commits its results atomically."""

    def __init__(self, store: MatchStore, config: Optional[LiveMatchConfig] = None):
        self.store = store
        self.config = config or LiveMatchConfig()

    def finalize(self, match_id: str) -> FinalizationResult:
        """
        Compute and persist statistics, the final score and the ``ended`` phase.

        Raises:
            ValidationError: If the match has already ended
            FinalizationError: If the store fails; nothing is committed
        """
        match = self.store.get_match(match_id)
        if match.phase.is_terminal:
            raise ValidationError("Match has already ended")

        events = self.store.list_events(match_id)
        lineup = self.store.get_lineup(match_id)
        bench = self.store.list_bench(match_id)

        clock = MatchClockService(match.clock)
        clock_minute = clock.current_minute()
        end_minute = match_end_minute(events, clock_minute, self.config.min_match_end_minute)

        rows = compute_participant_stats(
            match_id,
            lineup.slots if lineup else {},
            [entry.participant_id for entry in bench],
            events,
            clock_minute,
            self.config.min_match_end_minute,
        )
        score = project_score(events)

        clock.pause()
        match.phase = MatchPhase.ENDED
        match.status = MatchStatus.COMPLETED
        match.our_score = score.us
        match.opponent_score = score.opponent

        try:
            with self.store.transaction(match_id):
                self.store.upsert_participant_stats(match_id, rows)
                self.store.save_match(match)
        except StoreError as exc:
            logger.error("Finalization of match %s failed: %s", match_id, exc)
            raise FinalizationError(f"Could not finalize match: {exc}") from exc

        logger.info(
            "Finalized match %s: %d-%d, %d statistics rows, end minute %d",
            match_id, score.us, score.opponent, len(rows), end_minute,
        )
        return FinalizationResult(match_id=match_id, score=score, match_end_minute=end_minute, rows=rows)


class StatsReportExporter:
    """Exports finalized statistics rows as CSV."""

    HEADER = [
        "Participant", "Name", "Started", "In Squad", "Minutes", "Goals", "Assists",
        "Yellow Cards", "Red Cards", "Fouls", "Saves", "Sub In", "Sub Out",
    ]

    def export_to_csv(
        self,
        rows: Iterable[ParticipantStatsRow],
        participants: Optional[Mapping[str, Participant]] = None,
    ) -> str:
        participants = participants or {}
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(self.HEADER)

        for row in rows:
            participant = participants.get(row.participant_id)
            writer.writerow([
                row.participant_id,
                participant.name if participant else "",
                "yes" if row.started else "no",
                "yes" if row.was_in_squad else "no",
                row.minutes_played,
                row.goals,
                row.assists,
                row.yellow_cards,
                row.red_cards,
                row.fouls_committed,
                row.saves,
                "" if row.sub_in_minute is None else row.sub_in_minute,
                "" if row.sub_out_minute is None else row.sub_out_minute,
            ])

        return buffer.getvalue()
