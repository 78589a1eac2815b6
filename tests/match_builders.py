"""Shared builders for the live match tests."""
from typing import Iterable, Optional, Sequence

from matchlive.models import (
    BenchEntry, EventType, MatchEvent, MatchPhase, MatchRecord, Participant,
    StartingLineup, Team
)
from matchlive.services import InMemoryMatchStore

MATCH_ID = "m1"
FORMATION = "4-4-2 Classic"
SLOT_IDS = ["gk", "lb", "cb1", "cb2", "rb", "lm", "cm1", "cm2", "rm", "st1", "st2"]
STARTERS = [f"p{i}" for i in range(1, 12)]
BENCH = ["b1", "b2", "b3"]

_sequence = 0


def make_event(
    event_type: EventType,
    minute: int = 1,
    *,
    team: Team = Team.US,
    participant_ref: Optional[str] = None,
    assist_ref: Optional[str] = None,
    comment: Optional[str] = None,
    metadata: Optional[dict] = None,
    event_id: Optional[str] = None,
    match_id: str = MATCH_ID,
    phase: MatchPhase = MatchPhase.FIRST_HALF,
) -> MatchEvent:
    global _sequence
    _sequence += 1
    return MatchEvent(
        id=event_id or f"e{_sequence}",
        match_id=match_id,
        type=event_type,
        minute=minute,
        phase=phase,
        team=team,
        participant_ref=participant_ref,
        assist_ref=assist_ref,
        comment=comment,
        metadata=metadata or {},
        sequence=_sequence,
    )


def make_sub(out_id: str, in_id: str, minute: int, event_id: Optional[str] = None) -> MatchEvent:
    return make_event(
        EventType.SUBSTITUTION, minute, metadata={"out_id": out_id, "in_id": in_id}, event_id=event_id
    )


def lineup_slots(starters: Sequence[str] = STARTERS) -> dict:
    slots = {slot: None for slot in SLOT_IDS}
    slots.update(zip(SLOT_IDS, starters))
    return slots


def build_store(
    match_id: str = MATCH_ID,
    starters: Sequence[str] = STARTERS,
    bench: Iterable[str] = BENCH,
    store: Optional[InMemoryMatchStore] = None,
) -> InMemoryMatchStore:
    """Store holding one match with a lineup, a bench and a participant directory."""
    store = store if store is not None else InMemoryMatchStore()
    bench = list(bench)
    store.save_match(MatchRecord(id=match_id, opponent_name="Rovers"))
    for number, pid in enumerate(list(starters) + bench, start=1):
        store.save_participant(Participant(id=pid, name=f"Player {pid.upper()}", jersey_number=number))
    store.save_lineup(StartingLineup(match_id, FORMATION, lineup_slots(starters)))
    store.save_bench(match_id, [BenchEntry(pid) for pid in bench])
    return store
