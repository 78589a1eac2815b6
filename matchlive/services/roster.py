"""
Roster derivation for the live match tracker.

Who is on the field is never stored: it is recomputed by folding the event
log's substitutions, in creation order, over the starting lineup.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from ..models import DisplayRole, Formation, MatchEvent

logger = logging.getLogger(__name__)

ROLE_ORDER = (
    DisplayRole.GOALKEEPER,
    DisplayRole.DEFENSE,
    DisplayRole.MIDFIELD,
    DisplayRole.ATTACK,
    DisplayRole.OTHER,
)


def substitution_events(events: Iterable[MatchEvent]) -> List[MatchEvent]:
    """Substitution events in the order given."""
    return [event for event in events if event.is_substitution]


def apply_substitution(on_field: Dict[str, str], out_id: Optional[str], in_id: Optional[str]) -> bool:
    """
    Reassign the slot held by ``out_id`` to ``in_id`` in place.

    Returns:
        False, leaving ``on_field`` untouched, when ``out_id`` is not on the
        field, ``in_id`` already is, or either id is missing.
    """
    if not out_id or not in_id:
        return False
    slot = next((s for s, pid in on_field.items() if pid == out_id), None)
    if slot is None:
        return False
    if in_id in on_field.values():
        return False
    on_field[slot] = in_id
    return True


def derive_on_field(
    starting_lineup: Mapping[str, Optional[str]],
    events: Iterable[MatchEvent],
) -> Dict[str, str]:
    """
    Fold substitutions over the starting lineup.

    Args:
        starting_lineup: Slot id -> participant id; empty slots are skipped
        events: Event log in creation order; non-substitution events are ignored

    Returns:
        Slot id -> participant id currently on the field
    """
    on_field = {slot: pid for slot, pid in starting_lineup.items() if pid}
    for event in substitution_events(events):
        if not apply_substitution(on_field, event.out_id, event.in_id):
            logger.warning(
                "Ignoring substitution %s: %s -> %s does not fit the current field",
                event.id, event.out_id, event.in_id,
            )
    return on_field


def entered_via_substitution(events: Iterable[MatchEvent]) -> Set[str]:
    """Ids ever used as the incoming participant of a substitution."""
    return {event.in_id for event in substitution_events(events) if event.in_id}


def exited_via_substitution(events: Iterable[MatchEvent]) -> Set[str]:
    """Ids ever used as the outgoing participant of a substitution. They may not re-enter."""
    return {event.out_id for event in substitution_events(events) if event.out_id}


def substituted_out_in_order(events: Iterable[MatchEvent]) -> List[Tuple[str, int]]:
    """``(participant id, minute)`` for every first exit, oldest first."""
    seen: Set[str] = set()
    result = []
    for event in substitution_events(events):
        if event.out_id and event.out_id not in seen:
            seen.add(event.out_id)
            result.append((event.out_id, event.minute))
    return result


def role_for_slot(formation: Optional[Formation], slot_id: str) -> DisplayRole:
    """Display role of a slot; unknown formations group everything under ``OTHER``."""
    if formation is None:
        return DisplayRole.OTHER
    return formation.role_for_slot(slot_id)


def group_by_role(
    on_field: Mapping[str, str],
    formation: Optional[Formation],
) -> Dict[DisplayRole, List[Tuple[str, str]]]:
    """Group ``(slot, participant)`` pairs by display role, in formation slot order."""
    order = {slot_id: idx for idx, slot_id in enumerate(formation.slot_ids())} if formation else {}
    groups: Dict[DisplayRole, List[Tuple[str, str]]] = {role: [] for role in ROLE_ORDER}
    ordered = sorted(on_field.items(), key=lambda item: order.get(item[0], len(order)))
    for slot, pid in ordered:
        groups[role_for_slot(formation, slot)].append((slot, pid))
    return groups


def find_duplicate_occupants(starting_lineup: Mapping[str, Optional[str]]) -> Set[str]:
    """Participants assigned to more than one starting slot."""
    seen: Set[str] = set()
    duplicates: Set[str] = set()
    for pid in starting_lineup.values():
        if not pid:
            continue
        if pid in seen:
            duplicates.add(pid)
        seen.add(pid)
    return duplicates
