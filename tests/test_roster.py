"""Tests for deriving who is on the field from the starting lineup and the event log."""
import logging

from matchlive.models import DisplayRole, EventType, FormationCatalog
from matchlive.services.roster import (
    apply_substitution,
    derive_on_field,
    entered_via_substitution,
    exited_via_substitution,
    find_duplicate_occupants,
    group_by_role,
    role_for_slot,
    substituted_out_in_order,
)

from match_builders import FORMATION, lineup_slots, make_event, make_sub


def test_no_substitutions_returns_starting_lineup():
    slots = lineup_slots()
    on_field = derive_on_field(slots, [make_event(EventType.GOAL, 10, participant_ref="p10")])
    assert on_field == slots


def test_empty_slots_are_skipped():
    slots = lineup_slots(["p1", "p2"])
    on_field = derive_on_field(slots, [])
    assert on_field == {"gk": "p1", "lb": "p2"}


def test_substitution_takes_over_the_slot():
    events = [make_sub("p10", "b1", 40), make_sub("b1", "b2", 70)]
    on_field = derive_on_field(lineup_slots(), events)

    assert on_field["st1"] == "b2"
    assert "p10" not in on_field.values()
    assert "b1" not in on_field.values()
    assert len(on_field) == 11


def test_fold_is_deterministic():
    events = [make_sub("p2", "b1", 30), make_sub("p7", "b2", 60), make_sub("p11", "b3", 75)]
    assert derive_on_field(lineup_slots(), events) == derive_on_field(lineup_slots(), list(events))


def test_incremental_fold_matches_full_replay():
    events = [make_sub("p2", "b1", 30), make_sub("ghost", "b3", 45), make_sub("p7", "b2", 60)]

    incremental = derive_on_field(lineup_slots(), [])
    for event in events:
        apply_substitution(incremental, event.out_id, event.in_id)
        assert incremental == derive_on_field(lineup_slots(), events[:events.index(event) + 1])

    assert incremental == derive_on_field(lineup_slots(), events)


def test_fold_does_not_mutate_the_lineup():
    slots = lineup_slots()
    derive_on_field(slots, [make_sub("p1", "b1", 5)])
    assert slots["gk"] == "p1"


def test_substitution_of_player_not_on_field_is_ignored(caplog):
    events = [make_sub("ghost", "b1", 20)]
    with caplog.at_level(logging.WARNING, logger="matchlive.services.roster"):
        on_field = derive_on_field(lineup_slots(), events)

    assert on_field == lineup_slots()
    assert "does not fit the current field" in caplog.text


def test_substitution_bringing_on_a_player_already_on_field_is_ignored():
    on_field = derive_on_field(lineup_slots(), [make_sub("p1", "p2", 20)])
    assert on_field["gk"] == "p1"
    assert on_field["lb"] == "p2"


def test_apply_substitution_reports_no_op():
    field = {"gk": "p1"}
    assert not apply_substitution(field, None, "b1")
    assert not apply_substitution(field, "p9", "b1")
    assert apply_substitution(field, "p1", "b1")
    assert field == {"gk": "b1"}


def test_entered_and_exited_sets():
    events = [make_sub("p10", "b1", 40), make_event(EventType.FOUL, 50, participant_ref="b1"),
              make_sub("p11", "b2", 60)]
    assert entered_via_substitution(events) == {"b1", "b2"}
    assert exited_via_substitution(events) == {"p10", "p11"}


def test_substituted_out_keeps_first_exit_minute_in_order():
    events = [make_sub("p3", "b1", 55), make_sub("p4", "b2", 30), make_sub("p3", "b3", 80)]
    assert substituted_out_in_order(events) == [("p3", 55), ("p4", 30)]


def test_duplicate_occupants_are_reported():
    assert find_duplicate_occupants({"gk": "p1", "lb": "p1", "cb1": None, "cb2": "p3"}) == {"p1"}


def test_group_by_role_uses_formation_slot_order():
    formation = FormationCatalog().get(FORMATION)
    groups = group_by_role(lineup_slots(), formation)

    assert groups[DisplayRole.GOALKEEPER] == [("gk", "p1")]
    assert [slot for slot, _ in groups[DisplayRole.DEFENSE]] == ["lb", "cb1", "cb2", "rb"]
    assert [pid for _, pid in groups[DisplayRole.ATTACK]] == ["p10", "p11"]
    assert groups[DisplayRole.OTHER] == []


def test_unknown_formation_groups_everything_under_other():
    assert role_for_slot(None, "gk") is DisplayRole.OTHER
    groups = group_by_role({"x": "p1"}, None)
    assert groups[DisplayRole.OTHER] == [("x", "p1")]
