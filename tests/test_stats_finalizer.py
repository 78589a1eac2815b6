"""Tests for the end-of-match statistics replay and its atomic commit."""
import csv
import io
import unittest
from unittest.mock import patch

import pytest

from matchlive.models import (
    EventType, MatchPhase, MatchStatus, Participant, ParticipantKind, Team
)
from matchlive.services import (
    FinalizationError, InMemoryMatchStore, StatsFinalizer, StatsReportExporter, StoreError,
    ValidationError, compute_participant_stats, match_end_minute
)

from match_builders import BENCH, MATCH_ID, build_store, lineup_slots, make_event, make_sub

CLOCK_AT_90 = 89 * 60 + 30


def rows_by_id(rows):
    return {row.participant_id: row for row in rows}


class ComputeParticipantStatsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.events = [
            make_event(EventType.GOAL, 23, participant_ref="p10"),
            make_sub("p10", "b1", 40),
        ]

    def compute(self, events=None, clock_minute=90, bench=BENCH):
        return rows_by_id(compute_participant_stats(
            MATCH_ID, lineup_slots(), bench, self.events if events is None else events, clock_minute
        ))

    def test_goal_scorer_substituted_off(self) -> None:
        rows = self.compute()

        scorer = rows["p10"]
        self.assertTrue(scorer.started)
        self.assertEqual(scorer.minutes_played, 40)
        self.assertEqual(scorer.goals, 1)
        self.assertEqual(scorer.sub_out_minute, 40)
        self.assertIsNone(scorer.sub_in_minute)

        replacement = rows["b1"]
        self.assertFalse(replacement.started)
        self.assertEqual(replacement.sub_in_minute, 40)
        self.assertEqual(replacement.minutes_played, 50)
        self.assertTrue(replacement.was_in_squad)

    def test_starter_who_stays_on_plays_to_the_end(self) -> None:
        rows = self.compute()
        self.assertEqual(rows["p1"].minutes_played, 90)
        self.assertTrue(rows["p1"].was_in_squad)

    def test_unused_substitute(self) -> None:
        rows = self.compute()

        unused = rows["b2"]
        self.assertFalse(unused.started)
        self.assertEqual(unused.minutes_played, 0)
        self.assertIsNone(unused.sub_in_minute)
        self.assertIsNone(unused.sub_out_minute)
        self.assertTrue(unused.was_in_squad)

    def test_one_row_per_participant(self) -> None:
        rows = compute_participant_stats(MATCH_ID, lineup_slots(), BENCH, self.events, 90)
        ids = [row.participant_id for row in rows]
        self.assertEqual(len(ids), len(set(ids)))
        self.assertEqual(len(ids), 11 + len(BENCH))

    def test_substituted_out_player_counts_as_squad_even_without_bench_row(self) -> None:
        rows = self.compute(bench=[])
        self.assertTrue(rows["p10"].was_in_squad)
        self.assertTrue(rows["b1"].was_in_squad)

    def test_event_attributed_outsider_gets_a_row(self) -> None:
        events = self.events + [make_event(EventType.FOUL, 60, participant_ref="t1")]
        outsider = self.compute(events)["t1"]

        self.assertEqual(outsider.fouls_committed, 1)
        self.assertEqual(outsider.minutes_played, 0)
        self.assertFalse(outsider.was_in_squad)

    def test_tallies_and_assist_credit(self) -> None:
        events = self.events + [
            make_event(EventType.PEN_SCORED, 50, participant_ref="p11"),
            make_event(EventType.GOAL, 55, participant_ref="p11", assist_ref="p9"),
            make_event(EventType.ASSIST, 56, participant_ref="p8"),
            make_event(EventType.YELLOW_CARD, 60, participant_ref="p4"),
            make_event(EventType.RED_CARD, 70, participant_ref="p4"),
            make_event(EventType.SAVE, 71, participant_ref="p1"),
            make_event(EventType.SAVE, 72, participant_ref="p1"),
            make_event(EventType.PEN_MISSED, 80, participant_ref="p11"),
            make_event(EventType.NOTE, 81, participant_ref="p11", comment="Cramp"),
        ]
        rows = self.compute(events)

        self.assertEqual(rows["p11"].goals, 2)
        self.assertEqual(rows["p9"].assists, 1)
        self.assertEqual(rows["p8"].assists, 1)
        self.assertEqual(rows["p4"].yellow_cards, 1)
        self.assertEqual(rows["p4"].red_cards, 1)
        self.assertEqual(rows["p1"].saves, 2)

    def test_stoppage_time_event_extends_match_end(self) -> None:
        events = self.events + [make_event(EventType.FOUL, 94, participant_ref="p3")]
        rows = self.compute(events)
        self.assertEqual(rows["p1"].minutes_played, 94)
        self.assertEqual(rows["b1"].minutes_played, 54)


@pytest.mark.parametrize("event_minutes,clock_minute,expected", [
    ([], 1, 90),
    ([23, 40], 90, 90),
    ([23, 93], 91, 93),
    ([10], 104, 104),
])
def test_match_end_minute(event_minutes, clock_minute, expected):
    events = [make_event(EventType.FOUL, minute) for minute in event_minutes]
    assert match_end_minute(events, clock_minute) == expected


class FailingStatsStore(InMemoryMatchStore):
    """Fails the phase flip after the statistics rows were written."""

    def save_match(self, match):
        if match.phase is MatchPhase.ENDED:
            raise StoreError("connection reset", operation="save_match")
        super().save_match(match)


class StatsFinalizerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = build_store()
        self._stop_clock_at(CLOCK_AT_90)
        self.store.insert_event(make_event(EventType.GOAL, 23, participant_ref="p10"))
        self.store.insert_event(make_sub("p10", "b1", 40))
        self.store.insert_event(make_event(EventType.GOAL, 70, team=Team.OPPONENT))
        self.store.insert_event(make_event(EventType.OWN_GOAL, 80, team=Team.OPPONENT))

    def _stop_clock_at(self, seconds: int, store=None) -> None:
        store = store or self.store
        match = store.get_match(MATCH_ID)
        match.clock.accumulated_offset_seconds = seconds
        store.save_match(match)

    def test_finalize_commits_rows_score_and_phase(self) -> None:
        result = StatsFinalizer(self.store).finalize(MATCH_ID)

        self.assertEqual(result.score.to_dict(), {"us": 2, "opponent": 1})
        self.assertEqual(result.match_end_minute, 90)

        match = self.store.get_match(MATCH_ID)
        self.assertIs(match.phase, MatchPhase.ENDED)
        self.assertIs(match.status, MatchStatus.COMPLETED)
        self.assertEqual((match.our_score, match.opponent_score), (2, 1))

        stored = rows_by_id(self.store.list_participant_stats(MATCH_ID))
        self.assertEqual(stored["p10"].minutes_played, 40)
        self.assertEqual(stored["b1"].minutes_played, 50)

    def test_finalize_twice_is_rejected(self) -> None:
        finalizer = StatsFinalizer(self.store)
        finalizer.finalize(MATCH_ID)
        with self.assertRaises(ValidationError):
            finalizer.finalize(MATCH_ID)

    def test_finalize_pauses_a_running_clock(self) -> None:
        match = self.store.get_match(MATCH_ID)
        match.clock.running_since = 1000.0
        match.clock.accumulated_offset_seconds = 0
        self.store.save_match(match)

        with patch("matchlive.services.clock_service.now_ts", return_value=1000.0 + CLOCK_AT_90):
            StatsFinalizer(self.store).finalize(MATCH_ID)

        clock = self.store.get_match(MATCH_ID).clock
        self.assertFalse(clock.is_running)
        self.assertEqual(clock.accumulated_offset_seconds, CLOCK_AT_90)

    def test_store_failure_commits_nothing(self) -> None:
        store = build_store(store=FailingStatsStore())
        self._stop_clock_at(CLOCK_AT_90, store)
        store.insert_event(make_event(EventType.GOAL, 23, participant_ref="p10"))

        with self.assertRaises(FinalizationError):
            StatsFinalizer(store).finalize(MATCH_ID)

        self.assertEqual(store.list_participant_stats(MATCH_ID), [])
        match = store.get_match(MATCH_ID)
        self.assertIs(match.phase, MatchPhase.NOT_STARTED)
        self.assertIsNone(match.our_score)


class StatsReportExporterTests(unittest.TestCase):
    def test_csv_has_header_and_one_line_per_row(self) -> None:
        rows = compute_participant_stats(
            MATCH_ID, lineup_slots(), BENCH,
            [make_event(EventType.GOAL, 23, participant_ref="p10"), make_sub("p10", "b1", 40)], 90,
        )
        directory = {
            "p10": Participant("p10", "Alex Striker", 9),
            "b1": Participant("b1", "Sam Trial", kind=ParticipantKind.TRIALIST),
        }
        content = StatsReportExporter().export_to_csv(rows, directory)
        lines = list(csv.reader(io.StringIO(content)))

        self.assertEqual(lines[0], StatsReportExporter.HEADER)
        self.assertEqual(len(lines), len(rows) + 1)

        by_id = {line[0]: line for line in lines[1:]}
        self.assertEqual(by_id["p10"][1], "Alex Striker")
        self.assertEqual(by_id["p10"][4], "40")
        self.assertEqual(by_id["p10"][5], "1")
        self.assertEqual(by_id["b1"][11], "40")
        self.assertEqual(by_id["b2"][11], "")
