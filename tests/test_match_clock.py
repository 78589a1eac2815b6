import unittest
from unittest.mock import patch

import pytest

from matchlive.models import ClockState
from matchlive.services import MatchClockService
from matchlive.utils import fmt_mmss, minute_for_seconds

CLOCK_NOW = "matchlive.services.clock_service.now_ts"


class MatchClockServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = ClockState()
        self.service = MatchClockService(self.clock)

    def test_start_records_running_since(self) -> None:
        with patch(CLOCK_NOW, return_value=1000.0):
            self.assertTrue(self.service.start())
        self.assertEqual(self.clock.running_since, 1000.0)
        self.assertTrue(self.service.is_running)

    def test_start_while_running_is_a_no_op(self) -> None:
        with patch(CLOCK_NOW, return_value=1000.0):
            self.service.start()
        with patch(CLOCK_NOW, return_value=1300.0):
            self.assertFalse(self.service.start())
        self.assertEqual(self.clock.running_since, 1000.0)

    def test_pause_folds_interval_into_offset(self) -> None:
        with patch(CLOCK_NOW, return_value=1000.0):
            self.service.start()
        with patch(CLOCK_NOW, return_value=1600.0):
            self.assertTrue(self.service.pause())

        self.assertIsNone(self.clock.running_since)
        self.assertEqual(self.clock.accumulated_offset_seconds, 600)
        self.assertFalse(self.service.pause())

    def test_resume_adds_intervals(self) -> None:
        with patch(CLOCK_NOW, return_value=1000.0):
            self.service.start()
        with patch(CLOCK_NOW, return_value=1000.0 + 45 * 60):
            self.service.pause()

        # Half time passes without the clock running
        with patch(CLOCK_NOW, return_value=9000.0):
            self.assertEqual(self.service.elapsed_seconds(), 45 * 60)
            self.service.start()
        with patch(CLOCK_NOW, return_value=9000.0 + 120):
            self.assertEqual(self.service.elapsed_seconds(), 45 * 60 + 120)
            self.assertEqual(self.service.current_minute(), 48)

    def test_reset_zeroes_even_while_running(self) -> None:
        with patch(CLOCK_NOW, return_value=1000.0):
            self.service.start()
        self.service.reset()

        self.assertFalse(self.service.is_running)
        with patch(CLOCK_NOW, return_value=5000.0):
            self.assertEqual(self.service.elapsed_seconds(), 0)
            self.assertEqual(self.service.current_minute(), 1)

    def test_describe_reports_display_and_minute(self) -> None:
        self.clock.accumulated_offset_seconds = 23 * 60 + 5
        with patch(CLOCK_NOW, return_value=1000.0):
            info = self.service.describe()

        self.assertFalse(info["running"])
        self.assertEqual(info["display"], "23:05")
        self.assertEqual(info["current_minute"], 24)


@pytest.mark.parametrize("d1,d2", [(0, 0), (1, 59), (2700, 2700), (61, 3599), (10.9, 10.9), (0.4, 0.4), (59.5, 0.6)])
def test_elapsed_after_two_intervals_is_their_sum(d1, d2):
    service = MatchClockService(ClockState())
    with patch(CLOCK_NOW, return_value=100.0):
        service.start()
    with patch(CLOCK_NOW, return_value=100.0 + d1):
        service.pause()
    with patch(CLOCK_NOW, return_value=50000.0):
        service.start()
    with patch(CLOCK_NOW, return_value=50000.0 + d2):
        assert abs(service.elapsed_seconds() - (d1 + d2)) <= 1


@pytest.mark.parametrize("d1,d2", [(10.9, 10.9), (0.6, 0.6), (45.49, 45.49), (2700.7, 2700.7)])
def test_banked_offset_after_fractional_intervals_stays_within_a_second(d1, d2):
    service = MatchClockService(ClockState())
    with patch(CLOCK_NOW, return_value=100.0):
        service.start()
    with patch(CLOCK_NOW, return_value=100.0 + d1):
        service.pause()
    with patch(CLOCK_NOW, return_value=500.0):
        service.start()
    with patch(CLOCK_NOW, return_value=500.0 + d2):
        service.pause()

    offset = service.clock.accumulated_offset_seconds
    assert isinstance(offset, int)
    assert abs(offset - (d1 + d2)) <= 1


def test_clock_state_round_trip_keeps_running_interval():
    clock = ClockState(running_since=1234.5, accumulated_offset_seconds=300)
    restored = ClockState.from_json(clock.to_json())
    assert restored == clock
    assert restored.elapsed_seconds(1234.5 + 60) == 360


def test_clock_state_from_empty_payload_is_paused_at_zero():
    clock = ClockState.from_json(None)
    assert not clock.is_running
    assert clock.elapsed_seconds(99999.0) == 0


def test_minute_is_one_indexed():
    assert minute_for_seconds(0) == 1
    assert minute_for_seconds(59) == 1
    assert minute_for_seconds(60) == 2
    assert minute_for_seconds(89 * 60 + 30) == 90


def test_fmt_mmss_handles_long_matches():
    assert fmt_mmss(90) == "01:30"
    assert fmt_mmss(5461) == "91:01"
    assert fmt_mmss(-5) == "00:00"
