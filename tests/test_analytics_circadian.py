"""Tests for sleepsync.analytics.circadian -- time-of-day helpers."""

from datetime import datetime

import pytest

from sleepsync.analytics.circadian import (
    Chronotype,
    chronotype,
    circadian_alignment,
    circadian_phase,
    format_minutes,
    parse_minutes,
    time_of_day,
)


class TestTimeHelpers:
    def test_time_of_day(self):
        assert time_of_day(datetime(2026, 1, 1, 7, 5)) == "07:05"

    def test_parse(self):
        assert parse_minutes("23:30") == 1410
        assert parse_minutes("00:00") == 0

    def test_format(self):
        assert format_minutes(1410) == "23:30"
        assert format_minutes(61.4) == "01:01"

    def test_format_rounds_up_to_next_hour(self):
        assert format_minutes(119.6) == "02:00"


class TestCircadianAlignment:
    def test_exact_match(self):
        assert circadian_alignment("23:00", "23:00", "07:00", "07:00") == 100

    def test_thirty_minutes_costs_ten_points(self):
        assert circadian_alignment("23:30", "23:00", "07:30", "07:00") == 90

    def test_averages_bed_and_wake(self):
        # bed exact (100), wake 90 min late (70)
        assert circadian_alignment("23:00", "23:00", "08:30", "07:00") == 85

    def test_floored_at_zero(self):
        assert circadian_alignment("12:00", "23:00", "20:00", "07:00") == 0


class TestPhaseAndChronotype:
    @pytest.mark.parametrize("bedtime,phase", [
        ("20:30", "early"),
        ("22:15", "normal"),
        ("23:00", "normal"),
        ("23:30", "late"),
    ])
    def test_phase(self, bedtime, phase):
        assert circadian_phase(bedtime) == phase

    def test_early_bird(self):
        assert chronotype("21:30", "06:00") == Chronotype.EARLY_BIRD

    def test_night_owl_late_wake(self):
        assert chronotype("23:00", "10:00") == Chronotype.NIGHT_OWL

    def test_night_owl_after_midnight(self):
        assert chronotype("01:00", "08:00") == Chronotype.NIGHT_OWL

    def test_normal(self):
        assert chronotype("22:30", "07:00") == Chronotype.NORMAL
