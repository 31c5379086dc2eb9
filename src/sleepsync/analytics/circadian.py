"""Time-of-day helpers and circadian alignment."""

from __future__ import annotations

from datetime import datetime
from enum import Enum


class Chronotype(str, Enum):
    EARLY_BIRD = "early_bird"
    NORMAL = "normal"
    NIGHT_OWL = "night_owl"


def time_of_day(moment: datetime) -> str:
    """Local clock time of *moment* as HH:MM."""
    return f"{moment.hour:02d}:{moment.minute:02d}"


def parse_minutes(hhmm: str) -> int:
    """Minutes since midnight for an HH:MM string."""
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def format_minutes(total: float) -> str:
    """Inverse of :func:`parse_minutes` for a (possibly fractional) minute count."""
    hours = int(total // 60)
    minutes = round(total % 60)
    if minutes == 60:
        hours, minutes = hours + 1, 0
    return f"{hours:02d}:{minutes:02d}"


# 30 minutes off the usual time costs 10 points
DEVIATION_STEP_MIN = 30.0
DEVIATION_PENALTY = 10.0


def _time_score(actual: str, usual: str) -> float:
    deviation = abs(parse_minutes(actual) - parse_minutes(usual))
    return max(0.0, 100.0 - deviation / DEVIATION_STEP_MIN * DEVIATION_PENALTY)


def circadian_alignment(
    actual_bedtime: str,
    baseline_bedtime: str,
    actual_wake_time: str,
    baseline_wake_time: str,
) -> int:
    """Score (0-100) how closely bed and wake times match the usual ones."""
    bed = _time_score(actual_bedtime, baseline_bedtime)
    wake = _time_score(actual_wake_time, baseline_wake_time)
    return round((bed + wake) / 2)


def circadian_phase(bedtime: str) -> str:
    """'early' before 21:00, 'normal' up to 23:00, 'late' after."""
    hour = parse_minutes(bedtime) / 60
    if hour < 21:
        return "early"
    if hour <= 23:
        return "normal"
    return "late"


def chronotype(average_bedtime: str, average_wake_time: str) -> Chronotype:
    bed_hour = parse_minutes(average_bedtime) // 60
    wake_hour = parse_minutes(average_wake_time) // 60
    if 4 <= bed_hour < 22 and wake_hour < 7:
        return Chronotype.EARLY_BIRD
    # after-midnight bedtimes count as late
    if bed_hour >= 23 or bed_hour < 4 or wake_hour > 9:
        return Chronotype.NIGHT_OWL
    return Chronotype.NORMAL
