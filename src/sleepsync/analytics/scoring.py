"""Multi-factor nightly sleep score.

Six component scores (0-100) are combined into a weighted total:

    duration      25%   hours slept vs. the baseline (or 8 h)
    efficiency    25%   time asleep vs. time in bed
    latency       15%   minutes to fall asleep
    stages        15%   deep and REM share of the night
    disturbances  10%   logged disturbances / awakenings
    circadian     10%   bed and wake times vs. the baseline

Each component is a step function of its deviation from target, so small
deviations leave the score unchanged and larger ones drop it sharply.
"""

from __future__ import annotations

import logging

from sleepsync.analytics.baseline import MINUTES_PER_AWAKENING
from sleepsync.analytics.circadian import circadian_alignment, time_of_day
from sleepsync.errors import InvalidInput
from sleepsync.models import Baseline, ScoreFactor, Session, SleepScoreBreakdown
from sleepsync.storage import BaselineStore, ScoreStore

logger = logging.getLogger(__name__)

WEIGHTS = {
    "duration": 0.25,
    "efficiency": 0.25,
    "latency": 0.15,
    "stages": 0.15,
    "disturbances": 0.10,
    "circadian": 0.10,
}

DEFAULT_TARGET_HOURS = 8.0
NEUTRAL_SCORE = 50.0

# (upper bound, score) pairs; anything beyond the last bound falls through
# to the linear tail of each function.
DURATION_BANDS = [(0.5, 100.0), (1.0, 90.0), (1.5, 75.0), (2.0, 60.0)]
EFFICIENCY_BANDS = [(90.0, 100.0), (85.0, 90.0), (80.0, 75.0), (75.0, 60.0)]
LATENCY_BANDS = [(15.0, 100.0), (20.0, 95.0), (30.0, 85.0), (45.0, 70.0), (60.0, 50.0)]
DISTURBANCE_SCORES = {0: 100.0, 1: 95.0, 2: 85.0, 3: 70.0, 4: 55.0}

DEEP_IDEAL = (0.15, 0.25)
DEEP_ACCEPTABLE = (0.10, 0.30)
REM_IDEAL = (0.20, 0.30)
REM_ACCEPTABLE = (0.15, 0.35)
STAGE_IDEAL_BONUS = 25.0
STAGE_ACCEPTABLE_BONUS = 15.0
STAGE_PENALTY = 10.0


def _require_duration(session: Session) -> float:
    if not session.duration_min:
        raise InvalidInput(f"Cannot score session {session.id} without duration")
    return float(session.duration_min)


# ---------------------------------------------------------------------------
# Component scores
# ---------------------------------------------------------------------------


def duration_score(session: Session, baseline: Baseline | None = None) -> float:
    """Score hours slept against the baseline average (or 8 h)."""
    hours = _require_duration(session) / 60.0
    target = baseline.average_duration if baseline and baseline.average_duration else DEFAULT_TARGET_HOURS
    deviation = abs(hours - target)
    for bound, score in DURATION_BANDS:
        if deviation <= bound:
            return score
    return max(0.0, 100.0 - deviation * 20.0)


def sleep_efficiency(session: Session) -> float:
    """Percent of the session asleep, estimating 5 min per awakening."""
    total = _require_duration(session)
    awake = (session.awake_count or 0) * MINUTES_PER_AWAKENING
    return (total - awake) / total * 100.0


def efficiency_score(session: Session) -> float:
    efficiency = sleep_efficiency(session)
    for floor, score in EFFICIENCY_BANDS:
        if efficiency >= floor:
            return score
    return max(0.0, efficiency * 0.8)


def latency_score(session: Session) -> float:
    """Score minutes-to-sleep; unknown latency counts as instant."""
    latency = session.sleep_latency or 0.0
    for bound, score in LATENCY_BANDS:
        if latency < bound:
            return score
    return max(0.0, 100.0 - latency * 2.0)


def _stage_adjustment(fraction: float, ideal: tuple[float, float], acceptable: tuple[float, float]) -> float:
    if ideal[0] <= fraction <= ideal[1]:
        return STAGE_IDEAL_BONUS
    if acceptable[0] <= fraction <= acceptable[1]:
        return STAGE_ACCEPTABLE_BONUS
    return -STAGE_PENALTY


def stages_score(session: Session) -> float:
    """Score the deep and REM shares of the night; 50 without stage data."""
    if session.stages is None or not session.duration_min:
        return NEUTRAL_SCORE

    total = float(session.duration_min)
    deep = session.stages.deep / total
    rem = session.stages.rem / total

    score = NEUTRAL_SCORE
    score += _stage_adjustment(deep, DEEP_IDEAL, DEEP_ACCEPTABLE)
    score += _stage_adjustment(rem, REM_IDEAL, REM_ACCEPTABLE)
    return max(0.0, min(100.0, score))


def disturbance_count(session: Session) -> int:
    """Logged disturbances, falling back to the awakening count."""
    if session.disturbances:
        return len(session.disturbances)
    return session.awake_count or 0


def disturbances_score(session: Session) -> float:
    count = disturbance_count(session)
    if count in DISTURBANCE_SCORES:
        return DISTURBANCE_SCORES[count]
    return max(0.0, 100.0 - count * 12.0)


def circadian_score(session: Session, baseline: Baseline | None = None) -> float:
    """Alignment with the usual bed/wake times; 50 without a baseline or end."""
    if baseline is None or session.end_at is None:
        return NEUTRAL_SCORE
    return float(circadian_alignment(
        time_of_day(session.start_at),
        baseline.average_bedtime,
        time_of_day(session.end_at),
        baseline.average_wake_time,
    ))


# ---------------------------------------------------------------------------
# Factors
# ---------------------------------------------------------------------------

# category → (positive name, positive when >=, negative name, negative when <)
FACTOR_RULES = {
    "duration": ("Duration", 80, "Duration", 60),
    "efficiency": ("Efficiency", 85, "Efficiency", 75),
    "latency": ("Quick Sleep Onset", 95, "Long Sleep Onset", 70),
    "stages": ("Sleep Stages", 80, "Sleep Stages", 60),
    "disturbances": ("Few Disturbances", 95, "Many Disturbances", 55),
    "circadian": ("Circadian Alignment", 80, "Circadian Misalignment", 60),
}


def generate_factors(components: dict[str, float]) -> tuple[ScoreFactor, ...]:
    """Named highlights for components scoring notably high or low.

    At most one factor per category, in ``FACTOR_RULES`` order.
    """
    factors = []
    for category, (good, good_at, bad, bad_below) in FACTOR_RULES.items():
        value = components[category]
        if value >= good_at:
            factors.append(ScoreFactor(good, "positive", value))
        elif value < bad_below:
            factors.append(ScoreFactor(bad, "negative", value))
    return tuple(factors)


def quality_label(total: float) -> str:
    if total >= 85:
        return "Excellent"
    if total >= 70:
        return "Good"
    if total >= 50:
        return "Fair"
    return "Poor"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def score_session(session: Session, baseline: Baseline | None = None) -> SleepScoreBreakdown:
    """Compute the full score breakdown for a completed session.

    Raises:
        InvalidInput: if the session has no duration.
    """
    _require_duration(session)

    components = {
        "duration": duration_score(session, baseline),
        "efficiency": efficiency_score(session),
        "latency": latency_score(session),
        "stages": stages_score(session),
        "disturbances": disturbances_score(session),
        "circadian": circadian_score(session, baseline),
    }
    total = sum(WEIGHTS[k] * v for k, v in components.items())

    return SleepScoreBreakdown(
        duration=round(components["duration"]),
        efficiency=round(components["efficiency"]),
        latency=round(components["latency"]),
        stages=round(components["stages"]),
        disturbances=round(components["disturbances"]),
        circadian=round(components["circadian"]),
        total=round(total),
        factors=generate_factors(components),
    )


class SleepScorer:
    """Scores completed sessions against the stored baseline and records them."""

    def __init__(self, baselines: BaselineStore, scores: ScoreStore) -> None:
        self.baselines = baselines
        self.scores = scores

    def score(self, session: Session) -> SleepScoreBreakdown:
        _require_duration(session)
        baseline = self.baselines.get_baseline(session.user_id)
        if baseline is None:
            logger.debug("No baseline for %s, scoring against defaults", session.user_id)

        breakdown = score_session(session, baseline)
        self.scores.save_score(
            session.id,
            session.user_id,
            session.start_at.date().isoformat(),
            breakdown,
        )
        logger.info("Scored session %s: %r", session.id, breakdown)
        return breakdown
