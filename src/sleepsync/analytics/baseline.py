"""Personal baseline calibration from the first two weeks of sleep.

Once a user has 14 completed nights, their typical bedtime, wake time,
duration, latency, efficiency and awakening rate are averaged, and the
sensor thresholds used by the detector are re-derived from percentiles of
the raw samples recorded over those nights:

  - movement: 95th percentile of accelerometer magnitude
  - sound:    90th percentile of decibel readings
  - light:    90th percentile of lux readings

Percentiles use the nearest-rank index ``floor(p * n)`` over the ascending
sort.  An empty collection falls back to a fixed default.
"""

from __future__ import annotations

import logging
import math
import threading
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Sequence

import numpy as np

from sleepsync.analytics.circadian import format_minutes, parse_minutes, time_of_day
from sleepsync.analytics.features import accel_magnitudes
from sleepsync.errors import InvalidState
from sleepsync.models import Baseline, SensorCalibration, SensorSample, Session
from sleepsync.storage import BaselineStore, ChunkStore, SessionStore

logger = logging.getLogger(__name__)

BASELINE_DAYS = 14
MINUTES_PER_AWAKENING = 5  # estimated time lost to each recorded awakening
DEFAULT_BEDTIME = "22:00"

MOVEMENT_PERCENTILE = 0.95
SOUND_PERCENTILE = 0.90
LIGHT_PERCENTILE = 0.90

DEFAULT_MOVEMENT_THRESHOLD = 0.5
DEFAULT_SOUND_THRESHOLD = 50.0
DEFAULT_LIGHT_THRESHOLD = 10.0


@dataclass
class BaselineProgress:
    """How far a user is through the baseline collection period."""

    days_collected: int
    is_complete: bool
    progress: int  # 0-100
    days_remaining: int
    baseline: Baseline | None = None


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


def qualifying_sessions(sessions: Iterable[Session]) -> list[Session]:
    """Sessions with both an end time and a duration."""
    return [s for s in sessions if s.is_complete]


def average_time(times: Sequence[str]) -> str:
    """Arithmetic mean of HH:MM clock times.

    Times are averaged as minutes since midnight without wrapping, so
    23:50 and 00:10 average to 12:00.
    """
    if not times:
        return DEFAULT_BEDTIME
    minutes = [parse_minutes(t) for t in times]
    return format_minutes(float(np.mean(minutes)))


def session_efficiency(session: Session) -> float:
    """Percent of the session spent asleep, estimating 5 min per awakening."""
    total = session.duration_min or 0.0
    if total <= 0:
        return 0.0
    awake = (session.awake_count or 0) * MINUTES_PER_AWAKENING
    return (total - awake) / total * 100.0


def percentile_threshold(
    values: Sequence[float],
    fraction: float,
    default: float,
) -> float:
    """Nearest-rank percentile: ``sorted(values)[floor(fraction * n)]``.

    Returns *default* when *values* is empty or the percentile is not
    positive (e.g. a room that stayed completely dark).
    """
    n = len(values)
    if n == 0:
        logger.debug("No samples for percentile %.2f, using default %s", fraction, default)
        return default
    ordered = np.sort(np.asarray(values, dtype=np.float64))
    index = min(math.floor(fraction * n), n - 1)
    value = float(ordered[index])
    if value <= 0:
        logger.debug("Percentile %.2f is %s, using default %s", fraction, value, default)
        return default
    return value


def calibrate_sensors(samples: Sequence[SensorSample]) -> SensorCalibration:
    """Derive movement/sound/light thresholds from raw samples."""
    movements = accel_magnitudes(samples).tolist()
    sounds = [s.audio.decibel for s in samples if s.audio is not None]
    lights = [s.light.lux for s in samples if s.light is not None]

    return SensorCalibration(
        movement_threshold=percentile_threshold(
            movements, MOVEMENT_PERCENTILE, DEFAULT_MOVEMENT_THRESHOLD
        ),
        sound_threshold=percentile_threshold(
            sounds, SOUND_PERCENTILE, DEFAULT_SOUND_THRESHOLD
        ),
        light_threshold=percentile_threshold(
            lights, LIGHT_PERCENTILE, DEFAULT_LIGHT_THRESHOLD
        ),
    )


def compute_baseline(
    user_id: str,
    sessions: Sequence[Session],
    samples: Sequence[SensorSample],
    completed_at: datetime | None = None,
) -> Baseline:
    """Compute baseline metrics from completed sessions and their samples.

    Args:
        user_id: Owner of the sessions.
        sessions: Completed sessions (end time and duration present).
        samples: Raw sensor samples recorded across those sessions.
        completed_at: Calibration time (default: now).

    Raises:
        InvalidState: if *sessions* is empty.
    """
    if not sessions:
        raise InvalidState("No sessions available for baseline calculation")

    bedtimes = [time_of_day(s.start_at) for s in sessions]
    wake_times = [time_of_day(s.end_at) for s in sessions if s.end_at is not None]

    durations = [s.duration_min or 0.0 for s in sessions]
    latencies = [s.sleep_latency for s in sessions if s.sleep_latency]
    efficiencies = [session_efficiency(s) for s in sessions if s.duration_min]
    awakenings = [s.awake_count or 0 for s in sessions]

    return Baseline(
        user_id=user_id,
        average_bedtime=average_time(bedtimes),
        average_wake_time=average_time(wake_times),
        average_duration=float(np.mean(durations)) / 60.0,
        average_latency=float(np.mean(latencies)) if latencies else 0.0,
        average_efficiency=float(np.mean(efficiencies)) if efficiencies else 0.0,
        disturbance_frequency=float(np.mean(awakenings)),
        sensor_calibration=calibrate_sensors(samples),
        days_collected=len(sessions),
        completed_at=(completed_at or datetime.now()).isoformat(),
    )


# ---------------------------------------------------------------------------
# Calibrator
# ---------------------------------------------------------------------------


class BaselineCalibrator:
    """Collects baseline nights and persists the user's baseline.

    Calibration runs for the same user are serialized; different users may
    calibrate concurrently.
    """

    def __init__(
        self,
        sessions: SessionStore,
        chunks: ChunkStore,
        baselines: BaselineStore,
        required_days: int = BASELINE_DAYS,
    ) -> None:
        self.sessions = sessions
        self.chunks = chunks
        self.baselines = baselines
        self.required_days = required_days
        self._locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks[user_id]

    def calculate(self, user_id: str, sessions: Sequence[Session]) -> Baseline:
        """Compute and store a baseline, replacing any existing one."""
        if not sessions:
            raise InvalidState("No sessions available for baseline calculation")

        with self._lock_for(user_id):
            samples: list[SensorSample] = []
            for session in sessions:
                samples.extend(self.chunks.get_chunks_for_session(session.id))

            baseline = compute_baseline(user_id, sessions, samples)
            self.baselines.save_baseline(baseline)

        logger.info(
            "Calibrated baseline for %s from %d nights (%d samples): %r",
            user_id, len(sessions), len(samples), baseline,
        )
        return baseline

    def collect(self, user_id: str) -> BaselineProgress:
        """Check collection progress and calibrate once enough nights exist."""
        recent = self.sessions.get_recent_sessions(user_id, self.required_days)
        completed = qualifying_sessions(recent)

        days = len(completed)
        is_complete = days >= self.required_days
        progress = min(100, round(days / self.required_days * 100))

        baseline = self.calculate(user_id, completed) if is_complete else None

        return BaselineProgress(
            days_collected=days,
            is_complete=is_complete,
            progress=progress,
            days_remaining=max(0, self.required_days - days),
            baseline=baseline,
        )
