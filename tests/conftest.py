"""Shared fixtures and helpers for the sleepsync test suite."""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from sleepsync.models import (
    AudioReading,
    Baseline,
    LightReading,
    SensorCalibration,
    SensorSample,
    Session,
    StageDurations,
    Vector3,
)
from sleepsync.storage import (
    MemoryBaselineStore,
    MemoryChunkStore,
    MemoryScoreStore,
    MemorySessionStore,
)

NIGHT_START = datetime(2026, 1, 5, 23, 0)


# ---------------------------------------------------------------------------
# Sample-building helpers
# ---------------------------------------------------------------------------


def make_sample(
    timestamp: float = 0.0,
    magnitude: float | None = 0.0,
    decibel: float | None = None,
    frequency: float = 0.0,
    lux: float | None = None,
    gyro: tuple[float, float, float] | None = None,
    session_id: str | None = None,
    sample_id: str | None = None,
) -> SensorSample:
    """Build a sample whose accelerometer magnitude equals *magnitude*."""
    return SensorSample(
        timestamp=timestamp,
        accelerometer=Vector3(magnitude, 0.0, 0.0) if magnitude is not None else None,
        gyroscope=Vector3(*gyro) if gyro is not None else None,
        audio=AudioReading(decibel=decibel, frequency=frequency) if decibel is not None else None,
        light=LightReading(lux=lux) if lux is not None else None,
        id=sample_id,
        session_id=session_id,
    )


def constant_samples(
    n: int,
    magnitude: float,
    start: float = 0.0,
    step: float = 1.0,
) -> list[SensorSample]:
    """*n* samples of the same magnitude spaced *step* seconds apart."""
    return [make_sample(start + i * step, magnitude) for i in range(n)]


def night_samples(start: datetime = NIGHT_START) -> list[SensorSample]:
    """80 one-minute samples: 10 restless, 60 still, 10 restless."""
    t0 = start.timestamp()
    mags = [1.0] * 10 + [0.05] * 60 + [1.0] * 10
    return [make_sample(t0 + i * 60.0, m) for i, m in enumerate(mags)]


# ---------------------------------------------------------------------------
# Session / baseline helpers
# ---------------------------------------------------------------------------


def make_session(
    day: int = 0,
    duration_min: float | None = 480,
    awake_count: int | None = 0,
    sleep_latency: float | None = 10,
    bedtime: tuple[int, int] = (23, 0),
    stages: StageDurations | None = None,
    user_id: str = "u1",
    ended: bool = True,
) -> Session:
    start = datetime(2026, 1, 1, *bedtime) + timedelta(days=day)
    end = start + timedelta(minutes=duration_min) if ended and duration_min else None
    return Session(
        id=f"s{day}",
        user_id=user_id,
        start_at=start,
        end_at=end,
        duration_min=duration_min,
        stages=stages,
        awake_count=awake_count,
        sleep_latency=sleep_latency,
    )


def make_baseline(
    average_duration: float = 8.0,
    bedtime: str = "23:00",
    wake_time: str = "07:00",
    user_id: str = "u1",
) -> Baseline:
    return Baseline(
        user_id=user_id,
        average_bedtime=bedtime,
        average_wake_time=wake_time,
        average_duration=average_duration,
        average_latency=10.0,
        average_efficiency=95.0,
        disturbance_frequency=1.0,
        sensor_calibration=SensorCalibration(
            movement_threshold=0.9,
            sound_threshold=45.0,
            light_threshold=8.0,
        ),
        days_collected=14,
        completed_at="2026-01-15T08:00:00",
    )


def write_jsonl(path: Path, entries: list[dict]) -> Path:
    """Write a list of dicts as JSONL to the given path."""
    with open(path, "w") as f:
        for entry in entries:
            f.write(json.dumps(entry) + "\n")
    return path


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def stores():
    return {
        "sessions": MemorySessionStore(),
        "chunks": MemoryChunkStore(),
        "baselines": MemoryBaselineStore(),
        "scores": MemoryScoreStore(),
    }
