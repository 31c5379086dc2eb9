"""Sliding sensor window and per-window feature extraction.

This is the shared foundation for the detection pipeline.  It provides:
  - A fixed-capacity FIFO window over the most recent sensor samples
  - Signal helpers (moving average, peak detection, population stats)
  - Movement features (magnitude, variance, peaks, intensity band)
  - Audio features (noise level, snoring) and ambient light averaging
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from typing import Iterator, Sequence

import numpy as np

from sleepsync.errors import InvalidInput
from sleepsync.models import MovementLevel, SensorSample

DEFAULT_WINDOW_SIZE = 30  # ~3 s at 10 Hz


# ---------------------------------------------------------------------------
# Sliding window
# ---------------------------------------------------------------------------


class SensorWindow:
    """The most recent *capacity* samples, oldest evicted first.

    Samples must arrive in non-decreasing timestamp order; the window never
    reorders its contents.
    """

    def __init__(self, capacity: int = DEFAULT_WINDOW_SIZE) -> None:
        if capacity < 1:
            raise ValueError("window capacity must be at least 1")
        self.capacity = capacity
        self._samples: deque[SensorSample] = deque(maxlen=capacity)

    def push(self, sample: SensorSample) -> None:
        if self._samples and sample.timestamp < self._samples[-1].timestamp:
            raise InvalidInput(
                f"sample at t={sample.timestamp} is older than the newest "
                f"buffered sample (t={self._samples[-1].timestamp})"
            )
        self._samples.append(sample)

    def extend(self, samples: Sequence[SensorSample]) -> None:
        for sample in samples:
            self.push(sample)

    def clear(self) -> None:
        self._samples.clear()

    @property
    def samples(self) -> list[SensorSample]:
        return list(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[SensorSample]:
        return iter(self._samples)

    def __repr__(self) -> str:
        return f"SensorWindow({len(self)}/{self.capacity})"


# ---------------------------------------------------------------------------
# Signal helpers
# ---------------------------------------------------------------------------


def accel_magnitudes(samples: Sequence[SensorSample]) -> np.ndarray:
    """Vector magnitude of every sample that carries an accelerometer reading."""
    xyz = [
        (s.accelerometer.x, s.accelerometer.y, s.accelerometer.z)
        for s in samples
        if s.accelerometer is not None
    ]
    if not xyz:
        return np.zeros(0, dtype=np.float64)
    arr = np.asarray(xyz, dtype=np.float64)  # shape (N, 3)
    return np.sqrt(np.sum(arr ** 2, axis=1))


def moving_average(values: Sequence[float], window: int = 5) -> list[float]:
    """Centered moving average, shrinking at the edges.

    Inputs shorter than *window* are returned unchanged.
    """
    n = len(values)
    if n == 0:
        return []
    if n < window:
        return [float(v) for v in values]

    arr = np.asarray(values, dtype=np.float64)
    half_before = window // 2
    half_after = math.ceil(window / 2)
    result = []
    for i in range(n):
        start = max(0, i - half_before)
        end = min(n, i + half_after)
        result.append(float(np.mean(arr[start:end])))
    return result


def detect_peaks(
    values: Sequence[float],
    threshold: float,
    min_distance: int = 10,
) -> list[int]:
    """Indices of strict local maxima above *threshold*.

    Peaks are accepted left to right; a candidate closer than
    *min_distance* samples to the previously accepted peak is dropped.
    """
    peaks: list[int] = []
    for i in range(1, len(values) - 1):
        v = values[i]
        if v > threshold and v > values[i - 1] and v > values[i + 1]:
            if not peaks or i - peaks[-1] >= min_distance:
                peaks.append(i)
    return peaks


def variance(values: Sequence[float]) -> float:
    """Population variance; 0 for empty input."""
    if len(values) == 0:
        return 0.0
    return float(np.var(np.asarray(values, dtype=np.float64)))


def standard_deviation(values: Sequence[float]) -> float:
    """Population standard deviation; 0 for empty input."""
    return math.sqrt(variance(values))


# ---------------------------------------------------------------------------
# Movement features
# ---------------------------------------------------------------------------

SMOOTHING_WINDOW = 5
PEAK_FACTOR = 1.5  # peaks must exceed 1.5x the window's average magnitude
PEAK_MIN_DISTANCE = 5
SIGNIFICANT_MAGNITUDE = 0.5
SIGNIFICANT_PEAKS = 3


@dataclass(frozen=True)
class IntensityBands:
    """Magnitude cut-points (g) separating none/low/medium/high movement."""

    low: float = 0.1
    medium: float = 0.5
    high: float = 1.5


@dataclass
class MovementFeatures:
    """Movement summary for one window."""

    average_magnitude: float
    variance: float
    peak_count: int
    has_significant_movement: bool


@dataclass
class MovementIntensity:
    """Average magnitude of a window and the band it falls in."""

    level: MovementLevel
    magnitude: float
    timestamp: float | None = None


def movement_features(samples: Sequence[SensorSample]) -> MovementFeatures:
    """Compute movement features for a window of samples."""
    mags = accel_magnitudes(samples)
    if len(mags) == 0:
        return MovementFeatures(
            average_magnitude=0.0,
            variance=0.0,
            peak_count=0,
            has_significant_movement=False,
        )

    avg = float(np.mean(mags))
    smoothed = moving_average(mags.tolist(), SMOOTHING_WINDOW)
    peaks = detect_peaks(smoothed, avg * PEAK_FACTOR, PEAK_MIN_DISTANCE)

    return MovementFeatures(
        average_magnitude=avg,
        variance=variance(mags),
        peak_count=len(peaks),
        has_significant_movement=(
            avg > SIGNIFICANT_MAGNITUDE or len(peaks) > SIGNIFICANT_PEAKS
        ),
    )


def classify_movement_intensity(
    samples: Sequence[SensorSample],
    bands: IntensityBands = IntensityBands(),
) -> MovementIntensity:
    """Bucket the window's average accelerometer magnitude into a level."""
    accel_samples = [s for s in samples if s.accelerometer is not None]
    if not accel_samples:
        return MovementIntensity(level=MovementLevel.NONE, magnitude=0.0)

    avg = float(np.mean(accel_magnitudes(accel_samples)))
    if avg < bands.low:
        level = MovementLevel.NONE
    elif avg < bands.medium:
        level = MovementLevel.LOW
    elif avg < bands.high:
        level = MovementLevel.MEDIUM
    else:
        level = MovementLevel.HIGH

    return MovementIntensity(
        level=level,
        magnitude=avg,
        timestamp=accel_samples[-1].timestamp,
    )


# ---------------------------------------------------------------------------
# Audio and light features
# ---------------------------------------------------------------------------

SNORE_FREQUENCY_HZ = 200.0
SNORE_DECIBEL = 40.0
SNORE_FRACTION = 0.1  # share of samples that must look like snoring
NOISE_DECIBEL = 50.0


@dataclass
class AudioFeatures:
    """Audio summary for one window."""

    is_snoring: bool
    noise_level: float  # mean dB
    has_high_noise: bool


def detect_snoring(
    samples: Sequence[SensorSample],
    frequency_threshold: float = SNORE_FREQUENCY_HZ,
    decibel_threshold: float = SNORE_DECIBEL,
) -> bool:
    """True when more than 10% of audio samples look like snoring.

    A sample counts if the source flagged it, or if it is both loud enough
    and above the snoring frequency floor.
    """
    audio = [s.audio for s in samples if s.audio is not None]
    if not audio:
        return False
    snoring = 0
    for a in audio:
        if a.is_snoring is not None:
            snoring += int(a.is_snoring)
        elif a.frequency >= frequency_threshold and a.decibel >= decibel_threshold:
            snoring += 1
    return snoring > len(audio) * SNORE_FRACTION


def audio_features(
    samples: Sequence[SensorSample],
    noise_threshold: float = NOISE_DECIBEL,
) -> AudioFeatures:
    """Compute noise level and snore/noise flags for a window."""
    decibels = [s.audio.decibel for s in samples if s.audio is not None]
    if not decibels:
        return AudioFeatures(is_snoring=False, noise_level=0.0, has_high_noise=False)

    noise = float(np.mean(decibels))
    return AudioFeatures(
        is_snoring=detect_snoring(samples),
        noise_level=noise,
        has_high_noise=noise > noise_threshold,
    )


def average_lux(samples: Sequence[SensorSample]) -> float | None:
    """Mean ambient light over the window, or None without light readings."""
    lux = [s.light.lux for s in samples if s.light is not None]
    if not lux:
        return None
    return float(np.mean(lux))
