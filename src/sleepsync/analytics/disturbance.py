"""Per-window disturbance detection (movement, sound, light)."""

from __future__ import annotations

from sleepsync.analytics.features import (
    NOISE_DECIBEL,
    SIGNIFICANT_MAGNITUDE,
    AudioFeatures,
    MovementFeatures,
)
from sleepsync.models import Disturbance

LIGHT_LUX = 10.0


def count_disturbances(
    movement: MovementFeatures,
    audio: AudioFeatures,
    avg_lux: float | None,
    light_threshold: float = LIGHT_LUX,
) -> int:
    """Number of disturbance sources active in a window (0-3)."""
    count = 0
    if movement.has_significant_movement:
        count += 1
    if audio.has_high_noise:
        count += 1
    if avg_lux is not None and avg_lux > light_threshold:
        count += 1
    return count


def _severity(value: float, limit: float) -> str:
    """Map how far a reading exceeds its limit to a severity label."""
    if limit <= 0:
        return "high"
    ratio = value / limit
    if ratio >= 3.0:
        return "high"
    if ratio >= 1.5:
        return "medium"
    return "low"


def disturbance_events(
    timestamp: float,
    movement: MovementFeatures,
    audio: AudioFeatures,
    avg_lux: float | None,
    light_threshold: float = LIGHT_LUX,
    noise_threshold: float = NOISE_DECIBEL,
) -> list[Disturbance]:
    """Typed events for each disturbance source active in a window."""
    events: list[Disturbance] = []
    if movement.has_significant_movement:
        events.append(Disturbance(
            type="movement",
            timestamp=timestamp,
            severity=_severity(movement.average_magnitude, SIGNIFICANT_MAGNITUDE),
        ))
    if audio.has_high_noise:
        events.append(Disturbance(
            type="sound",
            timestamp=timestamp,
            severity=_severity(audio.noise_level, noise_threshold),
        ))
    if avg_lux is not None and avg_lux > light_threshold:
        events.append(Disturbance(
            type="light",
            timestamp=timestamp,
            severity=_severity(avg_lux, light_threshold),
        ))
    return events
