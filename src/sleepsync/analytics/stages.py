"""Sleep stage classification for windows already judged asleep.

The heuristic combines three signals:
  - movement intensity band of the window
  - eye-movement proxy: variance of gyroscope magnitudes
  - snoring / irregular breathing from the audio features

Deep sleep is motionless and quiet; REM shows small rapid movements with
irregular breathing; everything else is light sleep.  The classifier keeps
no state, so replaying the same windows reproduces the same stages.
"""

from __future__ import annotations

from typing import Sequence

from sleepsync.analytics.features import AudioFeatures, MovementIntensity, variance
from sleepsync.models import MovementLevel, SensorSample, SleepStage

EYE_MOVEMENT_MIN_SAMPLES = 5
EYE_MOVEMENT_VARIANCE = 0.01


def has_eye_movement(samples: Sequence[SensorSample]) -> bool:
    """Detect rapid small movements in the gyroscope channel."""
    gyro = [s.gyroscope.magnitude for s in samples if s.gyroscope is not None]
    if len(gyro) < EYE_MOVEMENT_MIN_SAMPLES:
        return False
    return variance(gyro) > EYE_MOVEMENT_VARIANCE


class StageClassifier:
    """Assign light, deep or REM to an asleep window."""

    def classify(
        self,
        intensity: MovementIntensity,
        audio: AudioFeatures,
        samples: Sequence[SensorSample],
    ) -> SleepStage:
        eye_movement = has_eye_movement(samples)

        if (
            intensity.level == MovementLevel.NONE
            and not eye_movement
            and not audio.is_snoring
        ):
            return SleepStage.DEEP

        if intensity.level == MovementLevel.LOW and eye_movement and audio.is_snoring:
            return SleepStage.REM

        return SleepStage.LIGHT
