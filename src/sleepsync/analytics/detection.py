"""Real-time sleep/wake detection with hysteresis.

Each incoming sample is folded into a sliding window.  The window's average
accelerometer magnitude drives a small state machine:

  - magnitude below the sleep threshold counts toward falling asleep
  - magnitude above the awake threshold counts toward waking
  - anything in between leaves both counters untouched

Three consecutive quiet windows are needed to enter sleep but only two busy
ones to leave it, so sleep onset is declared slowly and waking quickly.

Confidence is derived separately from the spread of per-sample magnitudes;
a stage other than awake is only assigned when the machine says asleep and
confidence exceeds the stage gate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Sequence

from sleepsync.analytics.disturbance import (
    LIGHT_LUX,
    count_disturbances,
    disturbance_events,
)
from sleepsync.analytics.features import (
    DEFAULT_WINDOW_SIZE,
    NOISE_DECIBEL,
    IntensityBands,
    MovementIntensity,
    SensorWindow,
    accel_magnitudes,
    audio_features,
    average_lux,
    classify_movement_intensity,
    movement_features,
    standard_deviation,
)
from sleepsync.analytics.stages import StageClassifier
from sleepsync.models import Baseline, Disturbance, SensorSample, SleepStage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectionThresholds:
    """Tunable limits for the detector."""

    sleep: float = 0.3  # magnitude below this → quiet window
    awake: float = 0.8  # magnitude above this → busy window
    sleep_windows: int = 3  # consecutive quiet windows to fall asleep
    awake_windows: int = 2  # consecutive busy windows to wake
    stage_confidence: float = 0.7
    light_lux: float = LIGHT_LUX
    noise_decibel: float = NOISE_DECIBEL
    bands: IntensityBands = field(default_factory=IntensityBands)

    @classmethod
    def from_baseline(cls, baseline: Baseline | None) -> DetectionThresholds:
        """Thresholds personalised by a baseline's sensor calibration.

        The calibrated movement threshold replaces the awake limit (never
        dropping below the sleep limit); positive light and sound limits are
        taken as-is.  Without a baseline the defaults are returned.
        """
        default = cls()
        if baseline is None:
            return default
        cal = baseline.sensor_calibration
        return replace(
            default,
            awake=max(cal.movement_threshold, default.sleep),
            light_lux=cal.light_threshold if cal.light_threshold > 0 else default.light_lux,
            noise_decibel=cal.sound_threshold if cal.sound_threshold > 0 else default.noise_decibel,
        )


@dataclass(frozen=True)
class DetectorState:
    """Everything the detector carries from one window to the next."""

    consecutive_low: int = 0
    consecutive_high: int = 0
    is_asleep: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "consecutive_low": self.consecutive_low,
            "consecutive_high": self.consecutive_high,
            "is_asleep": self.is_asleep,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DetectorState:
        return cls(
            consecutive_low=int(data.get("consecutive_low", 0)),
            consecutive_high=int(data.get("consecutive_high", 0)),
            is_asleep=bool(data.get("is_asleep", False)),
        )


@dataclass
class SleepState:
    """Classification output for one window."""

    is_asleep: bool
    confidence: float  # 0-1
    stage: SleepStage
    timestamp: float | None = None


@dataclass
class DetectionResult:
    """Everything the detector produced for one window."""

    state: SleepState
    intensity: MovementIntensity
    disturbances: int  # active disturbance sources, 0-3
    snoring_detected: bool
    events: list[Disturbance] = field(default_factory=list)

    def __repr__(self) -> str:
        return (
            f"DetectionResult({self.state.stage.value}, "
            f"asleep={self.state.is_asleep}, "
            f"conf={self.state.confidence:.2f}, "
            f"mag={self.intensity.magnitude:.3f}, "
            f"dist={self.disturbances})"
        )


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


def advance(
    state: DetectorState,
    magnitude: float,
    thresholds: DetectionThresholds = DetectionThresholds(),
) -> DetectorState:
    """Apply one window's movement magnitude to the hysteresis state."""
    low = state.consecutive_low
    high = state.consecutive_high
    asleep = state.is_asleep

    if magnitude < thresholds.sleep:
        low += 1
        high = 0
    elif magnitude > thresholds.awake:
        high += 1
        low = 0

    if low >= thresholds.sleep_windows and not asleep:
        asleep = True
    if high >= thresholds.awake_windows and asleep:
        asleep = False

    return DetectorState(consecutive_low=low, consecutive_high=high, is_asleep=asleep)


def window_confidence(samples: Sequence[SensorSample]) -> float:
    """1 minus the std of per-sample magnitudes, clamped to [0, 1]."""
    spread = standard_deviation(accel_magnitudes(samples).tolist())
    return max(0.0, min(1.0, 1.0 - spread))


class SleepDetector:
    """Sleep/wake detector for a single active session.

    Args:
        window_size: Number of recent samples considered per window.
        thresholds: Detection limits (see :class:`DetectionThresholds`).
        classifier: Stage classifier consulted for asleep windows.
        state: Initial hysteresis state (default: awake, counters zero).
    """

    def __init__(
        self,
        window_size: int = DEFAULT_WINDOW_SIZE,
        thresholds: DetectionThresholds | None = None,
        classifier: StageClassifier | None = None,
        state: DetectorState | None = None,
    ) -> None:
        self.window = SensorWindow(window_size)
        self.thresholds = thresholds or DetectionThresholds()
        self.classifier = classifier or StageClassifier()
        self.state = state or DetectorState()

    @property
    def is_asleep(self) -> bool:
        return self.state.is_asleep

    def process_sample(self, sample: SensorSample) -> DetectionResult:
        """Fold one sample into the window and classify the result."""
        self.window.push(sample)
        samples = self.window.samples

        intensity = classify_movement_intensity(samples, self.thresholds.bands)
        movement = movement_features(samples)
        audio = audio_features(samples, self.thresholds.noise_decibel)
        lux = average_lux(samples)

        was_asleep = self.state.is_asleep
        self.state = advance(self.state, intensity.magnitude, self.thresholds)
        if self.state.is_asleep != was_asleep:
            logger.info(
                "Entered %s state at t=%.1f (magnitude %.3f)",
                "sleep" if self.state.is_asleep else "wake",
                sample.timestamp,
                intensity.magnitude,
            )

        confidence = window_confidence(samples)
        if self.state.is_asleep and confidence > self.thresholds.stage_confidence:
            stage = self.classifier.classify(intensity, audio, samples)
        else:
            stage = SleepStage.AWAKE

        return DetectionResult(
            state=SleepState(
                is_asleep=self.state.is_asleep,
                confidence=confidence,
                stage=stage,
                timestamp=sample.timestamp,
            ),
            intensity=intensity,
            disturbances=count_disturbances(
                movement, audio, lux, self.thresholds.light_lux
            ),
            snoring_detected=audio.is_snoring,
            events=disturbance_events(
                sample.timestamp,
                movement,
                audio,
                lux,
                light_threshold=self.thresholds.light_lux,
                noise_threshold=self.thresholds.noise_decibel,
            ),
        )

    def process_batch(self, samples: Sequence[SensorSample]) -> list[DetectionResult]:
        """Process a batch of any size; one result per sample."""
        return [self.process_sample(s) for s in samples]

    def current_state(self) -> SleepState:
        """Asleep flag without re-running classification (neutral confidence)."""
        return SleepState(
            is_asleep=self.state.is_asleep,
            confidence=0.5,
            stage=SleepStage.LIGHT if self.state.is_asleep else SleepStage.AWAKE,
        )

    def reset(self) -> None:
        """Clear counters and the sample buffer."""
        self.window.clear()
        self.state = DetectorState()

    def __repr__(self) -> str:
        return (
            f"SleepDetector(asleep={self.state.is_asleep}, "
            f"low={self.state.consecutive_low}, "
            f"high={self.state.consecutive_high}, {self.window!r})"
        )
