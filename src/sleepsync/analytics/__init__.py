"""Analytics engine for sleep sensor data.

Modules:
    features    -- Sliding window and movement/audio/light features
    detection   -- Hysteresis sleep/wake state machine
    stages      -- Light/deep/REM stage classification
    disturbance -- Per-window disturbance counting
    circadian   -- Time-of-day helpers and circadian alignment
    baseline    -- 14-night baseline calibration
    scoring     -- Weighted multi-factor sleep score
    session     -- Session aggregation and merging
    pipeline    -- Offline night pipeline
"""

from sleepsync.analytics.features import (
    SensorWindow,
    IntensityBands,
    MovementFeatures,
    AudioFeatures,
    MovementIntensity,
    movement_features,
    audio_features,
    average_lux,
    classify_movement_intensity,
)
from sleepsync.analytics.detection import (
    SleepDetector,
    DetectorState,
    DetectionThresholds,
    DetectionResult,
    SleepState,
    advance,
)
from sleepsync.analytics.stages import StageClassifier
from sleepsync.analytics.disturbance import count_disturbances
from sleepsync.analytics.baseline import (
    BaselineCalibrator,
    BaselineProgress,
    compute_baseline,
    calibrate_sensors,
    percentile_threshold,
)
from sleepsync.analytics.scoring import SleepScorer, score_session, quality_label
from sleepsync.analytics.session import SessionRecorder, merge_sessions
from sleepsync.analytics.pipeline import NightPipeline, NightReport, run_session

__all__ = [
    # features
    "SensorWindow",
    "IntensityBands",
    "MovementFeatures",
    "AudioFeatures",
    "MovementIntensity",
    "movement_features",
    "audio_features",
    "average_lux",
    "classify_movement_intensity",
    # detection
    "SleepDetector",
    "DetectorState",
    "DetectionThresholds",
    "DetectionResult",
    "SleepState",
    "advance",
    # stages / disturbances
    "StageClassifier",
    "count_disturbances",
    # baseline
    "BaselineCalibrator",
    "BaselineProgress",
    "compute_baseline",
    "calibrate_sensors",
    "percentile_threshold",
    # scoring
    "SleepScorer",
    "score_session",
    "quality_label",
    # session
    "SessionRecorder",
    "merge_sessions",
    # pipeline
    "NightPipeline",
    "NightReport",
    "run_session",
]
