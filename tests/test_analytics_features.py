"""Tests for sleepsync.analytics.features -- window, signal helpers, features."""

import numpy as np
import pytest

from sleepsync.analytics.features import (
    SensorWindow,
    IntensityBands,
    accel_magnitudes,
    moving_average,
    detect_peaks,
    variance,
    standard_deviation,
    movement_features,
    classify_movement_intensity,
    detect_snoring,
    audio_features,
    average_lux,
)
from sleepsync.errors import InvalidInput
from sleepsync.models import AudioReading, MovementLevel, SensorSample, Vector3

from tests.conftest import make_sample, constant_samples


# ========================== Sliding window ==========================


class TestSensorWindow:
    def test_never_exceeds_capacity(self):
        window = SensorWindow(30)
        for i in range(100):
            window.push(make_sample(float(i)))
            assert len(window) <= 30
        assert len(window) == 30

    def test_evicts_oldest_first(self):
        window = SensorWindow(30)
        window.extend(constant_samples(100, 0.1))
        ts = [s.timestamp for s in window]
        assert ts[0] == 70.0
        assert ts[-1] == 99.0

    def test_preserves_timestamp_order(self):
        window = SensorWindow(5)
        window.extend([make_sample(t) for t in [1.0, 2.0, 2.0, 3.0, 5.0, 8.0]])
        ts = [s.timestamp for s in window]
        assert ts == sorted(ts)

    def test_rejects_out_of_order(self):
        window = SensorWindow(5)
        window.push(make_sample(10.0))
        with pytest.raises(InvalidInput):
            window.push(make_sample(9.0))
        assert len(window) == 1

    def test_clear(self):
        window = SensorWindow(5)
        window.extend(constant_samples(3, 0.1))
        window.clear()
        assert len(window) == 0

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            SensorWindow(0)


# ========================== Signal helpers ==========================


class TestAccelMagnitudes:
    def test_pythagorean(self):
        s = SensorSample(timestamp=0.0, accelerometer=Vector3(3.0, 4.0, 0.0))
        assert accel_magnitudes([s])[0] == pytest.approx(5.0)

    def test_skips_samples_without_accel(self):
        samples = [make_sample(0.0, 1.0), make_sample(1.0, None, decibel=30.0)]
        assert len(accel_magnitudes(samples)) == 1

    def test_empty(self):
        assert len(accel_magnitudes([])) == 0


class TestMovingAverage:
    def test_empty(self):
        assert moving_average([]) == []

    def test_shorter_than_window_unchanged(self):
        assert moving_average([1.0, 2.0, 3.0], window=5) == [1.0, 2.0, 3.0]

    def test_centered_with_shrinking_edges(self):
        values = [0.0, 0.0, 5.0, 0.0, 0.0, 0.0]
        result = moving_average(values, window=5)
        # i=0 → mean(values[0:3]) ; i=2 → mean(values[0:5])
        assert result[0] == pytest.approx(5.0 / 3)
        assert result[2] == pytest.approx(1.0)
        assert result[5] == pytest.approx(0.0)
        assert len(result) == len(values)


class TestDetectPeaks:
    def test_single_peak(self):
        assert detect_peaks([0, 1, 3, 1, 0], threshold=2) == [2]

    def test_below_threshold_ignored(self):
        assert detect_peaks([0, 1, 0], threshold=2) == []

    def test_min_distance(self):
        values = [0, 5, 0, 5, 0, 0, 0, 5, 0]
        # peaks at 1, 3, 7 → 3 is too close to 1
        assert detect_peaks(values, threshold=1, min_distance=5) == [1, 7]

    def test_plateau_not_a_peak(self):
        assert detect_peaks([0, 3, 3, 0], threshold=1) == []

    def test_endpoints_not_peaks(self):
        assert detect_peaks([5, 0, 5], threshold=1) == []


class TestStats:
    def test_variance_population(self):
        assert variance([1.0, 3.0]) == pytest.approx(1.0)

    def test_std(self):
        assert standard_deviation([1.0, 3.0]) == pytest.approx(1.0)

    def test_empty(self):
        assert variance([]) == 0.0
        assert standard_deviation([]) == 0.0


# ========================== Movement features ==========================


class TestMovementFeatures:
    def test_empty(self):
        f = movement_features([])
        assert f.average_magnitude == 0.0
        assert f.peak_count == 0
        assert not f.has_significant_movement

    def test_still(self):
        f = movement_features(constant_samples(30, 0.05))
        assert f.average_magnitude == pytest.approx(0.05)
        assert f.variance == pytest.approx(0.0)
        assert f.peak_count == 0
        assert not f.has_significant_movement

    def test_high_average_is_significant(self):
        f = movement_features(constant_samples(30, 0.8))
        assert f.has_significant_movement

    def test_spikes_counted_as_peaks(self):
        mags = [0.01] * 60
        for k in (3, 18, 33, 48):
            mags[k - 2:k + 3] = [0.2, 0.6, 1.0, 0.6, 0.2]
        samples = [make_sample(float(i), m) for i, m in enumerate(mags)]
        f = movement_features(samples)
        assert f.peak_count == 4
        # average is low, but more than 3 peaks
        assert f.average_magnitude < 0.5
        assert f.has_significant_movement


class TestClassifyMovementIntensity:
    @pytest.mark.parametrize("mag,level", [
        (0.05, MovementLevel.NONE),
        (0.3, MovementLevel.LOW),
        (1.0, MovementLevel.MEDIUM),
        (2.0, MovementLevel.HIGH),
    ])
    def test_default_bands(self, mag, level):
        result = classify_movement_intensity(constant_samples(10, mag))
        assert result.level == level
        assert result.magnitude == pytest.approx(mag)

    def test_custom_bands(self):
        bands = IntensityBands(low=0.01, medium=0.02, high=0.04)
        result = classify_movement_intensity(constant_samples(10, 0.05), bands)
        assert result.level == MovementLevel.HIGH

    def test_no_accel(self):
        samples = [make_sample(0.0, None, decibel=30.0)]
        result = classify_movement_intensity(samples)
        assert result.level == MovementLevel.NONE
        assert result.magnitude == 0.0

    def test_timestamp_of_latest_sample(self):
        result = classify_movement_intensity(constant_samples(5, 0.2, start=100.0))
        assert result.timestamp == 104.0


# ========================== Audio / light ==========================


class TestAudioFeatures:
    def test_no_audio(self):
        f = audio_features(constant_samples(5, 0.1))
        assert not f.is_snoring
        assert f.noise_level == 0.0
        assert not f.has_high_noise

    def test_noise_level_is_mean(self):
        samples = [make_sample(0.0, decibel=40.0), make_sample(1.0, decibel=70.0)]
        f = audio_features(samples)
        assert f.noise_level == pytest.approx(55.0)
        assert f.has_high_noise

    def test_quiet_room(self):
        samples = [make_sample(float(i), decibel=30.0, frequency=100.0) for i in range(10)]
        f = audio_features(samples)
        assert not f.has_high_noise
        assert not f.is_snoring

    def test_snoring_needs_more_than_ten_percent(self):
        quiet = [make_sample(float(i), decibel=30.0, frequency=100.0) for i in range(9)]
        snore = [make_sample(9.0, decibel=45.0, frequency=250.0)]
        # exactly 1 of 10 → not more than 10%
        assert not detect_snoring(quiet + snore)
        snore2 = [make_sample(10.0, decibel=45.0, frequency=250.0)]
        assert detect_snoring(quiet + snore + snore2)

    def test_source_snore_flag(self):
        samples = [
            SensorSample(
                timestamp=float(i),
                audio=AudioReading(decibel=20.0, is_snoring=True),
            )
            for i in range(3)
        ]
        assert detect_snoring(samples)


class TestAverageLux:
    def test_none_without_light(self):
        assert average_lux(constant_samples(3, 0.1)) is None

    def test_mean(self):
        samples = [make_sample(0.0, lux=4.0), make_sample(1.0, lux=8.0)]
        assert average_lux(samples) == pytest.approx(6.0)
