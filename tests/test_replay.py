"""Tests for replay.py -- capture loading and detector replay."""

from __future__ import annotations

import pytest

from sleepsync.analytics.detection import SleepDetector
from sleepsync.models import SensorSample
from sleepsync.replay import load_samples, replay_samples, summarize

from tests.conftest import constant_samples, make_sample, night_samples, write_jsonl


# ===================================================================
# load_samples
# ===================================================================


class TestLoadSamples:
    def test_round_trip_fields(self, tmp_path):
        sample = make_sample(
            12.5, 0.3, decibel=42.0, frequency=210.0, lux=4.0,
            gyro=(0.1, 0.2, 0.3), session_id="s1", sample_id="c1",
        )
        path = write_jsonl(tmp_path / "capture.jsonl", [sample.to_dict()])
        assert load_samples(path) == [sample]

    def test_skips_invalid_lines(self, tmp_path):
        path = tmp_path / "capture.jsonl"
        write_jsonl(path, [make_sample(1.0).to_dict(), {"no_timestamp": True}])
        with open(path, "a") as f:
            f.write("not json\n\n")
        samples = load_samples(path)
        assert len(samples) == 1
        assert samples[0].timestamp == 1.0

    def test_sorted_by_timestamp(self, tmp_path):
        entries = [make_sample(float(t)).to_dict() for t in (3, 1, 2)]
        path = write_jsonl(tmp_path / "capture.jsonl", entries)
        assert [s.timestamp for s in load_samples(path)] == [1.0, 2.0, 3.0]

    def test_minimal_entry(self, tmp_path):
        path = write_jsonl(tmp_path / "capture.jsonl", [
            {"timestamp": 5, "accelerometer": {"x": 0.0, "y": 0.6, "z": 0.8}},
        ])
        [sample] = load_samples(path)
        assert sample.accelerometer.magnitude == pytest.approx(1.0)
        assert sample.audio is None and sample.light is None

    def test_snoring_flag_preserved(self, tmp_path):
        path = write_jsonl(tmp_path / "capture.jsonl", [
            {"timestamp": 1, "audio": {"decibel": 35, "is_snoring": True}},
        ])
        [sample] = load_samples(path)
        assert sample.audio.is_snoring is True
        assert isinstance(sample, SensorSample)


# ===================================================================
# replay / summarize
# ===================================================================


class TestReplay:
    def test_one_result_per_sample(self):
        results = list(replay_samples(night_samples(), SleepDetector(window_size=5)))
        assert len(results) == 80

    def test_summary(self):
        results = list(replay_samples(night_samples(), SleepDetector(window_size=5)))
        summary = summarize(results)
        assert summary["windows"] == 80
        assert summary["transitions"] == 2
        assert summary["stages"]["deep"] == 55
        assert sum(summary["stages"].values()) == 80
        assert summary["snoring_windows"] == 0

    def test_default_detector(self):
        results = list(replay_samples(constant_samples(3, 0.0)))
        assert not any(r.state.is_asleep for r in results[:2])
        assert results[2].state.is_asleep

    def test_empty(self):
        assert summarize([]) == {
            "windows": 0,
            "stages": {},
            "transitions": 0,
            "disturbed_windows": 0,
            "snoring_windows": 0,
        }
