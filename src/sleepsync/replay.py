"""Load recorded sensor captures and replay them through a detector."""

from __future__ import annotations

import json
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import Iterator, Sequence

from sleepsync.analytics.detection import DetectionResult, SleepDetector
from sleepsync.models import SensorSample

logger = logging.getLogger(__name__)


def load_samples(capture_path: str | Path) -> list[SensorSample]:
    """Read a .jsonl capture, one sample per line.

    Blank lines and lines that are not valid JSON or lack a timestamp are
    skipped.  Samples are returned sorted by timestamp.
    """
    path = Path(capture_path)
    samples: list[SensorSample] = []
    skipped = 0

    with open(path) as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
                samples.append(SensorSample.from_dict(entry))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                logger.debug("[line %d] not a sensor sample, skipping", line_num)
                skipped += 1

    samples.sort(key=lambda s: s.timestamp)
    logger.info("Loaded %d samples from %s (%d skipped)", len(samples), path.name, skipped)
    return samples


def replay_samples(
    samples: Sequence[SensorSample],
    detector: SleepDetector | None = None,
) -> Iterator[DetectionResult]:
    """Yield one detection result per sample, in order."""
    detector = detector or SleepDetector()
    for sample in samples:
        yield detector.process_sample(sample)


def summarize(results: Sequence[DetectionResult]) -> dict:
    """Per-stage window counts and the number of sleep/wake transitions."""
    stages = Counter(r.state.stage.value for r in results)
    transitions = sum(
        1 for prev, cur in zip(results, results[1:])
        if prev.state.is_asleep != cur.state.is_asleep
    )
    return {
        "windows": len(results),
        "stages": dict(stages),
        "transitions": transitions,
        "disturbed_windows": sum(1 for r in results if r.disturbances > 0),
        "snoring_windows": sum(1 for r in results if r.snoring_detected),
    }


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python -m sleepsync.replay <capture_file.jsonl>")
        sys.exit(1)

    samples = load_samples(sys.argv[1])
    print(json.dumps(summarize(list(replay_samples(samples))), indent=2))


if __name__ == "__main__":
    main()
