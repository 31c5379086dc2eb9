"""Offline pipeline: run a recorded night through the full analytics stack.

The recorded sample timestamps stand in for wall-clock time, so replaying
the same capture always yields the same session and score.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from sleepsync.analytics.baseline import BaselineCalibrator, BaselineProgress
from sleepsync.analytics.detection import DetectionThresholds
from sleepsync.analytics.scoring import SleepScorer, quality_label
from sleepsync.analytics.session import SessionRecorder
from sleepsync.errors import InvalidInput
from sleepsync.models import SensorSample, Session, SleepScoreBreakdown
from sleepsync.storage import (
    MemoryBaselineStore,
    MemoryChunkStore,
    MemoryScoreStore,
    MemorySessionStore,
)

logger = logging.getLogger(__name__)


@dataclass
class NightReport:
    """Outcome of one recorded night."""

    session: Session
    score: SleepScoreBreakdown | None
    quality: str | None
    baseline_progress: BaselineProgress | None = None

    def to_dict(self) -> dict[str, Any]:
        progress = self.baseline_progress
        return {
            "session": self.session.to_dict(),
            "score": self.score.to_dict() if self.score else None,
            "quality": self.quality,
            "baseline": {
                "days_collected": progress.days_collected,
                "progress": progress.progress,
                "is_complete": progress.is_complete,
            } if progress else None,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


class NightPipeline:
    """Stores plus recorder, scorer and calibrator wired together."""

    def __init__(
        self,
        sessions: MemorySessionStore | None = None,
        chunks: MemoryChunkStore | None = None,
        baselines: MemoryBaselineStore | None = None,
        scores: MemoryScoreStore | None = None,
        window_size: int = 30,
    ) -> None:
        self.sessions = sessions or MemorySessionStore()
        self.chunks = chunks or MemoryChunkStore()
        self.baselines = baselines or MemoryBaselineStore()
        self.scores = scores or MemoryScoreStore()
        self.window_size = window_size
        self.scorer = SleepScorer(self.baselines, self.scores)
        self.calibrator = BaselineCalibrator(self.sessions, self.chunks, self.baselines)

    def run_night(
        self,
        user_id: str,
        samples: Sequence[SensorSample],
        session_id: str | None = None,
    ) -> NightReport:
        """Record, score and (when due) calibrate one night of samples."""
        if not samples:
            raise InvalidInput("cannot run a night without samples")

        thresholds = DetectionThresholds.from_baseline(
            self.baselines.get_baseline(user_id)
        )
        recorder = SessionRecorder(
            self.sessions, self.chunks, thresholds, self.window_size
        )
        recorder.start(
            user_id,
            start_at=datetime.fromtimestamp(samples[0].timestamp),
            session_id=session_id,
        )
        recorder.process(samples)
        session = recorder.end(end_at=datetime.fromtimestamp(samples[-1].timestamp))

        score = None
        if session.duration_min:
            score = self.scorer.score(session)
        else:
            logger.info("Session %s too short to score", session.id)

        progress = self.calibrator.collect(user_id)
        return NightReport(
            session=session,
            score=score,
            quality=quality_label(score.total) if score else None,
            baseline_progress=progress,
        )


def run_session(
    samples: Sequence[SensorSample],
    user_id: str = "local",
) -> NightReport:
    """Convenience wrapper: one night, fresh in-memory stores."""
    return NightPipeline().run_night(user_id, samples)
