"""Session aggregation around the detector.

The recorder owns one :class:`SleepDetector` per active session.  As samples
arrive it:
  - closes a stage segment whenever the detected stage changes
  - records sleep latency (start → first asleep window)
  - counts awakenings (asleep → awake transitions)
  - logs a disturbance event each time a disturbance source becomes active
  - buffers raw samples and flushes them to the chunk store in batches

Only one session may be active per recorder.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable, Sequence

from sleepsync.analytics.detection import (
    DetectionResult,
    DetectionThresholds,
    SleepDetector,
    SleepState,
)
from sleepsync.analytics.features import DEFAULT_WINDOW_SIZE
from sleepsync.errors import InvalidState
from sleepsync.models import (
    Disturbance,
    SensorSample,
    Session,
    SleepStage,
    StageDurations,
    StageSegment,
)
from sleepsync.storage import ChunkStore, SessionStore

logger = logging.getLogger(__name__)

FLUSH_SIZE = 50  # buffered samples before a chunk flush
AUTO_END_CONFIRM_SEC = 60.0


def stage_totals(segments: Sequence[StageSegment]) -> StageDurations:
    """Sum segment minutes per sleep stage (awake time is not counted)."""
    totals = StageDurations()
    for seg in segments:
        if seg.stage == SleepStage.LIGHT:
            totals.light += seg.duration_min
        elif seg.stage == SleepStage.DEEP:
            totals.deep += seg.duration_min
        elif seg.stage == SleepStage.REM:
            totals.rem += seg.duration_min
    return totals


class SessionRecorder:
    """Drive the detection pipeline for one session at a time.

    Args:
        sessions: Session store (create/update).
        chunks: Raw sample store.
        thresholds: Detector thresholds for new sessions.
        window_size: Detector window size.
        clock: Source of "now" for session start/end when not given.
    """

    def __init__(
        self,
        sessions: SessionStore,
        chunks: ChunkStore,
        thresholds: DetectionThresholds | None = None,
        window_size: int = DEFAULT_WINDOW_SIZE,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.sessions = sessions
        self.chunks = chunks
        self.thresholds = thresholds or DetectionThresholds()
        self.window_size = window_size
        self.clock = clock

        self.session: Session | None = None
        self.detector: SleepDetector | None = None
        self._buffer: list[SensorSample] = []
        self._segments: list[StageSegment] = []
        self._disturbances: list[Disturbance] = []
        self._stage = SleepStage.AWAKE
        self._stage_start = 0.0
        self._active_sources: set[str] = set()
        self._awake_count = 0
        self._latency: float | None = None

    @property
    def active(self) -> bool:
        return self.session is not None

    # -- lifecycle ----------------------------------------------------------

    def start(
        self,
        user_id: str,
        start_at: datetime | None = None,
        session_id: str | None = None,
    ) -> Session:
        """Begin a new session; fails if one is already in progress."""
        if self.session is not None:
            raise InvalidState(f"Session {self.session.id} already in progress")

        start_at = start_at or self.clock()
        session = Session(
            id=session_id or str(uuid.uuid4()),
            user_id=user_id,
            start_at=start_at,
        )
        self.sessions.create_session(session)

        self.session = session
        self.detector = SleepDetector(self.window_size, self.thresholds)
        self._buffer = []
        self._segments = []
        self._disturbances = []
        self._stage = SleepStage.AWAKE
        self._stage_start = start_at.timestamp()
        self._active_sources = set()
        self._awake_count = 0
        self._latency = None

        logger.info("Sleep session started: %s", session.id)
        return session

    def process(self, samples: Sequence[SensorSample]) -> list[DetectionResult]:
        """Feed a batch of samples (any size) through the detector."""
        session, detector = self._require_active()
        results = []
        for sample in samples:
            if sample.session_id is None:
                sample = replace(sample, session_id=session.id)
            was_asleep = detector.is_asleep
            result = detector.process_sample(sample)
            self._buffer.append(sample)
            self._track(sample.timestamp, was_asleep, result)
            results.append(result)

            if len(self._buffer) >= FLUSH_SIZE:
                self.flush()
        return results

    def end(self, end_at: datetime | None = None) -> Session:
        """Finalize the active session and return the completed record."""
        session, _ = self._require_active()
        end_at = end_at or self.clock()

        self._close_segment(end_at.timestamp())
        duration_min = round((end_at - session.start_at).total_seconds() / 60.0)
        stages = stage_totals(self._segments)

        fields = dict(
            end_at=end_at,
            duration_min=duration_min,
            stages=stages,
            stage_segments=list(self._segments),
            awake_count=self._awake_count,
            sleep_latency=self._latency,
            disturbances=list(self._disturbances),
        )
        self.sessions.update_session(session.id, **fields)
        self.flush()

        completed = replace(session, **fields)
        self._discard()
        logger.info("Sleep session ended: %r", completed)
        return completed

    def abort(self) -> None:
        """Drop the active session, flushing any buffered samples first."""
        session, _ = self._require_active()
        self.flush()
        self._discard()
        logger.info("Sleep session aborted: %s", session.id)

    def flush(self) -> int:
        """Write buffered samples to the chunk store; returns how many."""
        if not self._buffer:
            return 0
        count = len(self._buffer)
        self.chunks.save_chunks(self._buffer)
        self._buffer = []
        logger.debug("Flushed %d samples", count)
        return count

    def current_state(self) -> SleepState:
        _, detector = self._require_active()
        return detector.current_state()

    async def auto_detect_end(
        self,
        confirm_delay: float = AUTO_END_CONFIRM_SEC,
        end_at: datetime | None = None,
    ) -> Session | None:
        """End the session once the user is confirmed awake after sleeping.

        The detector is queried twice, *confirm_delay* seconds apart; the
        session ends only if both report awake.  Sessions in which sleep
        was never detected are left running.
        """
        if self.session is None or self._latency is None:
            return None
        if self.current_state().is_asleep:
            return None

        await asyncio.sleep(confirm_delay)

        if self.session is None or self.current_state().is_asleep:
            return None
        return self.end(end_at)

    # -- internals ----------------------------------------------------------

    def _require_active(self) -> tuple[Session, SleepDetector]:
        if self.session is None or self.detector is None:
            raise InvalidState("No active session")
        return self.session, self.detector

    def _track(self, ts: float, was_asleep: bool, result: DetectionResult) -> None:
        state = result.state
        if state.stage != self._stage:
            self._close_segment(ts)
            self._stage = state.stage
            self._stage_start = ts

        if state.is_asleep and self._latency is None:
            self._latency = max(0.0, (ts - self.session.start_at.timestamp()) / 60.0)
        if was_asleep and not state.is_asleep:
            self._awake_count += 1

        # one event per source each time it becomes active
        self._disturbances.extend(
            e for e in result.events if e.type not in self._active_sources
        )
        self._active_sources = {e.type for e in result.events}

    def _close_segment(self, ts: float) -> None:
        if ts <= self._stage_start:
            return
        self._segments.append(StageSegment(
            stage=self._stage,
            start_time=self._stage_start,
            end_time=ts,
            duration_min=(ts - self._stage_start) / 60.0,
        ))
        self._stage_start = ts

    def _discard(self) -> None:
        if self.detector is not None:
            self.detector.reset()
        self.session = None
        self.detector = None
        self._buffer = []


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def _gap_minutes(first: Session, second: Session) -> float:
    end = first.end_at or first.start_at
    return (second.start_at - end).total_seconds() / 60.0


def _merge_two(first: Session, second: Session) -> Session:
    a = first.stages or StageDurations()
    b = second.stages or StageDurations()
    return replace(
        first,
        end_at=second.end_at,
        duration_min=(first.duration_min or 0) + (second.duration_min or 0),
        stages=StageDurations(
            light=a.light + b.light,
            deep=a.deep + b.deep,
            rem=a.rem + b.rem,
        ),
        stage_segments=list(first.stage_segments) + list(second.stage_segments),
        awake_count=(first.awake_count or 0) + (second.awake_count or 0),
        disturbances=(first.disturbances or []) + (second.disturbances or []),
    )


def merge_sessions(
    sessions: Sequence[Session],
    max_gap_minutes: float = 30.0,
) -> list[Session]:
    """Join fragments of one night (e.g. the user got up briefly).

    Sessions are ordered by start time; consecutive sessions separated by at
    most *max_gap_minutes* are merged into the earlier one.
    """
    ordered = sorted(sessions, key=lambda s: s.start_at)
    if len(ordered) <= 1:
        return ordered

    merged: list[Session] = []
    current = ordered[0]
    for nxt in ordered[1:]:
        if _gap_minutes(current, nxt) <= max_gap_minutes:
            current = _merge_two(current, nxt)
        else:
            merged.append(current)
            current = nxt
    merged.append(current)
    return merged
