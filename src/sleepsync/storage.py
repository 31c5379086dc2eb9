"""Storage collaborators used by the calibration, scoring and session modules.

The core never talks to a database directly; it depends on the small
protocols below.  The ``Memory*`` classes implement them in-process and back
the CLI and the test suite.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Protocol, Sequence

from sleepsync.errors import InvalidInput
from sleepsync.models import Baseline, SensorSample, Session, SleepScoreBreakdown

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class SessionStore(Protocol):
    def get_recent_sessions(self, user_id: str, days: int) -> list[Session]:
        """Up to *days* most recent sessions for a user, newest first."""

    def create_session(self, session: Session) -> None: ...

    def update_session(self, session_id: str, **fields: Any) -> None: ...


class ChunkStore(Protocol):
    def get_chunks_for_session(self, session_id: str) -> list[SensorSample]:
        """All stored samples of a session in ascending timestamp order."""

    def save_chunks(self, samples: Sequence[SensorSample]) -> None:
        """Persist a batch; re-saving a chunk with the same id is a no-op."""


class BaselineStore(Protocol):
    def get_baseline(self, user_id: str) -> Baseline | None: ...

    def save_baseline(self, baseline: Baseline) -> None:
        """Store *baseline*, replacing any previous one for the user."""


class ScoreStore(Protocol):
    def save_score(
        self,
        session_id: str,
        user_id: str,
        date: str,
        breakdown: SleepScoreBreakdown,
    ) -> None:
        """Append a score to the user's history."""


# ---------------------------------------------------------------------------
# In-memory implementations
# ---------------------------------------------------------------------------


class MemorySessionStore:
    """Sessions kept in a dict keyed by session id."""

    def __init__(self, sessions: Sequence[Session] = ()) -> None:
        self._sessions: dict[str, Session] = {s.id: s for s in sessions}

    def get_recent_sessions(self, user_id: str, days: int) -> list[Session]:
        mine = [s for s in self._sessions.values() if s.user_id == user_id]
        mine.sort(key=lambda s: s.start_at, reverse=True)
        if not mine:
            return []
        cutoff = mine[0].start_at - timedelta(days=days)
        return [s for s in mine if s.start_at > cutoff][:days]

    def get_session(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def create_session(self, session: Session) -> None:
        if session.id in self._sessions:
            raise InvalidInput(f"session {session.id} already exists")
        self._sessions[session.id] = session

    def update_session(self, session_id: str, **fields: Any) -> None:
        if session_id not in self._sessions:
            raise InvalidInput(f"unknown session {session_id}")
        self._sessions[session_id] = replace(self._sessions[session_id], **fields)


class MemoryChunkStore:
    """Samples grouped by session, de-duplicated by chunk id."""

    def __init__(self) -> None:
        self._chunks: dict[str, dict[str, SensorSample]] = {}
        self._anonymous = 0

    def get_chunks_for_session(self, session_id: str) -> list[SensorSample]:
        chunks = list(self._chunks.get(session_id, {}).values())
        chunks.sort(key=lambda c: c.timestamp)
        return chunks

    def save_chunks(self, samples: Sequence[SensorSample]) -> None:
        for sample in samples:
            key = sample.id
            if key is None:
                self._anonymous += 1
                key = f"_anon{self._anonymous}"
            bucket = self._chunks.setdefault(sample.session_id or "", {})
            bucket.setdefault(key, sample)
        logger.debug("Saved %d chunks", len(samples))

    def count(self, session_id: str) -> int:
        return len(self._chunks.get(session_id, {}))


class MemoryBaselineStore:
    """One baseline per user; the last save wins."""

    def __init__(self) -> None:
        self._baselines: dict[str, Baseline] = {}

    def get_baseline(self, user_id: str) -> Baseline | None:
        return self._baselines.get(user_id)

    def save_baseline(self, baseline: Baseline) -> None:
        self._baselines[baseline.user_id] = baseline


class MemoryScoreStore:
    """Append-only score history."""

    def __init__(self) -> None:
        self.history: list[dict[str, Any]] = []

    def save_score(
        self,
        session_id: str,
        user_id: str,
        date: str,
        breakdown: SleepScoreBreakdown,
    ) -> None:
        self.history.append({
            "session_id": session_id,
            "user_id": user_id,
            "date": date,
            "breakdown": breakdown,
            "saved_at": datetime.now().isoformat(),
        })

    def scores_for(self, user_id: str) -> list[SleepScoreBreakdown]:
        return [h["breakdown"] for h in self.history if h["user_id"] == user_id]
