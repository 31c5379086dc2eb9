"""Data model shared by the detection, calibration and scoring modules."""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any


class SleepStage(str, Enum):
    """Sleep stage label assigned per window."""

    AWAKE = "awake"
    LIGHT = "light"
    DEEP = "deep"
    REM = "rem"


class MovementLevel(str, Enum):
    """Coarse movement intensity band."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ---------------------------------------------------------------------------
# Sensor samples
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Vector3:
    """A 3-axis reading (accelerometer in g, gyroscope in rad/s)."""

    x: float
    y: float
    z: float

    @property
    def magnitude(self) -> float:
        return (self.x ** 2 + self.y ** 2 + self.z ** 2) ** 0.5


@dataclass(frozen=True)
class AudioReading:
    """Microphone level for one sample."""

    decibel: float
    frequency: float = 0.0  # dominant frequency, Hz
    is_snoring: bool | None = None  # set when the source already flagged it


@dataclass(frozen=True)
class LightReading:
    """Ambient light level for one sample."""

    lux: float


@dataclass(frozen=True)
class SensorSample:
    """One timestamped reading from the acquisition hardware."""

    timestamp: float  # seconds
    accelerometer: Vector3 | None = None
    gyroscope: Vector3 | None = None
    audio: AudioReading | None = None
    light: LightReading | None = None
    id: str | None = None
    session_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SensorSample:
        """Build a sample from a plain dict (e.g. one JSONL capture line)."""
        accel = data.get("accelerometer")
        gyro = data.get("gyroscope")
        audio = data.get("audio")
        light = data.get("light")
        return cls(
            timestamp=float(data["timestamp"]),
            accelerometer=Vector3(
                float(accel["x"]), float(accel["y"]), float(accel["z"])
            ) if accel else None,
            gyroscope=Vector3(
                float(gyro["x"]), float(gyro["y"]), float(gyro["z"])
            ) if gyro else None,
            audio=AudioReading(
                decibel=float(audio["decibel"]),
                frequency=float(audio.get("frequency", 0.0)),
                is_snoring=audio.get("is_snoring"),
            ) if audio else None,
            light=LightReading(lux=float(light["lux"])) if light else None,
            id=data.get("id"),
            session_id=data.get("session_id"),
        )

    def __repr__(self) -> str:
        parts = [f"t={self.timestamp:.1f}"]
        if self.accelerometer is not None:
            parts.append(f"mag={self.accelerometer.magnitude:.3f}g")
        if self.audio is not None:
            parts.append(f"{self.audio.decibel:.0f}dB")
        if self.light is not None:
            parts.append(f"{self.light.lux:.1f}lux")
        return f"SensorSample({', '.join(parts)})"


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


@dataclass
class StageSegment:
    """A contiguous run of one stage."""

    stage: SleepStage
    start_time: float
    end_time: float
    duration_min: float


@dataclass
class StageDurations:
    """Minutes spent in each sleep stage over a session."""

    light: float = 0.0
    deep: float = 0.0
    rem: float = 0.0

    @property
    def total(self) -> float:
        return self.light + self.deep + self.rem


@dataclass
class Disturbance:
    """A movement, sound or light event that interrupted sleep."""

    type: str  # "movement" | "sound" | "light"
    timestamp: float
    severity: str  # "low" | "medium" | "high"


@dataclass
class Session:
    """One tracked sleep attempt."""

    id: str
    user_id: str
    start_at: datetime
    end_at: datetime | None = None
    duration_min: float | None = None
    stages: StageDurations | None = None
    stage_segments: list[StageSegment] = field(default_factory=list)
    awake_count: int | None = None
    sleep_latency: float | None = None  # minutes from start to sleep onset
    disturbances: list[Disturbance] | None = None

    @property
    def is_complete(self) -> bool:
        """True once the session has both an end time and a duration."""
        return self.end_at is not None and bool(self.duration_min)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["start_at"] = self.start_at.isoformat()
        d["end_at"] = self.end_at.isoformat() if self.end_at else None
        for seg in d["stage_segments"]:
            seg["stage"] = SleepStage(seg["stage"]).value
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        stages = data.get("stages")
        disturbances = data.get("disturbances")
        end_at = data.get("end_at")
        return cls(
            id=str(data["id"]),
            user_id=str(data.get("user_id", "")),
            start_at=datetime.fromisoformat(data["start_at"]),
            end_at=datetime.fromisoformat(end_at) if end_at else None,
            duration_min=data.get("duration_min"),
            stages=StageDurations(**stages) if stages else None,
            stage_segments=[
                StageSegment(
                    stage=SleepStage(s["stage"]),
                    start_time=float(s["start_time"]),
                    end_time=float(s["end_time"]),
                    duration_min=float(s["duration_min"]),
                )
                for s in data.get("stage_segments") or []
            ],
            awake_count=data.get("awake_count"),
            sleep_latency=data.get("sleep_latency"),
            disturbances=[Disturbance(**d) for d in disturbances]
            if disturbances is not None else None,
        )

    def __repr__(self) -> str:
        dur = f"{self.duration_min:.0f}min" if self.duration_min else "open"
        return f"Session({self.id}, {self.start_at:%Y-%m-%d %H:%M}, {dur})"


# ---------------------------------------------------------------------------
# Baseline
# ---------------------------------------------------------------------------


@dataclass
class SensorCalibration:
    """Per-user sensor thresholds derived from baseline nights."""

    movement_threshold: float
    sound_threshold: float
    light_threshold: float


@dataclass
class Baseline:
    """A user's normal sleep pattern over the first two weeks."""

    user_id: str
    average_bedtime: str  # HH:MM
    average_wake_time: str  # HH:MM
    average_duration: float  # hours
    average_latency: float  # minutes
    average_efficiency: float  # percent
    disturbance_frequency: float  # awakenings per night
    sensor_calibration: SensorCalibration
    days_collected: int
    completed_at: str  # ISO timestamp

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Baseline:
        kwargs = dict(data)
        kwargs["sensor_calibration"] = SensorCalibration(**data["sensor_calibration"])
        return cls(**kwargs)

    def __repr__(self) -> str:
        return (
            f"Baseline({self.user_id}: bed={self.average_bedtime}, "
            f"wake={self.average_wake_time}, "
            f"dur={self.average_duration:.1f}h, "
            f"eff={self.average_efficiency:.0f}%, "
            f"days={self.days_collected})"
        )


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScoreFactor:
    """A named highlight explaining part of a score."""

    name: str
    impact: str  # "positive" | "negative"
    value: float


@dataclass(frozen=True)
class SleepScoreBreakdown:
    """Component scores (0-100) and the weighted total for one session."""

    duration: int
    efficiency: int
    latency: int
    stages: int
    disturbances: int
    circadian: int
    total: int
    factors: tuple[ScoreFactor, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["factors"] = [asdict(f) for f in self.factors]
        return d

    def __repr__(self) -> str:
        return (
            f"SleepScoreBreakdown(total={self.total}, dur={self.duration}, "
            f"eff={self.efficiency}, lat={self.latency}, "
            f"stages={self.stages}, dist={self.disturbances}, "
            f"circ={self.circadian})"
        )
