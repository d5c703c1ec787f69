"""Value types shared by the head tracking pipeline."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class RotationTriple:
    """Orientation in degrees."""
    pitch: float = 0.0
    yaw: float = 0.0
    roll: float = 0.0

    def __sub__(self, other):
        return RotationTriple(self.pitch - other.pitch,
                              self.yaw - other.yaw,
                              self.roll - other.roll)

    def as_tuple(self):
        return (self.pitch, self.yaw, self.roll)

    @classmethod
    def from_sequence(cls, values):
        pitch, yaw, roll = values
        return cls(float(pitch), float(yaw), float(roll))


@dataclass(frozen=True)
class TranslationTriple:
    """Head displacement, right/down/forward positive."""
    tx: float = 0.0
    ty: float = 0.0
    tz: float = 0.0

    def __sub__(self, other):
        return TranslationTriple(self.tx - other.tx,
                                 self.ty - other.ty,
                                 self.tz - other.tz)

    def as_tuple(self):
        return (self.tx, self.ty, self.tz)


ZERO_ROTATION = RotationTriple()
ZERO_TRANSLATION = TranslationTriple()


class Condition(str, Enum):
    """Experiment arm."""
    DEFAULT = "default"
    ROTATE1 = "rotate1"
    ROTATE2 = "rotate2"

    @classmethod
    def parse(cls, value) -> "Condition":
        """Parse a condition label. Unknown or missing labels mean no coupling."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.DEFAULT

    @property
    def multiplier(self) -> float:
        return {Condition.ROTATE1: 1.0, Condition.ROTATE2: 2.0}.get(self, 0.0)


class Direction(str, Enum):
    """Scripted rotation direction. Each names one screen axis and a sign."""
    PITCH = "pitch"
    ROLL_REVERSE = "rollReverse"
    YAW = "yaw"
    PITCH_REVERSE = "pitchReverse"
    ROLL = "roll"
    YAW_REVERSE = "yawReverse"

    @property
    def axis(self) -> str:
        return self.value.replace("Reverse", "")

    @property
    def sign(self) -> float:
        return -1.0 if self.value.endswith("Reverse") else 1.0


# Order in which non-coupled phases visit the directions.
DIRECTION_CYCLE = (
    Direction.PITCH,
    Direction.ROLL_REVERSE,
    Direction.YAW,
    Direction.PITCH_REVERSE,
    Direction.ROLL,
    Direction.YAW_REVERSE,
)


class Phase(str, Enum):
    ROTATING = "rotating"
    PAUSED = "paused"


@dataclass(frozen=True)
class NonCoupledSnapshot:
    """Consistent read of the non-coupled rotation machine.

    ``direction`` and ``phase`` are either both set or both None.
    """
    direction: Optional[Direction] = None
    phase: Optional[Phase] = None
    elapsed_ms: float = 0.0
    angle: float = 0.0

    def __post_init__(self):
        if (self.direction is None) != (self.phase is None):
            raise ValueError("direction and phase must be set together")

    @property
    def active(self) -> bool:
        return self.phase is not None


IDLE_SNAPSHOT = NonCoupledSnapshot()


@dataclass(frozen=True)
class TrackingSnapshot:
    """Everything the tracking loop publishes for one frame."""
    screen_rotation: RotationTriple = ZERO_ROTATION
    raw_screen_rotation: RotationTriple = ZERO_ROTATION
    head_pose: RotationTriple = ZERO_ROTATION
    head_translation: TranslationTriple = ZERO_TRANSLATION
    latency_ms: float = 0.0
    non_coupled: NonCoupledSnapshot = IDLE_SNAPSHOT


@dataclass(frozen=True)
class ExperimentSession:
    """Identifiers supplied by the host for one recorded session."""
    participant_id: str
    condition: Condition = Condition.DEFAULT
    task_name: str = ""

    def __post_init__(self):
        object.__setattr__(self, "condition", Condition.parse(self.condition))
