"""Fixed-rate posture log with CSV export.

The logger samples whatever the tracking loop published last; it never waits
for a fresh frame, so each row may trail the logging instant by up to one
frame.
"""
import asyncio
import csv
import io
import logging
from dataclasses import astuple, dataclass, fields
from pathlib import Path
from typing import List, Optional

from clocks import monotonic_ms
from pose_types import ExperimentSession, IDLE_SNAPSHOT, TrackingSnapshot

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_MS = 250.0  # 4 Hz


@dataclass(frozen=True)
class PostureLogEntry:
    elapsed_ms: float
    participant_id: str
    condition: str
    task_name: str
    head_pitch: float
    head_yaw: float
    head_roll: float
    head_tx: float
    head_ty: float
    head_tz: float
    screen_pitch: float
    screen_yaw: float
    screen_roll: float
    latency_ms: float
    non_coupled_direction: Optional[str] = None
    non_coupled_state: Optional[str] = None


CSV_HEADER = tuple(f.name for f in fields(PostureLogEntry))

_FOUR_DECIMALS = {
    "head_pitch", "head_yaw", "head_roll",
    "head_tx", "head_ty", "head_tz",
    "screen_pitch", "screen_yaw", "screen_roll",
}


def format_entry(entry: PostureLogEntry) -> List[str]:
    """Format one entry as CSV cells."""
    cells = []
    for name, value in zip(CSV_HEADER, astuple(entry)):
        if name in _FOUR_DECIMALS:
            cells.append(f"{value:.4f}")
        elif name == "latency_ms":
            cells.append(f"{value:.2f}")
        elif name == "elapsed_ms":
            cells.append(str(int(round(value))))
        elif value is None:
            cells.append("")
        else:
            cells.append(str(value))
    return cells


class PostureLogger:
    """
    Append one PostureLogEntry per tick while recording.

    Args:
        tracking: StateCell holding the latest TrackingSnapshot
        non_coupled: Object with a snapshot() method (the rotation machine),
            or None when the session has no non-coupled rotation
        period_ms: Sampling period
        clock: Millisecond clock
    """

    def __init__(self, tracking, non_coupled=None, period_ms=DEFAULT_PERIOD_MS, clock=None):
        self.tracking = tracking
        self.non_coupled = non_coupled
        self.period_ms = period_ms
        self.clock = clock or monotonic_ms
        self.session: Optional[ExperimentSession] = None
        self.is_recording = False
        self._entries: List[PostureLogEntry] = []
        self._origin_ms: Optional[float] = None

    @property
    def entries(self):
        return tuple(self._entries)

    def __len__(self):
        return len(self._entries)

    def start_recording(self, session: ExperimentSession):
        """Begin recording; elapsed time restarts at the next tick."""
        self.session = session
        self.is_recording = True
        self._origin_ms = None
        logger.info("Posture recording started for participant %s", session.participant_id)

    def stop_recording(self):
        """Stop sampling. The accumulated log stays until clear()."""
        if self.is_recording:
            logger.info("Posture recording stopped with %d entries", len(self._entries))
        self.is_recording = False

    def clear(self):
        self._entries = []

    def tick(self, now_ms=None) -> Optional[PostureLogEntry]:
        """Sample the latest published values once."""
        if not self.is_recording or self.session is None:
            return None
        now_ms = self.clock() if now_ms is None else now_ms
        if self._origin_ms is None:
            self._origin_ms = now_ms

        snap: TrackingSnapshot = self.tracking.get()
        phase = self.non_coupled.snapshot() if self.non_coupled is not None else IDLE_SNAPSHOT
        entry = PostureLogEntry(
            elapsed_ms=now_ms - self._origin_ms,
            participant_id=self.session.participant_id,
            condition=self.session.condition.value,
            task_name=self.session.task_name,
            head_pitch=snap.head_pose.pitch,
            head_yaw=snap.head_pose.yaw,
            head_roll=snap.head_pose.roll,
            head_tx=snap.head_translation.tx,
            head_ty=snap.head_translation.ty,
            head_tz=snap.head_translation.tz,
            screen_pitch=snap.screen_rotation.pitch,
            screen_yaw=snap.screen_rotation.yaw,
            screen_roll=snap.screen_rotation.roll,
            latency_ms=snap.latency_ms,
            non_coupled_direction=phase.direction.value if phase.direction else None,
            non_coupled_state=phase.phase.value if phase.phase else None,
        )
        self._entries.append(entry)
        return entry

    async def run(self):
        """Tick every period until cancelled."""
        period_s = self.period_ms / 1000.0
        while True:
            self.tick()
            await asyncio.sleep(period_s)

    def export_csv(self) -> str:
        """Header plus one row per entry, joined with '\\n', no trailing newline."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for entry in self._entries:
            writer.writerow(format_entry(entry))
        return buffer.getvalue().rstrip("\n")

    def write_csv(self, path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.export_csv(), encoding="utf-8")
        logger.info("Wrote %d posture entries to %s", len(self._entries), path)
        return path
