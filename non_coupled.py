"""Non-coupled rotation phases.

Every ``interval_ms`` one screen axis is driven by a scripted ramp instead of
the participant's head:

    Idle --(next_start_ms)--> Rotating --(ramp_ms)--> Paused --(pause_ms)--> Idle

After each Paused phase the direction index advances through DIRECTION_CYCLE.
The states are plain values and ``transition`` is pure, so the timing can be
checked with a manual clock. ``NonCoupledRotationMachine`` holds the current
state for one tracking session.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Union

from clocks import monotonic_ms
from experiment_config import PhaseTiming
from pose_types import (
    DIRECTION_CYCLE,
    IDLE_SNAPSHOT,
    Direction,
    NonCoupledSnapshot,
    Phase,
)
from state_cells import StateCell

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Idle:
    index: int
    next_start_ms: float


@dataclass(frozen=True)
class Rotating:
    index: int
    direction: Direction
    started_ms: float


@dataclass(frozen=True)
class Paused:
    index: int
    direction: Direction
    started_ms: float


PhaseState = Union[Idle, Rotating, Paused]


def ramp_angle(direction, phase, elapsed_ms, timing: PhaseTiming) -> float:
    """Scripted angle for the active axis.

    Rises linearly to max_angle / 2 over ramp_ms and holds there while
    paused. ``...Reverse`` directions are negative.
    """
    if direction is None or phase is None:
        return 0.0
    if phase == Phase.PAUSED:
        progress = 1.0
    else:
        progress = min(max(elapsed_ms, 0.0) / timing.ramp_ms, 1.0)
    return direction.sign * progress * (timing.max_angle / 2)


def transition(state: PhaseState, now_ms: float, timing: PhaseTiming) -> PhaseState:
    """Advance *state* through every deadline that has passed by *now_ms*.

    Deadlines are anchored on the previous deadline rather than on *now_ms*,
    so late reads do not stretch the schedule.
    """
    while True:
        if isinstance(state, Idle):
            if now_ms < state.next_start_ms:
                return state
            direction = DIRECTION_CYCLE[state.index % len(DIRECTION_CYCLE)]
            state = Rotating(state.index, direction, state.next_start_ms)
        elif isinstance(state, Rotating):
            if now_ms < state.started_ms + timing.ramp_ms:
                return state
            state = Paused(state.index, state.direction, state.started_ms)
        elif isinstance(state, Paused):
            ends_ms = state.started_ms + timing.ramp_ms + timing.pause_ms
            if now_ms < ends_ms:
                return state
            state = Idle((state.index + 1) % len(DIRECTION_CYCLE), ends_ms + timing.interval_ms)
        else:
            raise TypeError(f"Unknown phase state: {state!r}")


def snapshot_of(state: Optional[PhaseState], now_ms: float, timing: PhaseTiming) -> NonCoupledSnapshot:
    """Describe *state* at *now_ms* as a direction/phase pair plus ramp angle."""
    if state is None or isinstance(state, Idle):
        return IDLE_SNAPSHOT
    phase = Phase.ROTATING if isinstance(state, Rotating) else Phase.PAUSED
    elapsed = now_ms - state.started_ms
    return NonCoupledSnapshot(
        direction=state.direction,
        phase=phase,
        elapsed_ms=elapsed,
        angle=ramp_angle(state.direction, phase, elapsed, timing),
    )


class NonCoupledRotationMachine:
    """Current non-coupled phase for one tracking session.

    Reads go through snapshot(), which first catches the state up with the
    clock, so the tracking loop always sees a consistent direction/phase pair
    whether or not the run() task is scheduled.
    """

    def __init__(self, timing: Optional[PhaseTiming] = None, enabled=True, clock=None):
        self.timing = timing or PhaseTiming()
        self.enabled = enabled
        self.clock = clock or monotonic_ms
        self.state: Optional[PhaseState] = None
        self.published = StateCell(IDLE_SNAPSHOT)

    @property
    def is_armed(self):
        return self.state is not None

    @property
    def index(self) -> Optional[int]:
        return None if self.state is None else self.state.index

    def arm(self, now_ms=None):
        """Start the cycle at index 0; the first phase begins one interval later."""
        if not self.enabled:
            logger.debug("Non-coupled rotation disabled, not arming")
            return
        now_ms = self.clock() if now_ms is None else now_ms
        self.state = Idle(0, now_ms + self.timing.interval_ms)
        self.published.set(IDLE_SNAPSHOT)
        logger.info("Non-coupled rotation armed, first phase in %.0f ms", self.timing.interval_ms)

    def disarm(self):
        """Cancel any pending or active phase."""
        if self.state is not None:
            logger.info("Non-coupled rotation disarmed")
        self.state = None
        self.published.set(IDLE_SNAPSHOT)

    def set_enabled(self, enabled):
        self.enabled = enabled
        if not enabled:
            self.disarm()

    def advance(self, now_ms=None) -> NonCoupledSnapshot:
        """Apply every transition due by *now_ms* and publish the result."""
        now_ms = self.clock() if now_ms is None else now_ms
        if self.state is None:
            return IDLE_SNAPSHOT

        previous = self.state
        self.state = transition(self.state, now_ms, self.timing)
        snap = snapshot_of(self.state, now_ms, self.timing)
        if type(previous) is not type(self.state) or previous.index != self.state.index:
            logger.info("Non-coupled phase -> %s (direction=%s, index=%d)",
                        type(self.state).__name__,
                        snap.direction.value if snap.direction else None,
                        self.state.index)
        self.published.set(snap)
        return snap

    snapshot = advance

    def next_deadline_ms(self) -> Optional[float]:
        """Clock time of the next transition, or None when disarmed."""
        state = self.state
        if state is None:
            return None
        if isinstance(state, Idle):
            return state.next_start_ms
        if isinstance(state, Rotating):
            return state.started_ms + self.timing.ramp_ms
        return state.started_ms + self.timing.ramp_ms + self.timing.pause_ms

    async def run(self):
        """Sleep until each deadline and advance, for observers of ``published``.

        Exits when the machine is disarmed; cancelling the task stops it at
        once.
        """
        while self.state is not None:
            deadline = self.next_deadline_ms()
            delay_s = max(0.0, (deadline - self.clock()) / 1000.0)
            await asyncio.sleep(delay_s)
            self.advance()
