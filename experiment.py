"""One experiment session: tracking, non-coupled rotation and posture log.

The host supplies the session identifiers, the condition and whether
non-coupled rotation is enabled, then calls start()/stop() or run(). Live
sessions run three asyncio tasks (frame loop, phase timer, 4 Hz logger);
replay() drives the same components from recorded detector output with a
manual clock.
"""
import asyncio
import logging
import time
from typing import Optional

from clocks import ManualClock, monotonic_ms
from experiment_config import ExperimentConfig
from non_coupled import NonCoupledRotationMachine
from pose_types import Condition, ExperimentSession
from posture_logger import PostureLogger
from tracking_loop import TrackingLoop

logger = logging.getLogger(__name__)


class ExperimentRunner:
    """
    Wire the tracking core for one session.

    Args:
        session: Participant, condition and task identifiers
        detector: Face detector collaborator, ``detector(frame) -> faces``
        enable_non_coupled: Whether scripted rotations are injected
        config: Experiment configuration
        clock: Millisecond clock shared by the phase machine and the logger
    """

    def __init__(self, session: ExperimentSession, detector=None,
                 enable_non_coupled=False, config: Optional[ExperimentConfig] = None,
                 clock=None):
        self.session = session
        self.config = config or ExperimentConfig()
        self.clock = clock or monotonic_ms

        self.non_coupled = NonCoupledRotationMachine(
            self.config.timing, enabled=enable_non_coupled, clock=self.clock)
        # Latency is read from the manual clock when replaying
        timer = (lambda: self.clock() / 1000.0) if isinstance(self.clock, ManualClock) else time.perf_counter
        self.tracking = TrackingLoop(
            detector=detector,
            condition=session.condition,
            non_coupled=self.non_coupled if enable_non_coupled else None,
            config=self.config,
            timer=timer,
        )
        self.posture_log = PostureLogger(
            self.tracking.published,
            non_coupled=self.non_coupled if enable_non_coupled else None,
            period_ms=self.config.log_period_ms,
            clock=self.clock,
        )
        self._tasks = []

    @classmethod
    def create(cls, participant_id, condition, task_name="", **kwargs):
        """Build a runner from raw host values; unknown conditions mean 'default'."""
        parsed = Condition.parse(condition)
        if not isinstance(condition, Condition) and parsed.value != str(condition).strip().lower():
            logger.warning("Unknown condition %r, falling back to 'default'", condition)
        session = ExperimentSession(participant_id, parsed, task_name)
        return cls(session, **kwargs)

    @property
    def is_running(self):
        return self.tracking.is_started

    def start(self):
        """Start tracking, arm the phase machine and begin recording."""
        self.tracking.start()
        self.non_coupled.arm()
        self.posture_log.start_recording(self.session)

    def stop(self):
        """Cancel every scheduled callback, then stop all components."""
        for task in self._tasks:
            task.cancel()
        self._tasks = []
        self.tracking.stop()
        self.non_coupled.disarm()
        self.posture_log.stop_recording()

    async def run(self, frame_source, duration_s=None):
        """Run a live session until the frame source ends or *duration_s* passes.

        Args:
            frame_source: Callable returning the next frame, or None at the end
            duration_s: Optional session length in seconds
        """
        self.start()
        frames = asyncio.ensure_future(self.tracking.run(frame_source))
        self._tasks = [
            frames,
            asyncio.ensure_future(self.posture_log.run()),
        ]
        if self.non_coupled.is_armed:
            self._tasks.append(asyncio.ensure_future(self.non_coupled.run()))
        try:
            await asyncio.wait_for(asyncio.shield(frames), timeout=duration_s)
        except asyncio.TimeoutError:
            logger.info("Session duration of %.1f s reached", duration_s)
        finally:
            tasks = list(self._tasks)
            self.stop()
            await asyncio.gather(*tasks, return_exceptions=True)
        return self.posture_log

    def replay(self, frames):
        """Replay recorded frames deterministically.

        The runner must have been built with a ManualClock. Logger ticks fall
        on every period boundary up to each frame's time and sample the state
        published before that frame.

        Args:
            frames: Iterable of RecordedFrame, in time order

        Returns:
            The PostureLogger holding the recorded entries
        """
        if not isinstance(self.clock, ManualClock):
            raise TypeError("replay() needs a runner built with a ManualClock")

        frames = list(frames)
        if frames:
            self.clock.set(frames[0].t_ms)
        self.start()
        period = self.config.log_period_ms
        next_tick = self.clock()
        try:
            for frame in frames:
                while next_tick <= frame.t_ms:
                    self.clock.set(next_tick)
                    self.posture_log.tick()
                    next_tick += period
                self.clock.set(frame.t_ms)
                self.tracking.process_faces(list(frame.faces))
        finally:
            self.stop()
        return self.posture_log
