"""Per-frame head tracking driver.

For every delivered frame while started:
1. Run the detector and take the first face.
2. Extract head rotation and translation from its landmarks.
3. Subtract the session baseline.
4. Couple the deltas onto a screen rotation, reading the non-coupled phase.
5. Smooth each axis and clamp.
6. Publish one TrackingSnapshot.

Frames without a face, failed detections and unusable landmarks publish
nothing; the previous snapshot stays current.
"""
import asyncio
import inspect
import logging
import time
from typing import Optional

from calibration import BaselineCalibrator
from coupling import clamp_rotation, couple
from experiment_config import ExperimentConfig
from non_coupled import NonCoupledRotationMachine
from pose_filters import RotationFilterBank
from pose_geometry import extract_head_pose
from pose_types import IDLE_SNAPSHOT, Condition, TrackingSnapshot
from state_cells import StateCell

logger = logging.getLogger(__name__)


def face_keypoints(face):
    """Keypoints of one detected face, whether wrapped or bare."""
    if isinstance(face, dict):
        return face["keypoints"]
    return getattr(face, "keypoints", face)


class TrackingLoop:
    """
    Turn detector output into a published screen rotation.

    The detector is called as ``detector(frame)`` and returns a list of faces
    (possibly awaitable). A face is a keypoint sequence or anything with a
    ``keypoints`` attribute or key.
    """

    def __init__(self, detector=None, condition=Condition.DEFAULT,
                 non_coupled: Optional[NonCoupledRotationMachine] = None,
                 config: Optional[ExperimentConfig] = None,
                 extractor=extract_head_pose, timer=time.perf_counter):
        self.detector = detector
        self.condition = Condition.parse(condition)
        self.non_coupled = non_coupled
        self.config = config or ExperimentConfig()
        self.extractor = extractor
        self.timer = timer

        self.calibrator = BaselineCalibrator()
        self.filters = RotationFilterBank(
            self.config.filter.type,
            self.config.filter.process_noise,
            self.config.filter.measurement_noise,
        )
        self.published = StateCell(TrackingSnapshot())
        self.is_started = False
        self.frame_count = 0
        self.detection_failures = 0

    @property
    def snapshot(self) -> TrackingSnapshot:
        return self.published.get()

    def start(self):
        """Re-arm calibration and reset all three filters."""
        self.calibrator.arm()
        self.filters.reset(0.0)
        self.frame_count = 0
        self.is_started = True
        logger.info("Tracking started (condition=%s)", self.condition.value)

    def stop(self):
        """Publish a zeroed snapshot and re-arm calibration for the next start."""
        self.is_started = False
        self.calibrator.arm()
        self.published.set(TrackingSnapshot())
        logger.info("Tracking stopped after %d frames", self.frame_count)

    def process_faces(self, faces, started_at=None) -> Optional[TrackingSnapshot]:
        """Run the pipeline on one frame's detector output.

        Args:
            faces: Detected faces for the frame (may be empty)
            started_at: timer() value when detection began, for latency

        Returns:
            The published snapshot, or None when nothing was published
        """
        if started_at is None:
            started_at = self.timer()
        if not self.is_started or faces is None or len(faces) == 0:
            return None

        try:
            rotation, translation = self.extractor(face_keypoints(faces[0]), self.config.frame_size)
        except (ValueError, TypeError, KeyError, IndexError) as e:
            logger.debug("Error extracting pose data: %s", e)
            return None

        head_delta, translation_delta = self.calibrator.apply(rotation, translation)

        if self.non_coupled is not None:
            phase = self.non_coupled.snapshot()
        else:
            phase = IDLE_SNAPSHOT

        raw = couple(head_delta, translation_delta, self.condition,
                     phase.direction, phase.phase, phase.elapsed_ms,
                     self.config.weights, self.config.timing)

        if self.condition == Condition.DEFAULT:
            filtered = raw
        else:
            filtered = self.filters.update(raw)
        screen = clamp_rotation(filtered, self.config.clamp_deg)

        snapshot = TrackingSnapshot(
            screen_rotation=screen,
            raw_screen_rotation=raw,
            head_pose=head_delta,
            head_translation=translation_delta,
            latency_ms=(self.timer() - started_at) * 1000.0,
            non_coupled=phase,
        )
        self.published.set(snapshot)
        self.frame_count += 1
        if self.frame_count % 300 == 0:
            logger.debug("Frames processed: %d, last latency %.2f ms",
                         self.frame_count, snapshot.latency_ms)
        return snapshot

    def _detection_failed(self, error):
        self.detection_failures += 1
        logger.warning("Face detection failed: %s", error)

    def step(self, frame) -> Optional[TrackingSnapshot]:
        """Detect and process one frame with a synchronous detector."""
        if not self.is_started:
            return None
        started_at = self.timer()
        try:
            faces = self.detector(frame)
        except Exception as e:
            self._detection_failed(e)
            return None
        return self.process_faces(faces, started_at)

    async def step_async(self, frame) -> Optional[TrackingSnapshot]:
        """Like step(), but awaits detectors that return awaitables."""
        if not self.is_started:
            return None
        started_at = self.timer()
        try:
            faces = self.detector(frame)
            if inspect.isawaitable(faces):
                faces = await faces
        except Exception as e:
            self._detection_failed(e)
            return None
        # stop() may have run while the detector was awaited
        if not self.is_started:
            return None
        return self.process_faces(faces, started_at)

    async def run(self, frame_source):
        """Pull frames until stopped or the source is exhausted.

        Args:
            frame_source: Callable returning the next frame, or None at the end
        """
        interval_s = self.config.frame_interval_ms / 1000.0
        while self.is_started:
            frame = frame_source()
            if frame is None:
                logger.info("Frame source exhausted")
                break
            await self.step_async(frame)
            await asyncio.sleep(interval_s)
