"""Tests for the per-frame tracking loop."""

from __future__ import annotations

import asyncio

import pytest

from conftest import make_keypoints
from experiment_config import ExperimentConfig, PhaseTiming
from non_coupled import NonCoupledRotationMachine
from pose_types import (
    Condition,
    Direction,
    Phase,
    RotationTriple,
    TrackingSnapshot,
    TranslationTriple,
)
from tracking_loop import TrackingLoop


class ScriptedDetector:
    """Returns the queued faces per call; callables raise or compute."""

    def __init__(self, results):
        self.results = list(results)
        self.calls = 0

    def __call__(self, frame):
        self.calls += 1
        result = self.results.pop(0) if self.results else []
        if isinstance(result, Exception):
            raise result
        return result


def constant_detector(keypoints):
    return lambda frame: [keypoints]


def test_nothing_published_before_start():
    loop = TrackingLoop(constant_detector(make_keypoints(yaw=5.0)), "rotate1")

    assert loop.step(frame=0) is None
    assert loop.snapshot == TrackingSnapshot()


def test_first_frame_after_start_is_baseline():
    loop = TrackingLoop(constant_detector(make_keypoints(yaw=5.0)), "rotate1")
    loop.start()

    snap = loop.step(frame=0)

    assert snap.head_pose.as_tuple() == pytest.approx((0.0, 0.0, 0.0))
    assert snap.screen_rotation.as_tuple() == pytest.approx((0.0, 0.0, 0.0))


def test_rotate1_yaw_converges_to_head_yaw():
    faces = [[make_keypoints()]] + [[make_keypoints(yaw=10.0)]] * 120  # 2 s at 60 Hz
    loop = TrackingLoop(ScriptedDetector(faces), "rotate1")
    loop.start()

    for frame in range(121):
        loop.step(frame)

    snap = loop.snapshot
    assert snap.head_pose.yaw == pytest.approx(10.0)
    assert snap.screen_rotation.yaw == pytest.approx(10.0, abs=1e-3)
    assert snap.screen_rotation.pitch == pytest.approx(0.0, abs=1e-6)
    assert snap.screen_rotation.roll == pytest.approx(0.0, abs=1e-6)
    assert snap.latency_ms >= 0.0


def test_default_condition_publishes_pose_but_no_rotation():
    faces = [[make_keypoints()], [make_keypoints(yaw=20.0, roll=5.0)]]
    loop = TrackingLoop(ScriptedDetector(faces), Condition.DEFAULT)
    loop.start()

    loop.step(0)
    snap = loop.step(1)

    assert snap.head_pose.yaw == pytest.approx(20.0)
    assert snap.screen_rotation == RotationTriple(0.0, 0.0, 0.0)
    assert loop.filters.yaw.value == 0.0


def test_output_clamped_to_limit():
    loop = TrackingLoop(ScriptedDetector([[make_keypoints()]] + [[make_keypoints(yaw=50.0)]] * 200), "rotate2")
    loop.start()
    for frame in range(201):
        loop.step(frame)

    assert loop.snapshot.raw_screen_rotation.yaw == pytest.approx(100.0)
    assert loop.snapshot.screen_rotation.yaw == 60.0


def test_empty_and_failed_detections_keep_previous_snapshot():
    detector = ScriptedDetector([
        [make_keypoints()],
        [make_keypoints(yaw=10.0)],
        [],
        RuntimeError("inference failed"),
        [make_keypoints()[:50]],
    ])
    loop = TrackingLoop(detector, "rotate1")
    loop.start()
    loop.step(0)
    published = loop.step(1)

    for frame in range(2, 5):
        assert loop.step(frame) is None
        assert loop.snapshot is published

    assert loop.detection_failures == 1
    assert detector.calls == 5


def test_start_resets_filters_and_baseline():
    detector = ScriptedDetector([[make_keypoints()]] + [[make_keypoints(yaw=15.0)]] * 30)
    loop = TrackingLoop(detector, "rotate1")
    loop.start()
    for frame in range(31):
        loop.step(frame)
    assert loop.filters.yaw.value > 10.0

    loop.stop()
    assert loop.snapshot == TrackingSnapshot()
    assert not loop.calibrator.is_set

    loop.start()
    assert loop.filters.yaw.value == 0.0
    assert loop.filters.yaw.P == 1.0
    detector.results = [[make_keypoints(yaw=15.0)]]
    snap = loop.step(31)
    assert snap.head_pose.yaw == pytest.approx(0.0)
    assert snap.screen_rotation.yaw == pytest.approx(0.0)


def test_non_coupled_phase_applied_to_one_axis(clock):
    timing = PhaseTiming(interval_ms=1000.0, ramp_ms=8000.0, pause_ms=2000.0, max_angle=60.0)
    machine = NonCoupledRotationMachine(timing, clock=clock)
    config = ExperimentConfig(timing=timing)
    loop = TrackingLoop(constant_detector(make_keypoints()), "rotate1", non_coupled=machine, config=config)
    loop.start()
    machine.arm()

    loop.step(0)
    clock.advance(1000.0 + 4000.0)
    snap = loop.step(1)

    assert snap.non_coupled.direction == Direction.PITCH
    assert snap.non_coupled.phase == Phase.ROTATING
    assert snap.raw_screen_rotation.pitch == pytest.approx(15.0)
    assert snap.raw_screen_rotation.yaw == pytest.approx(0.0)
    assert snap.raw_screen_rotation.roll == pytest.approx(0.0)


def test_custom_extractor_and_wrapped_faces():
    class Face:
        def __init__(self, keypoints):
            self.keypoints = keypoints

    loop = TrackingLoop(lambda frame: [Face(frame)], "rotate1",
                        extractor=lambda kp, size: (RotationTriple(yaw=kp), TranslationTriple()))
    loop.start()
    loop.step(0.0)
    snap = loop.step(10.0)
    assert snap.head_pose.yaw == 10.0


def test_async_run_with_awaitable_detector():
    config = ExperimentConfig(frame_interval_ms=0.0)
    frames = iter(range(40))

    async def detector(frame):
        await asyncio.sleep(0)
        return [make_keypoints(yaw=0.0 if frame == 0 else 8.0)]

    loop = TrackingLoop(detector, "rotate1", config=config)
    loop.start()
    asyncio.run(loop.run(lambda: next(frames, None)))

    assert loop.frame_count == 40
    assert loop.snapshot.head_pose.yaw == pytest.approx(8.0)


def test_stop_during_detection_discards_frame():
    loop = TrackingLoop(None, "rotate1")

    async def detector(frame):
        loop.stop()
        return [make_keypoints()]

    loop.detector = detector
    loop.start()
    result = asyncio.run(loop.step_async(0))

    assert result is None
    assert loop.snapshot == TrackingSnapshot()
