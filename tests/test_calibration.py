"""Tests for baseline capture."""

from __future__ import annotations

import pytest

from calibration import BaselineCalibrator
from pose_types import RotationTriple, TranslationTriple


def test_identical_frames_after_capture_give_zero_delta():
    calibrator = BaselineCalibrator()
    pose = RotationTriple(3.0, -7.5, 1.25)
    shift = TranslationTriple(4.0, -2.0, 1.0)
    calibrator.arm()

    first = calibrator.apply(pose, shift)
    second = calibrator.apply(pose, shift)

    assert first == (RotationTriple(), TranslationTriple())
    assert second == (RotationTriple(), TranslationTriple())


def test_delta_is_exact_offset_from_baseline():
    calibrator = BaselineCalibrator()
    calibrator.apply(RotationTriple(1.0, 2.0, 3.0), TranslationTriple(1.0, 1.0, 1.0))

    rotation, translation = calibrator.apply(RotationTriple(1.5, 12.0, 1.0), TranslationTriple(3.0, 1.0, -1.0))

    assert rotation.as_tuple() == pytest.approx((0.5, 10.0, -2.0))
    assert translation.as_tuple() == pytest.approx((2.0, 0.0, -2.0))


def test_arm_recaptures_on_next_frame():
    calibrator = BaselineCalibrator()
    calibrator.apply(RotationTriple(yaw=5.0), TranslationTriple())
    assert calibrator.is_set

    calibrator.arm()
    assert not calibrator.is_set

    rotation, _ = calibrator.apply(RotationTriple(yaw=20.0), TranslationTriple())
    assert rotation == RotationTriple()
    assert calibrator.baseline_rotation.yaw == 20.0
