"""Shared fixtures: synthetic face landmarks and a manual clock."""

from __future__ import annotations

import numpy as np
import pytest

from clocks import ManualClock
from pose_geometry import (
    CHIN,
    FOREHEAD,
    LEFT_EYE,
    NEUTRAL_NOSE_DROP,
    NOSE_TIP,
    PITCH_DEG_PER_UNIT,
    RIGHT_EYE,
    YAW_DEG_PER_UNIT,
)

FRAME_SIZE = (640, 480)
NUM_LANDMARKS = 468
INTEROCULAR = 60.0
FACE_HEIGHT = 144.0  # 0.3 of the frame height, the reference size


def make_keypoints(yaw=0.0, pitch=0.0, roll=0.0, shift=(0.0, 0.0), face_height=FACE_HEIGHT):
    """Landmarks whose extracted pose is the given angles and eye-centre shift."""
    cx = FRAME_SIZE[0] / 2 + shift[0]
    cy = FRAME_SIZE[1] / 2 + shift[1]
    points = np.tile([cx, cy, 0.0], (NUM_LANDMARKS, 1))

    theta = np.radians(-roll)
    half = INTEROCULAR / 2 * np.array([np.cos(theta), np.sin(theta)])
    points[LEFT_EYE, :2] = [cx - half[0], cy - half[1]]
    points[RIGHT_EYE, :2] = [cx + half[0], cy + half[1]]

    nose_x = cx + yaw / YAW_DEG_PER_UNIT * INTEROCULAR
    nose_y = cy + (NEUTRAL_NOSE_DROP - pitch / PITCH_DEG_PER_UNIT) * face_height
    points[NOSE_TIP, :2] = [nose_x, nose_y]

    points[FOREHEAD, :2] = [cx, cy - 0.4 * face_height]
    points[CHIN, :2] = [cx, cy + 0.6 * face_height]
    return points


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def frame_size():
    return FRAME_SIZE
