"""Tests for the simulated screen preview."""

from __future__ import annotations

import numpy as np

from pose_types import ZERO_ROTATION, Direction, NonCoupledSnapshot, Phase, RotationTriple
from preview import BACKGROUND, SCREEN_COLOR, render_screen, screen_corners


def test_level_screen_corners():
    corners = screen_corners(ZERO_ROTATION, 640, 480)
    assert corners.dtype == np.int32
    assert corners.tolist() == [[128, 96], [512, 96], [512, 384], [128, 384]]


def test_pitch_foreshortens_height():
    corners = screen_corners(RotationTriple(60.0, 0.0, 0.0), 640, 480)
    assert corners[0].tolist() == [128, 168]
    assert corners[2].tolist() == [512, 312]


def test_roll_turns_screen_about_centre():
    level = screen_corners(ZERO_ROTATION, 640, 480)
    rolled = screen_corners(RotationTriple(0.0, 0.0, 30.0), 640, 480)
    assert not np.array_equal(level, rolled)
    assert np.allclose(rolled.mean(axis=0), [320, 240], atol=1)


def test_render_screen_draws_screen():
    img = render_screen(ZERO_ROTATION, latency_ms=12.5)
    assert img.shape == (480, 640, 3)
    assert img.dtype == np.uint8
    assert tuple(img[240, 320]) == SCREEN_COLOR
    assert tuple(img[5, 630]) == BACKGROUND


def test_render_screen_with_active_phase():
    phase = NonCoupledSnapshot(Direction.ROLL, Phase.ROTATING, 1000.0, 3.75)
    img = render_screen(RotationTriple(0.0, 0.0, 3.75), non_coupled=phase, width=320, height=240)
    assert img.shape == (240, 320, 3)
