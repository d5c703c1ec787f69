"""Coupling model: head pose deltas to raw screen rotation."""

import numpy as np

from experiment_config import CouplingWeights, PhaseTiming
from non_coupled import ramp_angle
from pose_types import Condition, RotationTriple, TranslationTriple, ZERO_ROTATION

AXES = ("pitch", "yaw", "roll")
DEFAULT_WEIGHTS = CouplingWeights()
DEFAULT_TIMING = PhaseTiming()


def couple(head_delta: RotationTriple,
           translation_delta: TranslationTriple,
           condition,
           direction=None,
           phase=None,
           elapsed_ms: float = 0.0,
           weights: CouplingWeights = DEFAULT_WEIGHTS,
           timing: PhaseTiming = DEFAULT_TIMING) -> RotationTriple:
    """
    Map head rotation and translation deltas onto a raw screen rotation.

    Args:
        head_delta: Head rotation relative to the baseline
        translation_delta: Head translation relative to the baseline
        condition: Condition or label; unknown labels behave as 'default'
        direction: Active non-coupled Direction, or None
        phase: Active non-coupled Phase, or None
        elapsed_ms: Time since the active phase started
        weights: Sensitivity constants
        timing: Non-coupled ramp timing

    Returns:
        Unfiltered, unclamped RotationTriple
    """
    condition = Condition.parse(condition)
    if condition == Condition.DEFAULT:
        return ZERO_ROTATION

    coupled = condition.multiplier * (
        weights.rotation_matrix() @ np.array(head_delta.as_tuple())
        + weights.translation_matrix() @ np.array(translation_delta.as_tuple())
    )

    # One axis follows the script on top of the user term, the others stay coupled.
    if direction is not None and phase is not None:
        coupled[AXES.index(direction.axis)] += ramp_angle(direction, phase, elapsed_ms, timing)

    return RotationTriple.from_sequence(coupled)


def clamp_rotation(rotation: RotationTriple, limit: float = 60.0) -> RotationTriple:
    """Clamp every axis to [-limit, limit]; NaN becomes 0."""
    values = np.nan_to_num(np.array(rotation.as_tuple(), dtype=float),
                           nan=0.0, posinf=limit, neginf=-limit)
    return RotationTriple.from_sequence(np.clip(values, -limit, limit))
