"""Baseline capture: the first pose after start becomes the zero reference."""

from pose_types import RotationTriple, TranslationTriple


class BaselineCalibrator:
    """Hold the session baseline and turn raw poses into deltas."""

    def __init__(self):
        self.baseline_rotation = None
        self.baseline_translation = None

    @property
    def is_set(self):
        return self.baseline_rotation is not None

    def arm(self):
        """Forget the baseline; the next observed pose becomes the new one."""
        self.baseline_rotation = None
        self.baseline_translation = None

    def apply(self, rotation: RotationTriple, translation: TranslationTriple):
        """
        Return (rotation delta, translation delta) for one observed pose.

        The first pose after arm() is captured as baseline, so its delta is
        exactly zero.
        """
        if not self.is_set:
            self.baseline_rotation = rotation
            self.baseline_translation = translation
        return rotation - self.baseline_rotation, translation - self.baseline_translation
