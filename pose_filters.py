"""Per-axis smoothing filters for the derived screen rotation."""

import numpy as np
from collections import deque

from pose_types import RotationTriple


class AxisFilter:
    """Base class for scalar angle filters."""

    def __init__(self):
        self.reset()

    def reset(self, value=0.0):
        """Reset filter state."""
        pass

    def update(self, measurement):
        """Feed one measurement and return the current estimate."""
        raise NotImplementedError


class NoFilter(AxisFilter):
    """Pass-through filter (no filtering)."""

    def update(self, measurement):
        return float(measurement)


class KalmanFilter(AxisFilter):
    """Scalar Kalman filter with a constant-value process model.

    The defaults give a fast response with light smoothing.
    """

    def __init__(self, process_noise=0.01, measurement_noise=0.1, initial_value=0.0):
        self.Q = process_noise
        self.R = measurement_noise
        self.x = float(initial_value)
        self.P = 1.0

    def reset(self, value=0.0):
        self.x = float(value)
        self.P = 1.0

    def update(self, measurement):
        # Predict
        x_pred = self.x
        P_pred = self.P + self.Q

        # Correct
        K = P_pred / (P_pred + self.R)
        self.x = x_pred + K * (measurement - x_pred)
        self.P = (1 - K) * P_pred

        return self.x

    @property
    def value(self):
        return self.x


class MovingAverageFilter(AxisFilter):
    """Moving average (FIR) filter."""

    def __init__(self, window_size=5):
        self.window_size = window_size
        self.buffer = deque(maxlen=window_size)
        super().__init__()

    def reset(self, value=0.0):
        self.buffer.clear()

    def update(self, measurement):
        self.buffer.append(measurement)
        return float(np.mean(self.buffer))


class MedianFilter(AxisFilter):
    """Median filter for outlier rejection."""

    def __init__(self, window_size=5):
        self.window_size = window_size
        self.buffer = deque(maxlen=window_size)
        super().__init__()

    def reset(self, value=0.0):
        self.buffer.clear()

    def update(self, measurement):
        self.buffer.append(measurement)
        return float(np.median(list(self.buffer)))


class ExponentialFilter(AxisFilter):
    """Exponential smoothing filter."""

    def __init__(self, alpha=0.3):
        self.alpha = alpha  # Smoothing factor (0-1, lower = smoother)
        self.last = None
        super().__init__()

    def reset(self, value=0.0):
        self.last = float(value)

    def update(self, measurement):
        self.last = self.alpha * measurement + (1 - self.alpha) * self.last
        return self.last


def create_axis_filter(filter_type, process_noise=0.01, measurement_noise=0.1):
    """Factory function to create one axis filter.

    Args:
        filter_type: Filter name, e.g. 'kalman' or 'exponential'
        process_noise: Kalman process noise (Q)
        measurement_noise: Kalman measurement noise (R)

    Raises:
        ValueError: If the filter type is unknown
    """
    filter_map = {
        'none': NoFilter,
        'kalman': lambda: KalmanFilter(process_noise, measurement_noise),
        'moving_average': lambda: MovingAverageFilter(window_size=5),
        'fir': lambda: MovingAverageFilter(window_size=5),
        'median': lambda: MedianFilter(window_size=5),
        'exponential': lambda: ExponentialFilter(alpha=0.3),
        'exp': lambda: ExponentialFilter(alpha=0.3),
    }

    filter_type = filter_type.lower()
    if filter_type not in filter_map:
        raise ValueError(f"Unknown filter type: {filter_type}. Available: {list(filter_map.keys())}")

    return filter_map[filter_type]()


FILTER_TYPES = ('none', 'kalman', 'moving_average', 'fir', 'median', 'exponential', 'exp')


class RotationFilterBank:
    """Three independent axis filters, one each for pitch, yaw and roll."""

    def __init__(self, filter_type='kalman', process_noise=0.01, measurement_noise=0.1):
        self.pitch = create_axis_filter(filter_type, process_noise, measurement_noise)
        self.yaw = create_axis_filter(filter_type, process_noise, measurement_noise)
        self.roll = create_axis_filter(filter_type, process_noise, measurement_noise)

    def reset(self, value=0.0):
        self.pitch.reset(value)
        self.yaw.reset(value)
        self.roll.reset(value)

    def update(self, rotation: RotationTriple) -> RotationTriple:
        return RotationTriple(
            self.pitch.update(rotation.pitch),
            self.yaw.update(rotation.yaw),
            self.roll.update(rotation.roll),
        )
