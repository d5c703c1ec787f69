"""OpenCV preview of the simulated screen tilt."""

import cv2
import numpy as np

from pose_types import NonCoupledSnapshot, RotationTriple

BACKGROUND = (30, 30, 30)
SCREEN_COLOR = (200, 200, 200)
OUTLINE_COLOR = (0, 150, 0)
TEXT_COLOR = (200, 200, 200)
ACTIVE_COLOR = (0, 165, 255)


def screen_corners(rotation: RotationTriple, width, height, scale=0.6):
    """Corners of the tilted screen, projected onto the preview image.

    Roll turns the rectangle in-plane; pitch and yaw foreshorten it by the
    cosine of the angle, which is enough for a sanity view.

    Returns:
        (4, 2) int32 array, clockwise from top-left
    """
    half_w = width * scale / 2 * np.cos(np.radians(rotation.yaw))
    half_h = height * scale / 2 * np.cos(np.radians(rotation.pitch))
    corners = np.array([
        [-half_w, -half_h],
        [half_w, -half_h],
        [half_w, half_h],
        [-half_w, half_h],
    ])

    theta = np.radians(rotation.roll)
    rot = np.array([[np.cos(theta), -np.sin(theta)],
                    [np.sin(theta), np.cos(theta)]])
    corners = corners @ rot.T + np.array([width / 2, height / 2])
    return np.round(corners).astype(np.int32)


def render_screen(rotation: RotationTriple, non_coupled: NonCoupledSnapshot = None,
                  latency_ms=None, width=640, height=480):
    """Draw the tilted screen with the current angles.

    Returns:
        BGR image as a (height, width, 3) uint8 array
    """
    img = np.full((height, width, 3), BACKGROUND, dtype=np.uint8)
    corners = screen_corners(rotation, width, height)
    cv2.fillConvexPoly(img, corners, SCREEN_COLOR)
    cv2.polylines(img, [corners.reshape(-1, 1, 2)], True, OUTLINE_COLOR, 2)

    cv2.putText(img, f"Pitch: {rotation.pitch:.1f}", (10, 30),
                cv2.FONT_HERSHEY_SIMPLEX, 0.7, TEXT_COLOR, 2)
    cv2.putText(img, f"Yaw: {rotation.yaw:.1f}", (10, 60),
                cv2.FONT_HERSHEY_SIMPLEX, 0.7, TEXT_COLOR, 2)
    cv2.putText(img, f"Roll: {rotation.roll:.1f}", (10, 90),
                cv2.FONT_HERSHEY_SIMPLEX, 0.7, TEXT_COLOR, 2)
    if latency_ms is not None:
        cv2.putText(img, f"Latency: {latency_ms:.1f} ms", (10, height - 20),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, TEXT_COLOR, 1)
    if non_coupled is not None and non_coupled.active:
        cv2.putText(img, f"Non-coupled: {non_coupled.direction.value} ({non_coupled.phase.value})",
                    (10, 120), cv2.FONT_HERSHEY_SIMPLEX, 0.6, ACTIVE_COLOR, 2)
    return img
