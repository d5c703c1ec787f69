"""Head pose from face landmarks.

There are three rotation channels:
1. Yaw from the horizontal nose offset against the eye centre.
2. Pitch from the vertical nose offset, normalised by face height.
3. Roll from the angle of the eye line.

Translation comes from where the eye centre sits in the frame (tx, ty) and
how tall the face is compared with a reference size (tz). Landmark indices
follow the MediaPipe FaceMesh topology.
"""
import numpy as np

from pose_types import RotationTriple, TranslationTriple

NOSE_TIP = 1
LEFT_EYE = 33
RIGHT_EYE = 263
CHIN = 152
FOREHEAD = 10

# Degrees of yaw per unit of nose offset measured in inter-ocular distances.
YAW_DEG_PER_UNIT = 90.0
# Degrees of pitch per unit of nose drop measured in face heights.
PITCH_DEG_PER_UNIT = 60.0
# Nose drop below the eye line, in face heights, for a level head.
NEUTRAL_NOSE_DROP = 0.3
# Face height as a fraction of frame height at the reference distance.
BASE_FACE_HEIGHT = 0.3

_REQUIRED = max(NOSE_TIP, LEFT_EYE, RIGHT_EYE, CHIN, FOREHEAD) + 1
_EPS = 1e-6


def keypoints_to_array(keypoints):
    """Convert keypoints to an (N, 2) float array of x, y.

    Accepts a numpy array, sequences of (x, y[, z]), or objects (or dicts)
    carrying x and y.
    """
    if isinstance(keypoints, np.ndarray):
        points = keypoints
    else:
        rows = []
        for kp in keypoints:
            if isinstance(kp, dict):
                rows.append((kp["x"], kp["y"]))
            elif hasattr(kp, "x") and hasattr(kp, "y"):
                rows.append((kp.x, kp.y))
            else:
                rows.append(tuple(kp)[:2])
        points = np.asarray(rows, dtype=float)

    points = np.asarray(points, dtype=float)
    if points.ndim != 2 or points.shape[1] < 2:
        raise ValueError(f"Expected an (N, 2+) keypoint array, got shape {points.shape}")
    return points[:, :2]


def extract_head_pose(keypoints, frame_size):
    """Estimate head rotation and translation from one face.

    Args:
        keypoints: Ordered face landmarks in source-frame pixels
        frame_size: (width, height) of the source frame

    Returns:
        Tuple (RotationTriple, TranslationTriple)

    Raises:
        ValueError: Too few keypoints, non-finite values or degenerate geometry
    """
    points = keypoints_to_array(keypoints)
    if len(points) < _REQUIRED:
        raise ValueError(f"Need at least {_REQUIRED} keypoints, got {len(points)}")

    nose = points[NOSE_TIP]
    left_eye = points[LEFT_EYE]
    right_eye = points[RIGHT_EYE]
    chin = points[CHIN]
    forehead = points[FOREHEAD]
    used = np.stack([nose, left_eye, right_eye, chin, forehead])
    if not np.all(np.isfinite(used)):
        raise ValueError("Non-finite landmark coordinates")

    width, height = frame_size
    eye_center = (left_eye + right_eye) / 2
    interocular = float(np.linalg.norm(right_eye - left_eye))
    face_height = float(abs(forehead[1] - chin[1]))
    if interocular < _EPS or face_height < _EPS:
        raise ValueError("Degenerate face geometry")

    yaw = (nose[0] - eye_center[0]) / interocular * YAW_DEG_PER_UNIT

    # Looking up raises the nose towards the eye line, so pitch is positive.
    nose_drop = (nose[1] - eye_center[1]) / face_height
    pitch = -(nose_drop - NEUTRAL_NOSE_DROP) * PITCH_DEG_PER_UNIT

    eye_angle = np.arctan2(right_eye[1] - left_eye[1], right_eye[0] - left_eye[0])
    roll = -np.degrees(eye_angle)

    tx = (eye_center[0] / width - 0.5) * 100
    ty = (eye_center[1] / height - 0.5) * 100
    tz = (face_height / height - BASE_FACE_HEIGHT) * 100

    rotation = RotationTriple(float(pitch), float(yaw), float(roll))
    translation = TranslationTriple(float(tx), float(ty), float(tz))
    return rotation, translation
