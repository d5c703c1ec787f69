"""Recorded detector output, for offline replay.

A recording is a JSON-lines file, one frame per line:

    {"t_ms": 16.7, "faces": [[[x, y, z], [x, y, z], ...]]}

``faces`` holds the keypoints of every face the detector reported for that
frame (empty list when none).
"""
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordedFrame:
    t_ms: float
    faces: tuple


def parse_frame(line: str) -> RecordedFrame:
    data = json.loads(line)
    faces = tuple(np.asarray(face, dtype=float) for face in data.get("faces", []))
    return RecordedFrame(float(data["t_ms"]), faces)


def load_recording(path) -> List[RecordedFrame]:
    """Read a recording, skipping blank lines. Frames are sorted by time.

    Raises:
        ValueError: On a malformed line (the line number is included)
    """
    frames = []
    with Path(path).open("r", encoding="utf-8") as fp:
        for line_no, line in enumerate(fp, start=1):
            if not line.strip():
                continue
            try:
                frames.append(parse_frame(line))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                raise ValueError(f"{path}:{line_no}: bad frame record: {e}") from e
    frames.sort(key=lambda frame: frame.t_ms)
    logger.info("Loaded %d frames from %s", len(frames), path)
    return frames


def dump_frame(t_ms, faces) -> str:
    """Serialise one frame as a recording line."""
    return json.dumps({
        "t_ms": float(t_ms),
        "faces": [np.asarray(face, dtype=float).tolist() for face in faces],
    })

