"""Head tilt experiment runner.

Maps a participant's head pose onto a simulated screen tilt and logs the
signals at 4 Hz. There are two ways to run it:
1. Replay a recording of detector output (JSON lines) to a posture CSV.
2. Run live from a webcam with a face landmark detector loaded by name.

Examples:
    headtilt --recording session.jsonl --condition rotate1 --output pose.csv
    headtilt --cam 0 --detector my_detectors:FaceMesh --condition rotate2 --non-coupled
"""
from argparse import ArgumentParser
import asyncio
from dataclasses import replace
import importlib
import logging
import sys

import cv2

from clocks import ManualClock
from experiment import ExperimentRunner
from experiment_config import ConfigError, load_config, with_filter_type
from log_setup import setup_logger
from pose_filters import FILTER_TYPES
from pose_types import Condition
from preview import render_screen
from recorded_detector import load_recording

logger = logging.getLogger(__name__)

PREVIEW_WINDOW = "Screen Tilt"


def build_parser():
    parser = ArgumentParser(description="Head pose to screen tilt experiment runner.")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--recording", type=str, default=None,
                        help="JSON-lines recording of detector output to replay.")
    source.add_argument("--cam", type=int, default=None,
                        help="The webcam index for a live session.")
    parser.add_argument("--detector", type=str, default=None,
                        help="Live face detector as 'module:callable' (required with --cam)")
    parser.add_argument("--condition", type=str, default="default",
                        help="Experiment condition: default, rotate1 or rotate2")
    parser.add_argument("--non-coupled", action="store_true",
                        help="Inject scripted non-coupled rotations")
    parser.add_argument("--participant", type=str, default="unknown",
                        help="Participant identifier written to the log")
    parser.add_argument("--task", type=str, default="",
                        help="Task name written to the log")
    parser.add_argument("--filter", type=str, default=None, choices=FILTER_TYPES,
                        help="Smoothing filter for the screen rotation (default from config: kalman)")
    parser.add_argument("--config", type=str, default=None,
                        help="JSON configuration file (or set HEADTILT_CONFIG)")
    parser.add_argument("--duration", type=float, default=None,
                        help="Live session length in seconds")
    parser.add_argument("--output", type=str, default=None,
                        help="Posture log CSV path (default: print to stdout)")
    parser.add_argument("--inv", type=str, default="x",
                        choices=["none", "x", "y", "xy"],
                        help="Camera image inversion: none, x (mirror, default), y (flip), xy (both)")
    parser.add_argument("--preview", action="store_true",
                        help="Show the simulated screen in an OpenCV window")
    parser.add_argument("--log-level", type=str, default=None,
                        help="Log level (or set HEADTILT_LOG_LEVEL)")
    parser.add_argument("--log-dir", type=str, default=None,
                        help="Also write logs to <log-dir>/headtilt.log")
    return parser


def load_detector(target):
    """Import a detector given as 'module:attribute'.

    Classes are instantiated without arguments; any other callable is used
    as is.
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Detector must look like 'module:callable', got {target!r}")
    detector = getattr(importlib.import_module(module_name), attr)
    if isinstance(detector, type):
        detector = detector()
    if not callable(detector):
        raise TypeError(f"Detector {target!r} is not callable")
    return detector


def camera_frame_source(cap, inv="x"):
    """Return a frame source reading from an OpenCV capture."""
    flip_codes = {"x": 1, "y": 0, "xy": -1}

    def next_frame():
        ok, frame = cap.read()
        if not ok:
            return None
        if inv in flip_codes:
            frame = cv2.flip(frame, flip_codes[inv])
        return frame

    return next_frame


def with_capture_size(config, cap):
    """Use the camera's real frame size for landmark normalisation."""
    width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
    height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
    if width <= 0 or height <= 0:
        logger.warning("Camera did not report its frame size, using %dx%d", *config.frame_size)
        return config
    return replace(config, frame_size=(width, height))


def attach_preview(runner):
    """Redraw the preview window on every published tracking snapshot."""
    cv2.namedWindow(PREVIEW_WINDOW, cv2.WINDOW_NORMAL)

    def show(snapshot):
        img = render_screen(snapshot.screen_rotation, snapshot.non_coupled, snapshot.latency_ms)
        cv2.imshow(PREVIEW_WINDOW, img)
        cv2.waitKey(1)

    return runner.tracking.published.subscribe(show)


def run_replay(args, config):
    frames = load_recording(args.recording)
    runner = ExperimentRunner.create(
        args.participant, args.condition, args.task,
        enable_non_coupled=args.non_coupled, config=config, clock=ManualClock(),
    )
    unsubscribe = attach_preview(runner) if args.preview else None
    try:
        return runner.replay(frames)
    finally:
        if unsubscribe:
            unsubscribe()
            cv2.destroyAllWindows()


def run_live(args, config):
    if args.detector is None:
        raise ValueError("--cam needs --detector")
    detector = load_detector(args.detector)

    cap = cv2.VideoCapture(args.cam)
    # Reduce webcam buffer to minimize latency
    cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
    if not cap.isOpened():
        raise RuntimeError(f"Cannot open webcam {args.cam}")
    config = with_capture_size(config, cap)
    logger.info("Webcam source: %d (%dx%d)", args.cam, *config.frame_size)

    runner = ExperimentRunner.create(
        args.participant, args.condition, args.task,
        detector=detector, enable_non_coupled=args.non_coupled, config=config,
    )
    unsubscribe = attach_preview(runner) if args.preview else None
    try:
        return asyncio.run(runner.run(camera_frame_source(cap, args.inv), args.duration))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return runner.posture_log
    finally:
        if unsubscribe:
            unsubscribe()
            cv2.destroyAllWindows()
        cap.release()


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logger("", level=args.log_level, log_dir=args.log_dir)
    logger.debug("OpenCV version: %s", cv2.__version__)

    try:
        config = load_config(args.config)
        if args.filter:
            config = with_filter_type(config, args.filter)
    except (ConfigError, OSError) as e:
        logger.error("Cannot load configuration: %s", e)
        return 2

    if Condition.parse(args.condition) == Condition.DEFAULT and args.non_coupled:
        logger.warning("Non-coupled rotation has no visible effect in the 'default' condition")

    try:
        if args.recording is not None:
            posture_log = run_replay(args, config)
        else:
            posture_log = run_live(args, config)
    except (ValueError, TypeError, OSError, RuntimeError, ImportError) as e:
        logger.error("%s", e)
        return 1

    if args.output:
        posture_log.write_csv(args.output)
    else:
        print(posture_log.export_csv())
    return 0


if __name__ == "__main__":
    sys.exit(main())
