"""Tests for the command line entry point."""

from __future__ import annotations

import csv
import io
import json
from types import SimpleNamespace

import cv2
import pytest

from conftest import make_keypoints
from experiment_config import ExperimentConfig
from main import build_parser, load_detector, main, with_capture_size
from posture_logger import CSV_HEADER
from recorded_detector import dump_frame


@pytest.fixture()
def recording(tmp_path):
    lines = [dump_frame(0.0, [make_keypoints()])]
    lines += [dump_frame(k * 1000.0 / 60.0, [make_keypoints(yaw=8.0)]) for k in range(1, 61)]
    path = tmp_path / "session.jsonl"
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def test_replay_writes_csv(recording, tmp_path):
    output = tmp_path / "out" / "posture.csv"

    code = main(["--recording", str(recording), "--condition", "rotate1",
                 "--participant", "P7", "--task", "reading", "--output", str(output)])

    assert code == 0
    rows = list(csv.reader(io.StringIO(output.read_text(encoding="utf-8"))))
    assert rows[0] == list(CSV_HEADER)
    assert len(rows) >= 4
    assert {row[1] for row in rows[1:]} == {"P7"}
    assert {row[2] for row in rows[1:]} == {"rotate1"}


def test_replay_prints_csv_without_output(recording, capsys):
    assert main(["--recording", str(recording), "--filter", "none"]) == 0
    out = capsys.readouterr().out
    assert out.startswith(",".join(CSV_HEADER))


def test_bad_config_returns_2(recording, tmp_path):
    config = tmp_path / "config.json"
    config.write_text(json.dumps({"clamp_deg": -1}))
    assert main(["--recording", str(recording), "--config", str(config)]) == 2
    assert main(["--recording", str(recording), "--config", str(tmp_path / "missing.json")]) == 2


def test_missing_recording_returns_1(tmp_path):
    assert main(["--recording", str(tmp_path / "nothing.jsonl")]) == 1


def test_cam_without_detector_returns_1():
    assert main(["--cam", "0"]) == 1


def test_source_is_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--condition", "rotate1"])


def test_load_detector():
    assert load_detector("builtins:len") is len
    with pytest.raises(ValueError):
        load_detector("builtins")
    with pytest.raises(TypeError):
        load_detector("math:pi")
    with pytest.raises(ImportError):
        load_detector("no_such_module_here:detect")


@pytest.mark.parametrize("data", [{"clamp_deg": "wide"}, {"filter": {"type": 3}}])
def test_config_of_wrong_type_returns_2(recording, tmp_path, data):
    config = tmp_path / "config.json"
    config.write_text(json.dumps(data))
    assert main(["--recording", str(recording), "--config", str(config)]) == 2


def fake_capture(width, height):
    sizes = {cv2.CAP_PROP_FRAME_WIDTH: width, cv2.CAP_PROP_FRAME_HEIGHT: height}
    return SimpleNamespace(get=lambda prop: sizes.get(prop, 0.0))


def test_capture_size_replaces_frame_size():
    config = with_capture_size(ExperimentConfig(), fake_capture(1280.0, 720.0))
    assert config.frame_size == (1280, 720)
    assert config.clamp_deg == ExperimentConfig().clamp_deg


def test_unreported_capture_size_keeps_config():
    config = ExperimentConfig(frame_size=(800, 600))
    assert with_capture_size(config, fake_capture(0.0, 0.0)) is config
