"""
Tests for the CLI entrypoint.
"""

import json

import cv2
import numpy as np
import pytest

import main
from idmatch.config import AppConfig
from idmatch.detection import FaceBox
from idmatch.detector import FaceDetector


class _FakeModel:
    def load(self):
        return "handle"

    def estimate(self, image, handle):
        return [FaceBox(100, 100, 300, 300, confidence=0.9)]


def _write_sharp_image(path, width=600, height=500):
    frame = np.zeros((height, width, 3), dtype=np.uint8)
    frame[:, 1::2] = 255
    assert cv2.imwrite(str(path), frame)
    return str(path)


def test_cli_overrides():
    """Test that CLI flags override the loaded configuration."""
    args = main.parse_args([
        "--id", "id.jpg", "--profile", "me.jpg",
        "--threshold", "0.8", "--backend", "cuda", "--output-mode", "save_json",
    ])

    config = main.apply_cli_overrides(AppConfig(), args)

    assert config.comparison.match_threshold == 0.8
    assert config.model.backend == "cuda"
    assert config.output.mode == "save_json"
    assert config.detection.confidence_threshold == 0.5


def test_invalid_cli_override_is_rejected():
    """Test that CLI overrides are validated like file and env values."""
    args = main.parse_args(["--id", "id.jpg", "--profile", "me.jpg", "--threshold", "1.5"])

    with pytest.raises(ValueError, match="match_threshold"):
        main.apply_cli_overrides(AppConfig(), args)

    code = main.main(["--id", "id.jpg", "--profile", "me.jpg", "--output-mode", "foo"])
    assert code == main.EXIT_ERROR


def test_missing_config_file():
    """Test that a missing configuration file exits with an error."""
    code = main.main([
        "--id", "id.jpg", "--profile", "me.jpg", "--config", "/nonexistent/config.yaml",
    ])

    assert code == main.EXIT_ERROR


def test_end_to_end_match(tmp_path, monkeypatch):
    """Test a full CLI run with a stub detection model."""
    monkeypatch.setattr(
        main, "FaceDetector", lambda config=None: FaceDetector(model=_FakeModel())
    )
    id_path = _write_sharp_image(tmp_path / "id.png")
    profile_path = _write_sharp_image(tmp_path / "profile.png")

    code = main.main([
        "--id", id_path, "--profile", profile_path,
        "--output-mode", "log,save_json,save_faces",
        "--output-path", str(tmp_path / "out"),
    ])

    assert code == main.EXIT_MATCH
    payload = json.loads((tmp_path / "out" / "result.json").read_text(encoding="utf-8"))
    assert payload["status"] == "match"
    assert (tmp_path / "out" / "id_face.jpg").is_file()


def test_rejected_id_image(tmp_path, monkeypatch):
    """Test that a low-resolution ID image stops the run."""
    monkeypatch.setattr(
        main, "FaceDetector", lambda config=None: FaceDetector(model=_FakeModel())
    )
    id_path = _write_sharp_image(tmp_path / "id.png", 100, 100)
    profile_path = _write_sharp_image(tmp_path / "profile.png")

    code = main.main(["--id", id_path, "--profile", profile_path])

    assert code == main.EXIT_ERROR
