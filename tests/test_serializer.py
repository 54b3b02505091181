"""
Tests for result serialization.
"""

import json

from idmatch.detection import FaceBox
from idmatch.image import ExtractedFace, PixelImage
from idmatch.result import ComparisonResult, Status
from idmatch.serializer import save_faces, save_json


def _result():
    face = ExtractedFace(
        image=PixelImage.filled(20, 24, (90, 60, 30)),
        box=FaceBox(4, 4, 16, 20, confidence=0.91),
        region=(0, 0, 20, 24),
    )
    return ComparisonResult(
        status=Status.MATCH, confidence=0.8765432, id_face=face, profile_face=face
    )


def test_save_json(tmp_path):
    """Test the JSON export schema."""
    path = tmp_path / "out" / "result.json"

    save_json(_result(), str(path))

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["status"] == "match"
    assert payload["confidence"] == 0.8765
    assert payload["error"] is None
    assert payload["id_face"]["box"]["confidence"] == 0.91
    assert payload["id_face"]["region"] == {"x": 0, "y": 0, "width": 20, "height": 24}
    assert "data_url" not in payload["id_face"]


def test_save_json_with_faces(tmp_path):
    """Test embedding face crops as data URLs."""
    path = tmp_path / "result.json"

    save_json(_result(), str(path), include_faces=True)

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["profile_face"]["data_url"].startswith("data:image/jpeg;base64,")


def test_save_json_error_result(tmp_path):
    """Test that error results serialize without faces."""
    path = tmp_path / "result.json"

    save_json(ComparisonResult.failed("No face detected in ID image", "no_face_detected"), str(path))

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["status"] == "error"
    assert payload["confidence"] == 0.0
    assert payload["error_code"] == "no_face_detected"
    assert payload["id_face"] is None


def test_save_faces(tmp_path):
    """Test writing both crops as JPEG files."""
    written = save_faces(_result(), str(tmp_path / "faces"))

    assert [p.name for p in written] == ["id_face.jpg", "profile_face.jpg"]
    assert all(p.is_file() for p in written)


def test_save_faces_skips_missing(tmp_path):
    """Test that error results write no images."""
    written = save_faces(ComparisonResult.failed("boom"), str(tmp_path))

    assert written == []
