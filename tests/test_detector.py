"""
Tests for the detector module.
"""

import asyncio
import logging
import time
from pathlib import Path

import numpy as np
import pytest

from idmatch.config import AppConfig, ModelConfig
from idmatch.detection import FaceBox
from idmatch.detector import FaceDetector, ModelState, SsdFaceModel, select_face
from idmatch.errors import ModelLoadError, NoFaceDetected
from idmatch.image import PixelImage
from idmatch.result import ImageRole

# Skip integration tests if model files are missing
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_MODEL_EXISTS = (
    (_PROJECT_ROOT / "models/deploy.prototxt").exists() and
    (_PROJECT_ROOT / "models/res10_300x300_ssd_iter_140000.caffemodel").exists()
)


class _FakeModel:
    def __init__(self, boxes=(), delay=0.0, error=None):
        self._boxes = list(boxes)
        self._delay = delay
        self._error = error
        self.load_calls = 0

    def load(self):
        self.load_calls += 1
        time.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return object()

    def estimate(self, image, handle):
        return list(self._boxes)


class _FakeNet:
    def __init__(self, output):
        self._output = output
        self.blob = None

    def setInput(self, blob):
        self.blob = blob

    def forward(self):
        return self._output


def test_ensure_loaded_single_flight():
    """Test that concurrent loads share one underlying load."""
    model = _FakeModel(delay=0.05)
    detector = FaceDetector(model=model)

    async def scenario():
        return await asyncio.gather(detector.ensure_loaded(), detector.ensure_loaded())

    first, second = asyncio.run(scenario())

    assert model.load_calls == 1
    assert first is second
    assert detector.state is ModelState.READY


def test_ensure_loaded_is_memoized():
    """Test that later calls reuse the cached handle."""
    model = _FakeModel()
    detector = FaceDetector(model=model)

    first = asyncio.run(detector.ensure_loaded())
    second = asyncio.run(detector.ensure_loaded())

    assert first is second
    assert model.load_calls == 1


def test_ensure_loaded_failure_is_not_retried():
    """Test that a failed load surfaces ModelLoadError and resets the state."""
    model = _FakeModel(error=RuntimeError("weights corrupt"))
    detector = FaceDetector(model=model)

    with pytest.raises(ModelLoadError, match="weights corrupt"):
        asyncio.run(detector.ensure_loaded())

    assert detector.state is ModelState.UNINITIALIZED
    assert model.load_calls == 1

    # An explicit re-invocation attempts a fresh load
    with pytest.raises(ModelLoadError):
        asyncio.run(detector.ensure_loaded())
    assert model.load_calls == 2


def test_cancelled_load_returns_to_uninitialized():
    """Test that a load cancelled mid-flight does not stay in the loading state."""
    model = _FakeModel(delay=0.2)
    detector = FaceDetector(model=model)

    async def scenario():
        waiter = asyncio.ensure_future(detector.ensure_loaded())
        await asyncio.sleep(0.05)
        assert detector.is_loading
        waiter.cancel()
        # Leaving the loop cancels the shared load task

    asyncio.run(scenario())

    assert detector.state is ModelState.UNINITIALIZED
    assert not detector.is_loading

    asyncio.run(detector.ensure_loaded())
    assert detector.state is ModelState.READY
    assert model.load_calls == 2


def test_invalidate_forces_reload():
    """Test that invalidate drops the cached handle."""
    model = _FakeModel()
    detector = FaceDetector(model=model)

    first = asyncio.run(detector.ensure_loaded())
    detector.invalidate()
    assert detector.state is ModelState.UNINITIALIZED

    second = asyncio.run(detector.ensure_loaded())
    assert first is not second
    assert model.load_calls == 2


def test_locate_selects_largest_face(caplog):
    """Test that the largest of several boxes is used, with a warning."""
    small = FaceBox(0, 0, 10, 10, confidence=0.99)   # area 100
    large = FaceBox(20, 20, 40, 40, confidence=0.6)  # area 400
    detector = FaceDetector(model=_FakeModel(boxes=[small, large]))
    image = PixelImage.filled(64, 64, (0, 0, 0))

    with caplog.at_level(logging.WARNING):
        location = asyncio.run(detector.locate(image, ImageRole.ID))

    assert location.box is large
    assert location.multiple
    assert "Multiple faces" in caplog.text


def test_select_face_tie_goes_to_first():
    """Test that equal areas resolve to the first box."""
    first = FaceBox(0, 0, 10, 10)
    second = FaceBox(50, 50, 60, 60)

    location = select_face([first, second], ImageRole.PROFILE)

    assert location.box is first


def test_select_face_single():
    """Test that a single box is used directly."""
    box = FaceBox(0, 0, 10, 10)

    location = select_face([box], ImageRole.ID)

    assert location.box is box
    assert not location.multiple


def test_select_face_none():
    """Test that zero boxes raise NoFaceDetected naming the image."""
    with pytest.raises(NoFaceDetected, match="Profile") as exc_info:
        select_face([], ImageRole.PROFILE)

    assert exc_info.value.which is ImageRole.PROFILE


def test_ssd_model_missing_files():
    """Test that missing model files raise ModelLoadError."""
    config = AppConfig(model=ModelConfig(prototxt_path="/nonexistent/deploy.prototxt"))

    with pytest.raises(ModelLoadError, match="prototxt not found"):
        SsdFaceModel(config).load()


def test_ssd_model_invalid_input_type():
    """Test that the SSD model rejects non-PixelImage inputs."""
    with pytest.raises(TypeError):
        SsdFaceModel(AppConfig()).estimate("not an image", None)


def test_ssd_model_maps_network_output():
    """Test the estimate wiring against a stub network."""
    output = np.array([[[[0, 1, 0.9, 0.25, 0.5, 0.75, 1.0]]]], dtype=np.float32)
    net = _FakeNet(output)
    image = PixelImage.filled(400, 200, (90, 90, 90))

    boxes = SsdFaceModel(AppConfig()).estimate(image, net)

    assert net.blob.shape == (1, 3, 300, 300)
    assert len(boxes) == 1
    assert boxes[0].left == pytest.approx(100.0)
    assert boxes[0].top == pytest.approx(100.0)
    assert boxes[0].right == pytest.approx(300.0)
    assert boxes[0].bottom == pytest.approx(200.0)


@pytest.mark.skipif(not _MODEL_EXISTS, reason="Model files not found")
def test_detector_integration_smoke():
    """Smoke test: detector loads the real model and runs on a blank image."""
    detector = FaceDetector(config=AppConfig())
    image = PixelImage.filled(640, 480, (0, 0, 0))

    boxes = asyncio.run(detector.detect(image))
    assert isinstance(boxes, list)
