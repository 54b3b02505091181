"""
Tests for face region extraction.
"""

import numpy as np
import pytest

from idmatch.config import ExtractionConfig
from idmatch.detection import FaceBox
from idmatch.errors import ExtractionError
from idmatch.extractor import FaceRegionExtractor
from idmatch.image import PixelImage


def _gradient_image(width=200, height=100):
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[:, :, 0] = np.arange(width, dtype=np.uint8)[None, :]
    pixels[:, :, 1] = np.arange(height, dtype=np.uint8)[:, None]
    pixels[:, :, 3] = 255
    return PixelImage(pixels)


def test_extract_pads_twenty_percent():
    """Test the padded crop inside the image."""
    image = _gradient_image()
    box = FaceBox(left=50, top=20, right=100, bottom=60, confidence=0.9)

    face = FaceRegionExtractor().extract(image, box)

    assert face.region == (40, 12, 70, 56)
    assert (face.width, face.height) == (70, 56)
    assert np.array_equal(face.image.pixels, image.pixels[12:68, 40:110])
    assert face.box is box


def test_extract_clamps_top_left():
    """Test that padding never produces a negative offset."""
    image = _gradient_image()
    box = FaceBox(left=0, top=0, right=50, bottom=40)

    face = FaceRegionExtractor().extract(image, box)

    assert face.region == (0, 0, 70, 56)


def test_extract_clamps_bottom_right():
    """Test that the crop never exceeds the image extent."""
    image = _gradient_image()
    box = FaceBox(left=180, top=80, right=200, bottom=100)

    face = FaceRegionExtractor().extract(image, box)

    x, y, w, h = face.region
    assert (x, y) == (176, 76)
    assert x + w == image.width
    assert y + h == image.height


def test_extract_without_padding():
    """Test that the padding is configurable."""
    image = _gradient_image()
    box = FaceBox(left=10, top=10, right=30, bottom=40)

    face = FaceRegionExtractor(ExtractionConfig(padding=0.0)).extract(image, box)

    assert face.region == (10, 10, 20, 30)


def test_extract_box_outside_image():
    """Test that an unreachable region raises ExtractionError."""
    image = _gradient_image()
    box = FaceBox(left=250, top=10, right=300, bottom=50)

    with pytest.raises(ExtractionError):
        FaceRegionExtractor().extract(image, box)
