"""
Tests for image decoding.
"""

import asyncio
import base64

import cv2
import numpy as np
import pytest

from idmatch.decoder import decode_image, decode_image_async, encode_data_url
from idmatch.errors import ImageDecodeError
from idmatch.image import PixelImage


def _png_bytes():
    frame = np.zeros((8, 12, 3), dtype=np.uint8)
    frame[:, :] = (0, 0, 255)  # red in BGR
    ok, buffer = cv2.imencode(".png", frame)
    assert ok
    return buffer.tobytes()


def test_decode_bytes():
    """Test decoding encoded image bytes."""
    image = decode_image(_png_bytes())

    assert (image.width, image.height) == (12, 8)
    assert tuple(image.pixels[0, 0]) == (255, 0, 0, 255)


def test_decode_file(tmp_path):
    """Test decoding an image file from disk."""
    path = tmp_path / "face.png"
    path.write_bytes(_png_bytes())

    image = decode_image(str(path))

    assert (image.width, image.height) == (12, 8)


def test_decode_data_url():
    """Test decoding a base64 data URL."""
    url = "data:image/png;base64," + base64.b64encode(_png_bytes()).decode("ascii")

    image = decode_image(url)

    assert tuple(image.pixels[3, 3]) == (255, 0, 0, 255)


def test_decode_missing_file(tmp_path):
    """Test that a missing file is reported as a decode error."""
    with pytest.raises(ImageDecodeError, match="not found"):
        decode_image(str(tmp_path / "missing.jpg"))


def test_decode_unsupported_extension(tmp_path):
    """Test that non-image files are rejected."""
    path = tmp_path / "notes.txt"
    path.write_text("hello", encoding="utf-8")

    with pytest.raises(ImageDecodeError, match="extension"):
        decode_image(path)


def test_decode_malformed_bytes():
    """Test that garbage bytes are rejected."""
    with pytest.raises(ImageDecodeError, match="Malformed"):
        decode_image(b"definitely not an image")


def test_decode_async_passes_images_through():
    """Test that an already decoded image is returned unchanged."""
    image = PixelImage.filled(2, 2, (1, 2, 3))

    assert asyncio.run(decode_image_async(image)) is image


def test_encode_data_url():
    """Test that face crops encode as JPEG data URLs."""
    url = encode_data_url(PixelImage.filled(16, 16, (200, 10, 10)))

    assert url.startswith("data:image/jpeg;base64,")
    assert decode_image(url).width == 16
