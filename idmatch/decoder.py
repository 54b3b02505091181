"""
Image decoding for the comparison pipeline.

Responsibility:
    Turn an image source (file path, encoded bytes, or a ``data:`` URL)
    into a PixelImage, and encode face crops back into JPEG data URLs
    for display.

Non-goals:
    - No network fetching of http(s) URLs.
    - No resizing or quality analysis.

Failure behavior:
    - Every unreadable, missing or malformed source raises
      ImageDecodeError naming the source.
"""

import asyncio
import base64
import binascii
import logging
import os
from pathlib import Path
from typing import Union

import cv2
import numpy as np

from idmatch.errors import ImageDecodeError
from idmatch.image import PixelImage

logger = logging.getLogger(__name__)

ImageSource = Union[PixelImage, str, os.PathLike, bytes, bytearray]

# Image extensions recognized when decoding from disk
_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp"}

_DATA_URL_PREFIX = "data:"


def decode_image(source: ImageSource) -> PixelImage:
    """Decode an image source into a PixelImage.

    Args:
        source: A PixelImage (returned unchanged), a file path, encoded
                image bytes, or a base64 ``data:`` URL.

    Returns:
        The decoded image.

    Raises:
        ImageDecodeError: If the source is missing, unsupported or corrupt.
    """
    if isinstance(source, PixelImage):
        return source

    if isinstance(source, (bytes, bytearray)):
        return _decode_bytes(bytes(source), "<bytes>")

    if isinstance(source, str) and source.startswith(_DATA_URL_PREFIX):
        return _decode_bytes(_data_url_payload(source), "<data url>")

    if isinstance(source, (str, os.PathLike)):
        return _decode_file(Path(source))

    raise ImageDecodeError(
        f"Unsupported image source type: {type(source).__name__}. "
        f"Provide a file path, bytes, or a data URL."
    )


async def decode_image_async(source: ImageSource) -> PixelImage:
    """Decode an image source without blocking the event loop."""
    if isinstance(source, PixelImage):
        return source
    return await asyncio.to_thread(decode_image, source)


def encode_data_url(image: PixelImage, quality: float = 0.8) -> str:
    """Encode an image as a JPEG ``data:`` URL.

    Args:
        image: Image to encode (alpha is dropped).
        quality: JPEG quality in [0, 1].
    """
    ok, buffer = cv2.imencode(
        ".jpg", image.to_bgr(), [cv2.IMWRITE_JPEG_QUALITY, int(round(quality * 100))]
    )
    if not ok:
        raise ImageDecodeError("Failed to encode image as JPEG.")
    payload = base64.b64encode(buffer.tobytes()).decode("ascii")
    return f"data:image/jpeg;base64,{payload}"


def _decode_file(path: Path) -> PixelImage:
    if not path.is_file():
        raise ImageDecodeError(
            f"Image source not found: '{path}'. Provide a valid image file path."
        )

    ext = path.suffix.lower()
    if ext not in _IMAGE_EXTENSIONS:
        raise ImageDecodeError(
            f"Unrecognized file extension: '{ext}' for source '{path}'. "
            f"Supported images: {_IMAGE_EXTENSIONS}."
        )

    frame = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if frame is None:
        raise ImageDecodeError(f"Unreadable image file: '{path}'.")

    logger.debug("Decoded %s (%dx%d)", path, frame.shape[1], frame.shape[0])
    return PixelImage.from_bgr(frame)


def _decode_bytes(data: bytes, label: str) -> PixelImage:
    if not data:
        raise ImageDecodeError(f"Empty image data: {label}.")

    frame = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    if frame is None:
        raise ImageDecodeError(f"Malformed image data: {label}.")

    return PixelImage.from_bgr(frame)


def _data_url_payload(url: str) -> bytes:
    header, sep, payload = url.partition(",")
    if not sep or not header.endswith(";base64"):
        raise ImageDecodeError("Only base64-encoded data URLs are supported.")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"Malformed base64 payload in data URL: {e}") from e
