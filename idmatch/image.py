"""
Pixel containers shared by every stage of the comparison pipeline.

Responsibility:
    Hold decoded rasters as immutable RGBA numpy arrays and provide the
    few transformations stages need (crop, resize, colour conversion).
    Every transformation returns a NEW image; the backing array of a
    PixelImage is read-only, so no stage can alias or mutate another
    stage's pixels.

Non-goals:
    - No decoding from files or bytes (see decoder).
    - No detection or scoring logic.

Hard-coded:
    - Channel order is RGBA, row-major, dtype uint8.
"""

from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np

from idmatch.detection import FaceBox


@dataclass(frozen=True, eq=False)
class PixelImage:
    """Decoded raster with width, height and RGBA samples.

    Attributes:
        pixels: Read-only uint8 array of shape (height, width, 4).

    The constructor always copies the supplied array, so later changes
    to the caller's buffer never leak into the image.
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        if not isinstance(self.pixels, np.ndarray):
            raise TypeError(
                f"Expected pixels to be a numpy ndarray, "
                f"got {type(self.pixels).__name__}."
            )

        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise ValueError(
                f"Expected an RGBA array of shape (H, W, 4), "
                f"got shape {self.pixels.shape}."
            )

        if self.pixels.size == 0:
            raise ValueError("PixelImage cannot be empty (zero size).")

        data = np.array(self.pixels, dtype=np.uint8, copy=True, order="C")
        data.flags.writeable = False
        object.__setattr__(self, "pixels", data)

    @classmethod
    def from_bgr(cls, frame: np.ndarray) -> "PixelImage":
        """Build an image from an OpenCV frame (gray, BGR or BGRA)."""
        if not isinstance(frame, np.ndarray) or frame.size == 0:
            raise ValueError("Cannot build a PixelImage from an empty frame.")

        if frame.ndim == 2:
            rgba = cv2.cvtColor(frame, cv2.COLOR_GRAY2RGBA)
        elif frame.ndim == 3 and frame.shape[2] == 3:
            rgba = cv2.cvtColor(frame, cv2.COLOR_BGR2RGBA)
        elif frame.ndim == 3 and frame.shape[2] == 4:
            rgba = cv2.cvtColor(frame, cv2.COLOR_BGRA2RGBA)
        else:
            raise ValueError(
                f"Unsupported frame shape {frame.shape}. "
                f"Expected (H, W), (H, W, 3) or (H, W, 4)."
            )
        return cls(rgba)

    @classmethod
    def from_rgb(cls, rgb: np.ndarray) -> "PixelImage":
        """Build an opaque image from an (H, W, 3) RGB array."""
        if not isinstance(rgb, np.ndarray) or rgb.ndim != 3 or rgb.shape[2] != 3:
            raise ValueError(
                f"Expected an RGB array of shape (H, W, 3), "
                f"got {getattr(rgb, 'shape', None)}."
            )
        alpha = np.full(rgb.shape[:2] + (1,), 255, dtype=np.uint8)
        return cls(np.concatenate([rgb.astype(np.uint8), alpha], axis=2))

    @classmethod
    def filled(cls, width: int, height: int, rgb: Tuple[int, int, int]) -> "PixelImage":
        """Build a uniformly coloured opaque image."""
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:, :, :3] = rgb
        pixels[:, :, 3] = 255
        return cls(pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def rgb(self) -> np.ndarray:
        """Read-only (H, W, 3) view of the colour channels."""
        return self.pixels[:, :, :3]

    def to_rgb(self) -> np.ndarray:
        """Return a writable, contiguous (H, W, 3) copy of the colour channels."""
        return np.ascontiguousarray(self.pixels[:, :, :3]).copy()

    def to_bgr(self) -> np.ndarray:
        """Return a writable BGR copy, as expected by OpenCV consumers."""
        return cv2.cvtColor(np.array(self.pixels), cv2.COLOR_RGBA2BGR)

    def crop(self, x: int, y: int, width: int, height: int) -> "PixelImage":
        """Return a new image holding the given whole-pixel rectangle.

        Raises:
            ValueError: If the rectangle is empty or leaves the image.
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Crop size must be positive, got {width}x{height}.")
        if x < 0 or y < 0 or x + width > self.width or y + height > self.height:
            raise ValueError(
                f"Crop rectangle ({x}, {y}, {width}, {height}) exceeds image "
                f"bounds {self.width}x{self.height}."
            )
        return PixelImage(self.pixels[y:y + height, x:x + width])

    def resize(self, width: int, height: int,
               interpolation: int = cv2.INTER_LINEAR) -> "PixelImage":
        """Return a new image resampled to width x height."""
        resized = cv2.resize(
            np.array(self.pixels), (width, height), interpolation=interpolation
        )
        return PixelImage(resized)


@dataclass(frozen=True, eq=False)
class ExtractedFace:
    """A padded crop of a PixelImage around a detected FaceBox.

    Attributes:
        image: The cropped pixels.
        box: The source FaceBox, in source-image coordinates.
        region: Whole-pixel crop rectangle (x, y, width, height) in the
                source image. Always inside the source bounds.
    """

    image: PixelImage
    box: FaceBox
    region: Tuple[int, int, int, int]

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        x, y, w, h = self.region
        return {
            "box": self.box.to_dict(),
            "region": {"x": x, "y": y, "width": w, "height": h},
        }
