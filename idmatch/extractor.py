"""
Face region extraction.

Responsibility:
    Crop a padded rectangle around a FaceBox out of its source image.
    The box arrives in source-image pixel coordinates; clamping to the
    image bounds happens here, not in the detector.

Non-goals:
    - No resizing (canonicalization belongs to the scorer).
    - No detection.
"""

import logging
import math
from typing import Optional

from idmatch.config import ExtractionConfig
from idmatch.detection import FaceBox
from idmatch.errors import ExtractionError
from idmatch.image import ExtractedFace, PixelImage

logger = logging.getLogger(__name__)


class FaceRegionExtractor:
    """Produces padded face crops.

    With the default padding of 0.2, the crop spans 1.4x the box width
    and height, centred on the box, and is cut back wherever it would
    leave the image.
    """

    def __init__(self, config: Optional[ExtractionConfig] = None) -> None:
        self._padding = (config or ExtractionConfig()).padding

    def padded_region(self, image: PixelImage, box: FaceBox):
        """Return the fractional padded rectangle (x, y, width, height)."""
        w = box.width
        h = box.height
        pad = self._padding

        padded_x = max(0.0, box.left - pad * w)
        padded_y = max(0.0, box.top - pad * h)
        padded_w = min(image.width - padded_x, w * (1 + 2 * pad))
        padded_h = min(image.height - padded_y, h * (1 + 2 * pad))
        return padded_x, padded_y, padded_w, padded_h

    def extract(self, image: PixelImage, box: FaceBox) -> ExtractedFace:
        """Crop the padded face region out of an image.

        Args:
            image: Source image the box was detected in.
            box: Face box in source-image pixel coordinates.

        Returns:
            The extracted face. Its region never exceeds the image bounds.

        Raises:
            ExtractionError: If the image cannot supply the region.
        """
        padded_x, padded_y, padded_w, padded_h = self.padded_region(image, box)

        # Snap outward to whole pixels, then clamp to the image
        x0 = int(math.floor(padded_x))
        y0 = int(math.floor(padded_y))
        x1 = min(image.width, int(math.ceil(padded_x + padded_w)))
        y1 = min(image.height, int(math.ceil(padded_y + padded_h)))

        if x1 <= x0 or y1 <= y0:
            raise ExtractionError(
                f"Face region ({padded_x:.1f}, {padded_y:.1f}, {padded_w:.1f}, "
                f"{padded_h:.1f}) lies outside the {image.width}x{image.height} image."
            )

        try:
            crop = image.crop(x0, y0, x1 - x0, y1 - y0)
        except ValueError as e:
            raise ExtractionError(f"Could not crop face region: {e}") from e

        logger.debug("Extracted face region %dx%d at (%d, %d)", x1 - x0, y1 - y0, x0, y0)
        return ExtractedFace(image=crop, box=box, region=(x0, y0, x1 - x0, y1 - y0))
