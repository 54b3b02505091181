"""
Image quality gate for identity-document photos.

Responsibility:
    Decide whether a decoded image is good enough to enter a pending
    comparison, by checking resolution, sharpness and exposure in that
    fixed order. The first failing check wins.

Non-goals:
    - No decoding, detection or scoring.
    - Not applied to the profile image.

The analysis is a pure function of pixel content and runs synchronously.
"""

import logging
from typing import Optional

import numpy as np

from idmatch.config import QualityConfig
from idmatch.errors import QualityRejected
from idmatch.image import PixelImage
from idmatch.result import QualityAssessment

logger = logging.getLogger(__name__)

RESOLUTION_TOO_LOW = "Image resolution too low. Please upload a higher quality image."
IMAGE_BLURRY = "Image appears blurry. Please upload a clearer image."
IMAGE_TOO_DARK = "Image too dark. Please upload a brighter image."
IMAGE_OVEREXPOSED = "Image overexposed. Please upload an image with better lighting."


def channel_sums(image: PixelImage) -> np.ndarray:
    """Return R+G+B for every pixel, flattened in row-major order."""
    return image.rgb.astype(np.int32).sum(axis=2).ravel()


def sharpness_ratio(sums: np.ndarray, edge_threshold: int) -> float:
    """Edges per hundred pixels along the flattened pixel sequence.

    Adjacent pairs are taken across row boundaries, so the last pixel of
    a row is paired with the first pixel of the next one.
    """
    edges = np.count_nonzero(np.abs(np.diff(sums)) > edge_threshold)
    return float(edges) / (sums.size / 100.0)


def mean_brightness(sums: np.ndarray) -> float:
    """Mean over pixels of the average of the three colour channels."""
    return float(sums.mean()) / 3.0


class ImageQualityAnalyzer:
    """Resolution, sharpness and exposure checks for a single image.

    Usage:
        analyzer = ImageQualityAnalyzer()
        assessment = analyzer.assess(image)
        if not assessment.is_acceptable:
            print(assessment.reason)
    """

    def __init__(self, config: Optional[QualityConfig] = None) -> None:
        self._config = config or QualityConfig()

    @property
    def config(self) -> QualityConfig:
        return self._config

    def assess(self, image: PixelImage) -> QualityAssessment:
        """Run the quality checks on an image.

        Args:
            image: The decoded identity-document image.

        Returns:
            An accepted assessment, or a rejected one carrying the reason
            of the first failing check.
        """
        cfg = self._config

        if image.pixel_count < cfg.min_pixels:
            return self._reject(RESOLUTION_TOO_LOW, image)

        sums = channel_sums(image)

        if sharpness_ratio(sums, cfg.edge_threshold) < cfg.min_sharpness:
            return self._reject(IMAGE_BLURRY, image)

        brightness = mean_brightness(sums)
        if brightness < cfg.min_brightness:
            return self._reject(IMAGE_TOO_DARK, image)
        if brightness > cfg.max_brightness:
            return self._reject(IMAGE_OVEREXPOSED, image)

        return QualityAssessment.accepted()

    def require_acceptable(self, image: PixelImage) -> None:
        """Raise QualityRejected if the image fails any check."""
        assessment = self.assess(image)
        if not assessment.is_acceptable:
            raise QualityRejected(assessment.reason)

    @staticmethod
    def _reject(reason: str, image: PixelImage) -> QualityAssessment:
        logger.warning(
            "Image rejected by quality gate (%dx%d): %s",
            image.width, image.height, reason,
        )
        return QualityAssessment.rejected(reason)
