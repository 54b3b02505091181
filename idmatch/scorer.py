"""
Similarity scoring of two extracted faces.

Responsibility:
    Canonicalize both faces to a fixed square canvas and average the
    per-pixel RGB similarity, 1 - euclidean distance / sqrt(3 * 255^2).

This is a coarse perceptual-distance heuristic, not a learned embedding
comparison. It is sensitive to pose, lighting and alignment, and the
match threshold is calibrated against it; replacing the metric changes
which pairs match.

Properties:
    - score(a, a) == 1.0 exactly.
    - score(a, b) == score(b, a).
    - 0.0 <= score(a, b) <= 1.0.
"""

import math
from typing import Optional

import cv2
import numpy as np

from idmatch.config import ComparisonConfig
from idmatch.image import ExtractedFace

_MAX_DISTANCE = math.sqrt(3 * 255 ** 2)


class SimilarityScorer:
    """Pure pixel-distance similarity between two faces."""

    def __init__(self, config: Optional[ComparisonConfig] = None) -> None:
        self._config = config or ComparisonConfig()

    @property
    def threshold(self) -> float:
        return self._config.match_threshold

    def canonicalize(self, face: ExtractedFace) -> np.ndarray:
        """Resize a face to the canonical square canvas.

        Returns:
            A read-only uint8 RGB array of shape (size, size, 3).
        """
        size = self._config.canonical_size
        canonical = cv2.resize(
            face.image.to_rgb(), (size, size), interpolation=cv2.INTER_LINEAR
        )
        canonical.flags.writeable = False
        return canonical

    def compare(self, canonical1: np.ndarray, canonical2: np.ndarray) -> float:
        """Score two canonicalized faces.

        Raises:
            ValueError: If the canvases differ in shape.
        """
        if canonical1.shape != canonical2.shape:
            raise ValueError(
                f"Canonical faces differ in shape: {canonical1.shape} vs {canonical2.shape}."
            )

        diff = canonical1.astype(np.float64) - canonical2.astype(np.float64)
        distance = np.sqrt(np.sum(diff * diff, axis=2)) / _MAX_DISTANCE
        similarity = float(np.mean(1.0 - distance))
        return min(1.0, max(0.0, similarity))

    def score(self, face1: ExtractedFace, face2: ExtractedFace) -> float:
        """Canonicalize two faces and return their similarity in [0, 1]."""
        return self.compare(self.canonicalize(face1), self.canonicalize(face2))

    def is_match(self, similarity: float) -> bool:
        return similarity >= self._config.match_threshold
