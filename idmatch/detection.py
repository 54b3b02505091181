"""
FaceBox data transfer object.

This module defines the FaceBox dataclass, the single output type
returned by a face localization model. It is intentionally minimal: a
frozen, serializable container with no behavior beyond data access.

Coordinates are always in the pixel space of the source image the box
was detected in. Normalized [0, 1] coordinates never leave the
postprocessor.

Non-goals:
    - No rendering logic.
    - No clamping (every consumer clamps against its own image).
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class FaceBox:
    """A single detected face with bounding box and confidence score.

    Attributes:
        left: Left edge x coordinate (absolute pixels).
        top: Top edge y coordinate (absolute pixels).
        right: Right edge x coordinate (absolute pixels).
        bottom: Bottom edge y coordinate (absolute pixels).
        confidence: Detection confidence score in [0.0, 1.0].

    Raises:
        ValueError: If the box is degenerate (right <= left or bottom <= top).
    """

    left: float
    top: float
    right: float
    bottom: float
    confidence: float = 1.0

    def __post_init__(self) -> None:
        if not self.right > self.left:
            raise ValueError(
                f"FaceBox right ({self.right}) must be greater than left ({self.left})."
            )
        if not self.bottom > self.top:
            raise ValueError(
                f"FaceBox bottom ({self.bottom}) must be greater than top ({self.top})."
            )

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "left": round(self.left, 2),
            "top": round(self.top, 2),
            "right": round(self.right, 2),
            "bottom": round(self.bottom, 2),
            "confidence": round(self.confidence, 4),
        }

    @property
    def width(self) -> float:
        """Bounding box width in pixels."""
        return self.right - self.left

    @property
    def height(self) -> float:
        """Bounding box height in pixels."""
        return self.bottom - self.top

    @property
    def area(self) -> float:
        """Bounding box area in pixels."""
        return self.width * self.height
