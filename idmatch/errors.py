"""
Error taxonomy of the comparison core.

Every failure the pipeline can report derives from ComparisonError and
carries a stable ``code``. The pipeline converts these into an error
ComparisonResult; only the quality gate raises QualityRejected to its
caller directly.
"""

from idmatch.result import ImageRole


class ComparisonError(Exception):
    """Base class for all comparison failures."""

    code = "unknown_error"


class ModelLoadError(ComparisonError):
    """The face localization model could not be loaded."""

    code = "model_load_error"


class ImageDecodeError(ComparisonError):
    """An image source is unreachable or not a decodable image."""

    code = "image_decode_error"


class NoFaceDetected(ComparisonError):
    """The detector found no face in one of the two images."""

    code = "no_face_detected"

    def __init__(self, which: ImageRole) -> None:
        self.which = ImageRole(which)
        super().__init__(f"No face detected in {self.which.label} image")


class ExtractionError(ComparisonError):
    """The face region could not be cropped from the source image."""

    code = "extraction_error"


class QualityRejected(ComparisonError):
    """The identity-document image failed the quality gate."""

    code = "quality_rejected"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class UnknownError(ComparisonError):
    """An unexpected failure, reported with the underlying message."""

    code = "unknown_error"
