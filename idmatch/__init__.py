"""
idmatch: client-side identity face comparison.

Public API:
    - ComparisonPipeline: The single entry point for comparing an
      identity-document photo with a profile photo.
    - FaceDetector: Lazily loaded face localization service, injected
      into the pipeline.
    - ComparisonResult, ProcessingState, QualityAssessment: Outputs.
    - PixelImage, FaceBox, ExtractedFace: Data transfer objects.

All other modules in this package are internal implementation details
and should not be imported directly by consumers.

Usage:
    import asyncio
    from idmatch import ComparisonPipeline

    pipeline = ComparisonPipeline()
    result = asyncio.run(pipeline.run_comparison("id.jpg", "selfie.jpg"))
"""

from idmatch.decoder import decode_image
from idmatch.detection import FaceBox
from idmatch.detector import FaceDetectionModel, FaceDetector, SsdFaceModel
from idmatch.errors import (
    ComparisonError,
    ExtractionError,
    ImageDecodeError,
    ModelLoadError,
    NoFaceDetected,
    QualityRejected,
    UnknownError,
)
from idmatch.events import EventKind, PipelineEvent
from idmatch.image import ExtractedFace, PixelImage
from idmatch.pipeline import ComparisonPipeline
from idmatch.result import (
    ComparisonResult,
    ImageRole,
    ProcessingState,
    QualityAssessment,
    Status,
    Step,
)
from idmatch.session import VerificationSession

__all__ = [
    "ComparisonPipeline",
    "VerificationSession",
    "FaceDetector",
    "FaceDetectionModel",
    "SsdFaceModel",
    "decode_image",
    "ComparisonResult",
    "ProcessingState",
    "QualityAssessment",
    "Status",
    "Step",
    "ImageRole",
    "EventKind",
    "PipelineEvent",
    "PixelImage",
    "FaceBox",
    "ExtractedFace",
    "ComparisonError",
    "ModelLoadError",
    "ImageDecodeError",
    "NoFaceDetected",
    "ExtractionError",
    "QualityRejected",
    "UnknownError",
]
