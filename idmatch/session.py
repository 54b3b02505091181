"""
VerificationSession: the pending comparison a caller builds up.

Holds the identity-document image and the profile image until both are
present, applying the quality gate to the identity-document image only.
Replacing or clearing either image returns the session to idle, discarding
a finished result or a comparison still in flight.
"""

import logging
from typing import Optional

from idmatch.decoder import ImageSource, decode_image_async
from idmatch.errors import ImageDecodeError
from idmatch.image import PixelImage
from idmatch.pipeline import QUALITY_CHECK_FAILED, ComparisonPipeline
from idmatch.result import ComparisonResult, QualityAssessment, Status

logger = logging.getLogger(__name__)

MISSING_IMAGES = "Please upload both images before starting verification"


class VerificationSession:
    """Caller-side state around a ComparisonPipeline."""

    def __init__(self, pipeline: ComparisonPipeline) -> None:
        self._pipeline = pipeline
        self._id_image: Optional[PixelImage] = None
        self._profile_image: Optional[PixelImage] = None
        self._result = ComparisonResult.idle()
        self._images_version = 0

    @property
    def id_image(self) -> Optional[PixelImage]:
        return self._id_image

    @property
    def profile_image(self) -> Optional[PixelImage]:
        return self._profile_image

    @property
    def result(self) -> ComparisonResult:
        return self._result

    @property
    def can_start(self) -> bool:
        return (
            self._id_image is not None
            and self._profile_image is not None
            and not self._pipeline.detector.is_loading
            and not self._pipeline.is_processing
        )

    async def set_id_image(self, source: Optional[ImageSource]) -> QualityAssessment:
        """Quality-gate and accept the identity-document image.

        Passing None clears it. A rejected image leaves the previously
        accepted one in place.
        """
        if source is None:
            self._id_image = None
            self._return_to_idle()
            return QualityAssessment.accepted()

        try:
            image = await decode_image_async(source)
        except ImageDecodeError as e:
            logger.warning("ID image rejected, could not decode: %s", e)
            return QualityAssessment.rejected(QUALITY_CHECK_FAILED)

        assessment = self._pipeline.submit_quality_check(image)
        if not assessment.is_acceptable:
            return assessment

        self._id_image = image
        self._return_to_idle()
        return assessment

    async def set_profile_image(self, source: Optional[ImageSource]) -> None:
        """Accept the profile image; it is not quality-gated.

        Raises:
            ImageDecodeError: If the source cannot be decoded.
        """
        self._profile_image = None if source is None else await decode_image_async(source)
        self._return_to_idle()

    async def start(self) -> ComparisonResult:
        """Run the comparison on the two pending images."""
        if self._id_image is None or self._profile_image is None:
            logger.warning(MISSING_IMAGES)
            return ComparisonResult.failed(MISSING_IMAGES, "missing_images")

        version = self._images_version
        result = await self._pipeline.run_comparison(self._id_image, self._profile_image)
        # An image changed while the run was in flight
        if version == self._images_version:
            self._result = result
        return result

    def reset(self) -> None:
        """Drop both images and the last result."""
        self._id_image = None
        self._profile_image = None
        self._result = ComparisonResult.idle()
        self._images_version += 1
        self._pipeline.reset()

    def _return_to_idle(self) -> None:
        self._images_version += 1
        if self._result.status is not Status.IDLE or self._pipeline.is_processing:
            self._result = ComparisonResult.idle()
            self._pipeline.reset()
