"""
ComparisonPipeline: the single public API for comparing two faces.

Public contract:
    submit_quality_check(image) -> QualityAssessment
    await validate_id_quality(source) -> QualityAssessment
    await run_comparison(id_source, profile_source) -> ComparisonResult
    observe_progress() -> ProcessingState
    reset() / cancel()

State machine:
    idle → processing → match | no-match | error

    Processing advances through four steps, strictly in order:
        1. LoadImages       ensure the model is loaded, decode both sources
        2. ExtractFaces     detect and crop both faces concurrently
        3. AnalyzeFeatures  canonicalize both crops
        4. CompareResults   score and classify

    A failure at any step yields an error result with confidence 0 and
    leaves the step counter at the failing step. reset() returns to
    {step 1, idle} and makes any in-flight run stale: it keeps running
    but no longer updates the state or notifies listeners.

Failure behavior:
    run_comparison never raises for comparison failures; they are
    returned as data. Only asyncio.CancelledError propagates.
"""

import asyncio
import logging
from typing import List, Optional

from idmatch.config import AppConfig, load_config
from idmatch.decoder import ImageSource, decode_image_async
from idmatch.detector import FaceDetector, ModelState
from idmatch.errors import ComparisonError, ImageDecodeError, ModelLoadError, UnknownError
from idmatch.events import EventKind, EventListener, PipelineEvent
from idmatch.extractor import FaceRegionExtractor
from idmatch.image import ExtractedFace, PixelImage
from idmatch.quality import ImageQualityAnalyzer
from idmatch.result import (
    ComparisonResult,
    ImageRole,
    ProcessingState,
    QualityAssessment,
    Status,
    Step,
)
from idmatch.scorer import SimilarityScorer

logger = logging.getLogger(__name__)

QUALITY_CHECK_FAILED = "Failed to validate image quality"


class ComparisonPipeline:
    """Orchestrates quality gating, detection, extraction and scoring.

    Usage:
        pipeline = ComparisonPipeline()                    # Safe defaults
        pipeline = ComparisonPipeline(detector=FaceDetector(model=fake))
        result = await pipeline.run_comparison("id.jpg", "selfie.jpg")

    The detector is injected so the loaded model handle can be shared by
    several pipelines and replaced by a fake in tests.
    """

    def __init__(self, detector: Optional[FaceDetector] = None,
                 config: Optional[AppConfig] = None) -> None:
        if config is None:
            config = load_config()

        self._config = config
        self._detector = detector if detector is not None else FaceDetector(config=config)
        self._analyzer = ImageQualityAnalyzer(config.quality)
        self._extractor = FaceRegionExtractor(config.extraction)
        self._scorer = SimilarityScorer(config.comparison)

        self._state = ProcessingState()
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[EventListener] = []

    @property
    def config(self) -> AppConfig:
        """Return the active configuration (read-only)."""
        return self._config

    @property
    def detector(self) -> FaceDetector:
        return self._detector

    @property
    def is_processing(self) -> bool:
        return self._state.status is Status.PROCESSING

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: EventListener) -> None:
        """Subscribe to pipeline events (progress, warnings, outcome)."""
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Quality gate
    # ------------------------------------------------------------------

    def submit_quality_check(self, image: PixelImage) -> QualityAssessment:
        """Assess an identity-document image before it is accepted.

        Does not touch the processing state.
        """
        return self._analyzer.assess(image)

    def require_acceptable(self, image: PixelImage) -> None:
        """Raise QualityRejected if the image fails the quality gate."""
        self._analyzer.require_acceptable(image)

    async def validate_id_quality(self, source: ImageSource) -> QualityAssessment:
        """Decode an identity-document source and assess its quality.

        An undecodable source is reported as not acceptable.
        """
        try:
            image = await decode_image_async(source)
        except ImageDecodeError as e:
            logger.warning("Could not decode ID image for quality check: %s", e)
            return QualityAssessment.rejected(QUALITY_CHECK_FAILED)
        return self.submit_quality_check(image)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def observe_progress(self) -> ProcessingState:
        """Return a read-only snapshot of the current step and status."""
        return self._state

    def reset(self) -> None:
        """Return to {step 1, idle}, discarding any in-flight result.

        Does not cancel in-flight work; see cancel().
        """
        self._generation += 1
        self._task = None
        self._state = ProcessingState()
        logger.debug("Pipeline reset.")

    def cancel(self) -> None:
        """Reset, and cancel the in-flight comparison task if there is one."""
        task = self._task
        self.reset()
        if task is not None and not task.done():
            logger.info("Cancelling in-flight comparison.")
            task.cancel()

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    async def run_comparison(self, id_source: ImageSource,
                             profile_source: ImageSource) -> ComparisonResult:
        """Compare the face on an identity document with a profile photo.

        Args:
            id_source: Identity-document image (PixelImage, path, bytes
                       or data URL).
            profile_source: Profile image, same accepted forms.

        Returns:
            A terminal ComparisonResult: match, no-match or error.
        """
        self._generation += 1
        run = self._generation
        self._task = asyncio.current_task()

        step = Step.LOAD_IMAGES
        self._advance(run, step)
        logger.info("Comparison %d started.", run)

        try:
            await self._ensure_model(run)
            id_image, profile_image = await asyncio.gather(
                decode_image_async(id_source),
                decode_image_async(profile_source),
            )

            step = Step.EXTRACT_FACES
            self._advance(run, step)
            id_face, profile_face = await asyncio.gather(
                self._extract_face(run, id_image, ImageRole.ID),
                self._extract_face(run, profile_image, ImageRole.PROFILE),
            )

            step = Step.ANALYZE_FEATURES
            self._advance(run, step)
            id_canonical = self._scorer.canonicalize(id_face)
            profile_canonical = self._scorer.canonicalize(profile_face)

            step = Step.COMPARE_RESULTS
            self._advance(run, step)
            similarity = self._scorer.compare(id_canonical, profile_canonical)

        except asyncio.CancelledError:
            logger.info("Comparison %d cancelled at step %d.", run, step)
            if run == self._generation:
                self._state = ProcessingState()
            raise
        except ComparisonError as e:
            return self._fail(run, step, e)
        except Exception as e:
            logger.exception("Unexpected error in comparison %d at step %d", run, step)
            return self._fail(run, step, UnknownError(str(e) or type(e).__name__))
        finally:
            if run == self._generation:
                self._task = None

        return self._finish(run, similarity, id_face, profile_face)

    async def _ensure_model(self, run: int) -> None:
        announce = self._detector.state is ModelState.UNINITIALIZED
        if announce:
            self._emit(run, PipelineEvent(
                EventKind.MODEL_LOADING, "Loading facial recognition model...",
                step=Step.LOAD_IMAGES,
            ))
        try:
            await self._detector.ensure_loaded()
        except ModelLoadError:
            self._emit(run, PipelineEvent(
                EventKind.MODEL_LOAD_FAILED, "Failed to load facial recognition model",
                step=Step.LOAD_IMAGES,
            ))
            raise
        if announce:
            self._emit(run, PipelineEvent(
                EventKind.MODEL_LOADED, "Facial recognition model loaded successfully!",
                step=Step.LOAD_IMAGES,
            ))

    async def _extract_face(self, run: int, image: PixelImage,
                            role: ImageRole) -> ExtractedFace:
        handle = await self._detector.ensure_loaded()
        location = await self._detector.locate(image, role, handle)
        if location.multiple:
            self._emit(run, PipelineEvent(
                EventKind.MULTIPLE_FACES,
                f"Multiple faces detected in {role.label}, using the largest face",
                step=Step.EXTRACT_FACES,
                role=role,
            ))
        return self._extractor.extract(image, location.box)

    def _finish(self, run: int, similarity: float, id_face: ExtractedFace,
                profile_face: ExtractedFace) -> ComparisonResult:
        is_match = self._scorer.is_match(similarity)
        status = Status.MATCH if is_match else Status.NO_MATCH

        result = ComparisonResult(
            status=status,
            confidence=similarity,
            id_face=id_face,
            profile_face=profile_face,
        )

        logger.info(
            "Comparison %d finished: %s (similarity=%.4f, threshold=%.2f)",
            run, status.value, similarity, self._scorer.threshold,
        )
        if self._advance(run, Step.COMPARE_RESULTS, status):
            if is_match:
                self._emit(run, PipelineEvent(
                    EventKind.MATCH, "Faces match! Identity verified.",
                    step=Step.COMPARE_RESULTS,
                ))
            else:
                self._emit(run, PipelineEvent(
                    EventKind.NO_MATCH,
                    "Faces do not match. Identity could not be verified.",
                    step=Step.COMPARE_RESULTS,
                ))
        return result

    def _fail(self, run: int, step: Step, error: ComparisonError) -> ComparisonResult:
        message = str(error)
        logger.error(
            "Comparison %d failed at step %d (%s): %s", run, step, error.code, message
        )
        if self._advance(run, step, Status.ERROR):
            self._emit(run, PipelineEvent(
                EventKind.ERROR, f"Facial recognition failed: {message}", step=step,
            ))
        return ComparisonResult.failed(message, error.code)

    def _advance(self, run: int, step: Step, status: Status = Status.PROCESSING) -> bool:
        """Publish a new state for the given run. Returns False if the run is stale."""
        if run != self._generation:
            return False

        self._state = ProcessingState(step=step, status=status)
        logger.debug("Comparison %d: step %d (%s), %s", run, step, step.label, status.value)
        if status is Status.PROCESSING:
            self._emit(run, PipelineEvent(EventKind.STEP_CHANGED, step.label, step=step))
        return True

    def _emit(self, run: int, event: PipelineEvent) -> None:
        if run != self._generation:
            return
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Pipeline event listener failed for %s", event.kind.value)
