"""
FaceDetector: lazily loaded face localization service.

Public contract:
    await FaceDetector.ensure_loaded() -> ModelHandle
    await FaceDetector.detect(image, handle) -> list[FaceBox]
    await FaceDetector.locate(image, role) -> FaceLocation

The localization model itself is an opaque capability behind the
FaceDetectionModel protocol (load/estimate). SsdFaceModel is the bundled
OpenCV DNN implementation; tests substitute fakes.

Lifecycle:
    uninitialized → loading → ready

    The handle is created at most once. Concurrent ensure_loaded() calls
    made while a load is in flight share that single pending load. A
    failed load returns to uninitialized and is not retried
    automatically.

Constraints:
    - Blocking model calls (load, estimate) run in a worker thread so the
      event loop can interleave the two per-image detections.
    - Not shared across event loops while a load is in flight.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Protocol, Sequence

import numpy as np

from idmatch.config import AppConfig, load_config
from idmatch.detection import FaceBox
from idmatch.errors import ModelLoadError, NoFaceDetected
from idmatch.image import PixelImage
from idmatch.model_loader import load_model
from idmatch.postprocessor import postprocess
from idmatch.preprocessor import preprocess
from idmatch.result import ImageRole

logger = logging.getLogger(__name__)

ModelHandle = Any


class FaceDetectionModel(Protocol):
    """Narrow interface to a face localization capability."""

    def load(self) -> ModelHandle:
        """Load the model and return an opaque handle."""
        ...

    def estimate(self, image: PixelImage, handle: ModelHandle) -> Sequence[FaceBox]:
        """Return zero or more face boxes in source-image pixel coordinates."""
        ...


class SsdFaceModel:
    """Face localization using SSD-ResNet10 via OpenCV DNN.

    Usage:
        model = SsdFaceModel()                 # Uses safe defaults
        net = model.load()
        boxes = model.estimate(image, net)
    """

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        if config is None:
            config = load_config()
        self._config = config

    def load(self) -> ModelHandle:
        return load_model(self._config.model)

    def estimate(self, image: PixelImage, handle: ModelHandle) -> List[FaceBox]:
        """Detect faces in a single image.

        Raises:
            TypeError: If image is not a PixelImage.
        """
        if not isinstance(image, PixelImage):
            raise TypeError(
                f"Expected a PixelImage, got {type(image).__name__}. "
                f"Use decode_image() to obtain one."
            )

        blob = preprocess(image, self._config.model)

        handle.setInput(blob)
        output = handle.forward()

        return postprocess(
            network_output=np.asarray(output),
            frame_width=image.width,
            frame_height=image.height,
            confidence_threshold=self._config.detection.confidence_threshold,
        )


class ModelState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


@dataclass(frozen=True)
class FaceLocation:
    """The face chosen for an image, and how many candidates there were."""

    box: FaceBox
    candidates: int

    @property
    def multiple(self) -> bool:
        return self.candidates > 1


def select_face(boxes: Sequence[FaceBox], role: ImageRole) -> FaceLocation:
    """Apply the face selection policy to detector output.

    Zero boxes raise NoFaceDetected. Otherwise the box with the largest
    area wins; ties go to the first one encountered.
    """
    if not boxes:
        raise NoFaceDetected(role)

    largest = max(boxes, key=lambda b: b.area)
    if len(boxes) > 1:
        logger.warning(
            "Multiple faces detected in %s image (%d), using the largest face",
            ImageRole(role).label, len(boxes),
        )
    return FaceLocation(box=largest, candidates=len(boxes))


class FaceDetector:
    """Lazily loaded, memoized face localization service.

    The handle is owned by this object rather than by module state, so a
    pipeline receives its detector by injection and tests can substitute
    a fake model.
    """

    def __init__(self, model: Optional[FaceDetectionModel] = None,
                 config: Optional[AppConfig] = None) -> None:
        """Create the service. No model is loaded until first use.

        Args:
            model: Localization capability. Defaults to SsdFaceModel.
            config: Configuration for the default model.
        """
        self._model = model if model is not None else SsdFaceModel(config)
        self._handle: Optional[ModelHandle] = None
        self._pending: Optional[asyncio.Future] = None
        self._state = ModelState.UNINITIALIZED

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state is ModelState.LOADING

    async def ensure_loaded(self) -> ModelHandle:
        """Return the loaded model handle, loading it on first use.

        Raises:
            ModelLoadError: If the load fails.
        """
        if self._handle is not None:
            return self._handle

        if self._pending is None:
            self._state = ModelState.LOADING
            self._pending = asyncio.ensure_future(self._load())

        # One waiter being cancelled must not abort the shared load
        return await asyncio.shield(self._pending)

    def invalidate(self) -> None:
        """Drop the cached handle so the next ensure_loaded() reloads.

        Has no effect on a load that is already in flight.
        """
        if self._pending is not None:
            return
        self._handle = None
        self._state = ModelState.UNINITIALIZED
        logger.info("Face detection model invalidated.")

    async def detect(self, image: PixelImage,
                     handle: Optional[ModelHandle] = None) -> List[FaceBox]:
        """Run the localization model on one image."""
        if handle is None:
            handle = await self.ensure_loaded()
        boxes = await asyncio.to_thread(self._model.estimate, image, handle)
        return list(boxes)

    async def locate(self, image: PixelImage, role: ImageRole,
                     handle: Optional[ModelHandle] = None) -> FaceLocation:
        """Detect faces in an image and select the one to compare.

        Raises:
            NoFaceDetected: If the image contains no face.
        """
        boxes = await self.detect(image, handle)
        logger.debug("%s image: %d face(s) detected", ImageRole(role).label, len(boxes))
        return select_face(boxes, role)

    async def _load(self) -> ModelHandle:
        logger.info("Loading facial recognition model...")
        try:
            handle = await asyncio.to_thread(self._model.load)
        except asyncio.CancelledError:
            self._state = ModelState.UNINITIALIZED
            logger.info("Facial recognition model load cancelled.")
            raise
        except ModelLoadError:
            self._state = ModelState.UNINITIALIZED
            raise
        except Exception as e:
            self._state = ModelState.UNINITIALIZED
            raise ModelLoadError(f"Failed to load facial recognition model: {e}") from e
        finally:
            self._pending = None

        self._handle = handle
        self._state = ModelState.READY
        logger.info("Facial recognition model loaded successfully.")
        return handle
