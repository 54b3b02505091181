"""
Model loading for the face localization capability.

Responsibility:
    Load the SSD-ResNet10 DNN model from disk, configure the compute
    backend, and return a ready-to-infer cv2.dnn.Net object.

Non-goals:
    - No preprocessing, inference, or image-level logic.
    - No caching (the FaceDetector service memoizes the handle).
    - No automatic model downloading.

Failure behavior:
    - Missing model files, unreadable weights and an unavailable
      backend all raise ModelLoadError with an actionable message.
"""

import logging
from pathlib import Path

import cv2

from idmatch.config import ModelConfig, get_project_root
from idmatch.errors import ModelLoadError

logger = logging.getLogger(__name__)


def resolve_model_paths(config: ModelConfig):
    """Return (prototxt, weights) resolved against the project root."""
    project_root = get_project_root()

    prototxt = Path(config.prototxt_path)
    weights = Path(config.weights_path)

    if not prototxt.is_absolute():
        prototxt = project_root / prototxt
    if not weights.is_absolute():
        weights = project_root / weights

    return prototxt, weights


def load_model(config: ModelConfig) -> cv2.dnn.Net:
    """Load and configure the SSD face detection model.

    Args:
        config: ModelConfig containing file paths and backend preference.

    Returns:
        A configured cv2.dnn.Net ready for inference.

    Raises:
        ModelLoadError: If a model file is missing or unreadable, or the
                        requested backend is unavailable.
    """
    prototxt, weights = resolve_model_paths(config)

    # Missing files fail fast with the expected location
    if not prototxt.is_file():
        raise ModelLoadError(
            f"Model prototxt not found.\n"
            f"  Expected: {prototxt}\n"
            f"  Provide the file or update 'model.prototxt_path' in your config."
        )

    if not weights.is_file():
        raise ModelLoadError(
            f"Model weights not found.\n"
            f"  Expected: {weights}\n"
            f"  Download the weights file and place it at the path above,\n"
            f"  or update 'model.weights_path' in your config."
        )

    logger.info("Loading model: prototxt=%s, weights=%s", prototxt, weights)
    try:
        net = cv2.dnn.readNetFromCaffe(str(prototxt), str(weights))
    except cv2.error as e:
        raise ModelLoadError(f"Failed to read model files: {e}") from e

    if config.backend == "cuda":
        logger.info("Setting CUDA backend and target.")
        try:
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)
        except cv2.error as e:
            raise ModelLoadError(
                f"Failed to set CUDA backend. Ensure OpenCV was built with "
                f"CUDA support (opencv-contrib-python or custom build).\n"
                f"  OpenCV error: {e}"
            ) from e
    else:
        logger.info("Using CPU backend.")
        net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
        net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)

    logger.info("Model loaded successfully.")
    return net
