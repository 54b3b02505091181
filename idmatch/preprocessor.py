"""
Preprocessing for the face localization model.

Responsibility:
    Convert a PixelImage into a 4D DNN-compatible input blob using
    cv2.dnn.blobFromImage.

Non-goals:
    - No decoding or I/O.
    - No inference or coordinate mapping.

Hard-coded:
    - Channel order handed to the network is BGR (mandated by the Caffe model).
    - swapRB is False (the image is converted to BGR first).
"""

import numpy as np
import cv2

from idmatch.config import ModelConfig
from idmatch.image import PixelImage


def preprocess(image: PixelImage, config: ModelConfig) -> np.ndarray:
    """Convert an RGBA PixelImage into a DNN input blob.

    Args:
        image: Decoded source image.
        config: ModelConfig providing input_size, scale_factor, and mean_values.

    Returns:
        A 4D numpy array of shape (1, 3, H, W) with dtype float32,
        ready to be passed to net.setInput().

    Raises:
        ValueError: If no image is given.
    """
    if image is None:
        raise ValueError(
            "Cannot preprocess a missing image. "
            "Decode the source before running detection."
        )

    blob = cv2.dnn.blobFromImage(
        image=image.to_bgr(),
        scalefactor=config.scale_factor,
        size=config.input_size,
        mean=config.mean_values,
        swapRB=False,   # Hard-coded: input is BGR, model expects BGR
        crop=False,
    )

    return blob
