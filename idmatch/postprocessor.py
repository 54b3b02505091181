"""
Postprocessing for the face localization model.

Responsibility:
    Parse the raw SSD network output tensor into a list of FaceBox
    objects. Apply confidence thresholding, coordinate un-normalization,
    and boundary clamping.

Non-goals:
    - No face selection policy (see detector.select_face).
    - No model loading or inference.

Hard-coded:
    - SSD output tensor layout: [1, 1, N, 7] where each row is
      [batch_id, class_id, confidence, x1, y1, x2, y2] with
      coordinates normalized to [0, 1].
"""

from typing import List

import numpy as np

from idmatch.detection import FaceBox


def postprocess(
    network_output: np.ndarray,
    frame_width: int,
    frame_height: int,
    confidence_threshold: float,
) -> List[FaceBox]:
    """Parse raw SSD output into a list of FaceBox objects.

    Args:
        network_output: Raw output from net.forward(), expected shape
                        (1, 1, N, 7).
        frame_width: Source image width in pixels (for coordinate mapping).
        frame_height: Source image height in pixels (for coordinate mapping).
        confidence_threshold: Minimum confidence to accept a detection.

    Returns:
        List of FaceBox objects in source-image pixel coordinates,
        sorted by confidence (descending). Empty list if no detections
        meet the threshold.
    """
    boxes: List[FaceBox] = []

    raw = network_output[0, 0]  # Shape: (N, 7)

    for i in range(raw.shape[0]):
        confidence = float(raw[i, 2])

        if confidence < confidence_threshold:
            continue

        # Un-normalize from [0, 1] to pixels, clamped to the frame
        left = min(max(float(raw[i, 3]) * frame_width, 0.0), float(frame_width))
        top = min(max(float(raw[i, 4]) * frame_height, 0.0), float(frame_height))
        right = min(max(float(raw[i, 5]) * frame_width, 0.0), float(frame_width))
        bottom = min(max(float(raw[i, 6]) * frame_height, 0.0), float(frame_height))

        # Skip degenerate boxes
        if right <= left or bottom <= top:
            continue

        boxes.append(FaceBox(
            left=left, top=top, right=right, bottom=bottom,
            confidence=confidence,
        ))

    # Sort by confidence descending for consistent output ordering
    boxes.sort(key=lambda b: b.confidence, reverse=True)

    return boxes
