"""
Tests for the postprocessing module.
"""

import numpy as np
import pytest

from idmatch.postprocessor import postprocess


def test_postprocess_valid_detection():
    """Test parsing a valid detection tensor."""
    # Synthetic SSD output: [1, 1, 1, 7]
    # [batch, class, conf, x1, y1, x2, y2]
    # High confidence detection covering top-left quarter
    tensor = np.array([[[[0, 1, 0.95, 0.0, 0.0, 0.5, 0.5]]]], dtype=np.float32)

    boxes = postprocess(
        network_output=tensor,
        frame_width=640,
        frame_height=480,
        confidence_threshold=0.5,
    )

    assert len(boxes) == 1
    box = boxes[0]
    assert box.confidence == pytest.approx(0.95, abs=1e-5)
    assert box.left == 0
    assert box.top == 0
    assert box.right == pytest.approx(320.0)  # 0.5 * 640
    assert box.bottom == pytest.approx(240.0)  # 0.5 * 480


def test_postprocess_confidence_filtering():
    """Test that low-confidence detections are ignored."""
    # Confidence is 0.4, threshold is 0.5
    tensor = np.array([[[[0, 1, 0.4, 0.0, 0.0, 0.5, 0.5]]]], dtype=np.float32)

    boxes = postprocess(
        network_output=tensor,
        frame_width=640,
        frame_height=480,
        confidence_threshold=0.5,
    )
    assert len(boxes) == 0


def test_postprocess_clamping():
    """Test coordinate clamping to frame boundaries."""
    # Coordinates outside [0, 1] range: e.g. -0.1 to 1.2
    tensor = np.array([[[[0, 1, 0.9, -0.1, -0.1, 1.2, 1.2]]]], dtype=np.float32)

    boxes = postprocess(
        network_output=tensor,
        frame_width=100,
        frame_height=100,
        confidence_threshold=0.5,
    )

    assert len(boxes) == 1
    box = boxes[0]
    assert box.left == 0
    assert box.top == 0
    assert box.right == 100
    assert box.bottom == 100


def test_postprocess_degenerate_box():
    """Test that zero-area or inverted boxes are skipped."""
    # x2 < x1 case
    tensor = np.array([[[[0, 1, 0.9, 0.5, 0.5, 0.4, 0.4]]]], dtype=np.float32)

    boxes = postprocess(
        network_output=tensor,
        frame_width=100,
        frame_height=100,
        confidence_threshold=0.5,
    )
    assert len(boxes) == 0


def test_postprocess_sorted_by_confidence():
    """Test that boxes come back in descending confidence order."""
    tensor = np.array([[[
        [0, 1, 0.6, 0.0, 0.0, 0.2, 0.2],
        [0, 1, 0.9, 0.5, 0.5, 0.9, 0.9],
    ]]], dtype=np.float32)

    boxes = postprocess(
        network_output=tensor,
        frame_width=100,
        frame_height=100,
        confidence_threshold=0.5,
    )
    assert [round(b.confidence, 1) for b in boxes] == [0.9, 0.6]
