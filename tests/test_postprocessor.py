"""
Tests for the postprocessing module.
"""

import numpy as np
import pytest

from hand_detection.detection import HandDetection
from hand_detection.postprocessor import (
    box_iou,
    decode_boxes,
    decode_landmarks,
    non_max_suppression,
    postprocess,
    scale_box_coordinates,
    sigmoid,
)

_INPUT_SIZE = (256, 256)


def _logit(p: float) -> float:
    return float(np.log(p / (1.0 - p)))


def _anchors(n: int = 10) -> np.ndarray:
    """Anchors spread along a diagonal so decoded boxes are distinct."""
    return np.array(
        [[(i + 0.5) / n, (i + 0.5) / n] for i in range(n)], dtype=np.float32
    )


def _prediction(scores, n: int = 10) -> np.ndarray:
    """Synthetic raw output with zero regressions and given probabilities."""
    raw = np.zeros((1, n, 19), dtype=np.float32)
    raw[0, :, 0] = [_logit(p) for p in scores]
    return raw


def test_sigmoid_matches_logistic():
    """Test sigmoid on ordinary and extreme logits."""
    assert sigmoid(0.0) == pytest.approx(0.5)
    assert sigmoid(_logit(0.9)) == pytest.approx(0.9)
    extremes = sigmoid(np.array([-1000.0, 1000.0]))
    assert extremes[0] == pytest.approx(0.0)
    assert extremes[1] == pytest.approx(1.0)


def test_zero_regression_decodes_to_anchor():
    """Test that all-zero rows decode to the anchor itself."""
    anchors = _anchors()
    n = len(anchors)

    boxes = decode_boxes(np.zeros((n, 4), dtype=np.float32), anchors, _INPUT_SIZE)
    centers = (boxes[:, 0:2] + boxes[:, 2:4]) / 2.0
    np.testing.assert_allclose(centers, anchors * 256, rtol=1e-6)

    landmarks = decode_landmarks(
        np.zeros((n, 14), dtype=np.float32), anchors, _INPUT_SIZE
    )
    assert landmarks.shape == (n, 7, 2)
    for i in range(n):
        np.testing.assert_allclose(
            landmarks[i], np.tile(anchors[i] * 256, (7, 1)), rtol=1e-6
        )


def test_decode_boxes_offsets_and_sizes():
    """Test center offset and box size decoding on a non-square input."""
    anchors = np.array([[0.5, 0.25]], dtype=np.float32)
    raw = np.array([[10.0, -4.0, 40.0, 20.0]], dtype=np.float32)

    boxes = decode_boxes(raw, anchors, (200, 100))

    # center = (0.5 * 200 + 10, 0.25 * 100 - 4) = (110, 21)
    np.testing.assert_allclose(boxes[0], [90.0, 11.0, 130.0, 31.0], rtol=1e-5)


def test_decode_landmarks_offsets():
    """Test that each landmark is offset from its anchor independently."""
    anchors = np.array([[0.5, 0.5]], dtype=np.float32)
    raw = np.arange(14, dtype=np.float32).reshape(1, 14)

    landmarks = decode_landmarks(raw, anchors, (100, 100))

    expected = np.arange(14, dtype=np.float32).reshape(7, 2) + 50.0
    np.testing.assert_allclose(landmarks[0], expected, rtol=1e-5)


def test_box_iou():
    """Test IoU for overlapping, disjoint, swapped and degenerate boxes."""
    box = np.array([0.0, 0.0, 10.0, 10.0])
    others = np.array([
        [0.0, 0.0, 10.0, 10.0],     # identical
        [5.0, 0.0, 15.0, 10.0],     # half overlap
        [20.0, 20.0, 30.0, 30.0],   # disjoint
        [10.0, 10.0, 0.0, 0.0],     # identical, corners swapped
        [5.0, 5.0, 5.0, 5.0],       # zero area
    ])

    iou = box_iou(box, others)

    assert iou[0] == pytest.approx(1.0)
    assert iou[1] == pytest.approx(50.0 / 150.0)
    assert iou[2] == 0.0
    assert iou[3] == pytest.approx(1.0)
    assert iou[4] == 0.0


def test_nms_suppresses_overlapping_lower_score():
    """Test that of two heavily overlapping boxes only the best survives."""
    boxes = np.array([[1.0, 1.0, 11.0, 11.0], [0.0, 0.0, 10.0, 10.0]])
    scores = np.array([0.8, 0.9])

    keep = non_max_suppression(boxes, scores, 10, iou_threshold=0.3, score_threshold=0.5)

    assert keep == [1]


def test_nms_keeps_disjoint_boxes():
    """Test that non-overlapping boxes all survive when asked for several."""
    boxes = np.array([[0.0, 0.0, 10.0, 10.0], [50.0, 50.0, 60.0, 60.0]])
    scores = np.array([0.7, 0.9])

    keep = non_max_suppression(boxes, scores, 2, iou_threshold=0.3, score_threshold=0.5)
    assert keep == [1, 0]

    keep = non_max_suppression(boxes, scores, 1, iou_threshold=0.3, score_threshold=0.5)
    assert keep == [1]


def test_nms_score_threshold():
    """Test that candidates below the score threshold never survive."""
    boxes = np.array([[0.0, 0.0, 10.0, 10.0], [50.0, 50.0, 60.0, 60.0]])
    scores = np.array([0.4, 0.6])

    keep = non_max_suppression(boxes, scores, 2, iou_threshold=0.3, score_threshold=0.5)
    assert keep == [1]

    keep = non_max_suppression(boxes, scores, 2, iou_threshold=0.3, score_threshold=0.7)
    assert keep == []


def test_nms_iou_at_threshold_is_suppressed():
    """Test that a box overlapping exactly at the IoU threshold is dropped."""
    # Intersection 50, union 100 → IoU exactly 0.5
    boxes = np.array([[0.0, 0.0, 10.0, 10.0], [0.0, 0.0, 10.0, 5.0]])
    scores = np.array([0.9, 0.8])

    keep = non_max_suppression(boxes, scores, 2, iou_threshold=0.5, score_threshold=0.1)
    assert keep == [0]

    keep = non_max_suppression(boxes, scores, 2, iou_threshold=0.51, score_threshold=0.1)
    assert keep == [0, 1]


def test_nms_score_at_threshold_is_dropped():
    """Test that a score equal to the score threshold does not survive."""
    boxes = np.array([[0.0, 0.0, 10.0, 10.0], [50.0, 50.0, 60.0, 60.0]])
    scores = np.array([0.5, 0.9])

    keep = non_max_suppression(boxes, scores, 2, iou_threshold=0.3, score_threshold=0.5)
    assert keep == [1]

    keep = non_max_suppression(boxes, np.array([0.5, 0.5]), 2, 0.3, 0.5)
    assert keep == []


def test_nms_mismatched_inputs():
    """Test that box and score counts must agree."""
    with pytest.raises(ValueError, match="disagree"):
        non_max_suppression(np.zeros((3, 4)), np.zeros(2), 1, 0.3, 0.5)


def test_scale_box_coordinates():
    """Test rescaling of box corners and landmarks."""
    detection = HandDetection(
        start_point=(10.0, 10.0),
        end_point=(20.0, 20.0),
        landmarks=((5.0, 6.0),),
        confidence=0.9,
    )

    scaled = scale_box_coordinates(detection, (2.0, 2.0))

    assert scaled.start_point == (20.0, 20.0)
    assert scaled.end_point == (40.0, 40.0)
    assert scaled.landmarks == ((10.0, 12.0),)
    assert scaled.confidence == 0.9


def test_postprocess_selects_single_anchor():
    """Test the full decode on a synthetic prediction with one confident anchor."""
    scores = [0.01] * 10
    scores[5] = 0.9
    anchors = _anchors()

    detection = postprocess(
        prediction=_prediction(scores),
        anchors=anchors,
        input_size=_INPUT_SIZE,
        original_size=(512, 384),
        iou_threshold=0.3,
        score_threshold=0.5,
    )

    assert detection is not None
    assert detection.confidence == pytest.approx(0.9, abs=1e-5)

    factors = np.array([2.0, 1.5])
    expected = anchors[5] * 256 * factors
    assert detection.center == pytest.approx(tuple(expected), rel=1e-5)
    assert len(detection.landmarks) == 7
    for point in detection.landmarks:
        assert point == pytest.approx(tuple(expected), rel=1e-5)


def test_postprocess_no_detection():
    """Test that all-low scores yield None rather than an error."""
    detection = postprocess(
        prediction=_prediction([0.1] * 10),
        anchors=_anchors(),
        input_size=_INPUT_SIZE,
        original_size=(640, 480),
        iou_threshold=0.3,
        score_threshold=0.5,
    )
    assert detection is None


def test_postprocess_wrong_feature_width():
    """Test that output rows must be 19 wide."""
    with pytest.raises(ValueError, match="shape"):
        postprocess(
            prediction=np.zeros((1, 10, 18), dtype=np.float32),
            anchors=_anchors(),
            input_size=_INPUT_SIZE,
            original_size=(640, 480),
            iou_threshold=0.3,
            score_threshold=0.5,
        )


def test_postprocess_anchor_count_mismatch():
    """Test that the row count must equal the anchor count."""
    with pytest.raises(ValueError, match="Anchor count mismatch"):
        postprocess(
            prediction=_prediction([0.9] * 10),
            anchors=_anchors(8),
            input_size=_INPUT_SIZE,
            original_size=(640, 480),
            iou_threshold=0.3,
            score_threshold=0.5,
        )
