"""
Postprocessing for the hand detection pipeline.

Responsibility:
    Decode the raw palm network output into image-space boxes and
    landmarks, select a single hand with non-maximum suppression, and map
    the result back to the original frame resolution.

Non-goals:
    - No drawing, saving, or display logic.
    - No model loading or inference.

Hard-coded:
    - Raw output layout: [N, 19] per anchor, where each row is
      [score_logit, dx, dy, w, h, lm0_x, lm0_y, ..., lm6_x, lm6_y].
      Offsets and sizes are in network-input pixels, relative to the
      anchor center.
"""

import logging
from dataclasses import replace
from typing import List, Optional, Tuple

import numpy as np

from hand_detection.detection import HandDetection

logger = logging.getLogger(__name__)

NUM_LANDMARKS = 7
PREDICTION_WIDTH = 1 + 4 + NUM_LANDMARKS * 2


def sigmoid(x: np.ndarray) -> np.ndarray:
    """Numerically stable logistic function."""
    return np.exp(-np.logaddexp(0.0, -np.asarray(x, dtype=np.float64)))


def decode_boxes(
    raw_boxes: np.ndarray,
    anchors: np.ndarray,
    input_size: Tuple[int, int],
) -> np.ndarray:
    """Decode anchor-relative box regressions into input-pixel corners.

    Args:
        raw_boxes: (N, 4) array of [dx, dy, w, h] regressions.
        anchors: (N, 2) array of normalized anchor centers.
        input_size: Network input (width, height).

    Returns:
        (N, 4) array of [x1, y1, x2, y2] in network-input pixels.
    """
    size = np.asarray(input_size, dtype=np.float32)

    centers = raw_boxes[:, 0:2] / size + anchors
    half_sizes = raw_boxes[:, 2:4] / (size * 2.0)

    start_points = (centers - half_sizes) * size
    end_points = (centers + half_sizes) * size

    return np.concatenate([start_points, end_points], axis=1)


def decode_landmarks(
    raw_landmarks: np.ndarray,
    anchors: np.ndarray,
    input_size: Tuple[int, int],
) -> np.ndarray:
    """Decode anchor-relative landmark regressions into input pixels.

    Args:
        raw_landmarks: (N, 14) array, 7 (x, y) offsets per anchor.
        anchors: (N, 2) array of normalized anchor centers.
        input_size: Network input (width, height).

    Returns:
        (N, 7, 2) array of landmark points in network-input pixels.
    """
    size = np.asarray(input_size, dtype=np.float32)

    points = raw_landmarks.reshape(-1, NUM_LANDMARKS, 2) / size
    points = points + anchors.reshape(-1, 1, 2)

    return points * size


def box_iou(box: np.ndarray, boxes: np.ndarray) -> np.ndarray:
    """Intersection over union of one box against many.

    Corners are normalized per axis, so boxes given as (end, start) are
    handled. Degenerate boxes (zero area) overlap nothing.

    Args:
        box: (4,) array [x1, y1, x2, y2].
        boxes: (M, 4) array of boxes.

    Returns:
        (M,) array of IoU values in [0, 1].
    """
    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    box = np.asarray(box, dtype=np.float64)

    x_min = min(box[0], box[2])
    y_min = min(box[1], box[3])
    x_max = max(box[0], box[2])
    y_max = max(box[1], box[3])
    area = (x_max - x_min) * (y_max - y_min)

    xs_min = np.minimum(boxes[:, 0], boxes[:, 2])
    ys_min = np.minimum(boxes[:, 1], boxes[:, 3])
    xs_max = np.maximum(boxes[:, 0], boxes[:, 2])
    ys_max = np.maximum(boxes[:, 1], boxes[:, 3])
    areas = (xs_max - xs_min) * (ys_max - ys_min)

    inter_w = np.maximum(np.minimum(x_max, xs_max) - np.maximum(x_min, xs_min), 0.0)
    inter_h = np.maximum(np.minimum(y_max, ys_max) - np.maximum(y_min, ys_min), 0.0)
    intersection = inter_w * inter_h

    union = area + areas - intersection
    valid = (area > 0) & (areas > 0)

    iou = np.zeros(len(boxes), dtype=np.float64)
    np.divide(intersection, union, out=iou, where=valid)
    return iou


def non_max_suppression(
    boxes: np.ndarray,
    scores: np.ndarray,
    max_output_size: int,
    iou_threshold: float,
    score_threshold: float,
) -> List[int]:
    """Greedy non-maximum suppression.

    Candidates scoring at or below score_threshold are dropped. The rest
    are visited by descending score (ties keep input order); a candidate
    is kept only while its IoU with every kept box is below iou_threshold.

    Args:
        boxes: (N, 4) array of [x1, y1, x2, y2].
        scores: (N,) array of confidences.
        max_output_size: Maximum number of indices to return.
        iou_threshold: Overlap at or above which a lower-scoring box is suppressed.
        score_threshold: Minimum (exclusive) score to consider a candidate.

    Returns:
        Indices into boxes of the kept candidates, best first.
    """
    scores = np.asarray(scores).reshape(-1)
    boxes = np.asarray(boxes).reshape(-1, 4)

    if len(scores) != len(boxes):
        raise ValueError(
            f"boxes and scores disagree: {len(boxes)} boxes, {len(scores)} scores."
        )

    candidates = np.flatnonzero(scores > score_threshold)
    order = candidates[np.argsort(-scores[candidates], kind="stable")]

    keep: List[int] = []
    while order.size > 0 and len(keep) < max_output_size:
        best = int(order[0])
        keep.append(best)

        rest = order[1:]
        overlaps = box_iou(boxes[best], boxes[rest])
        order = rest[overlaps < iou_threshold]

    return keep


def scale_box_coordinates(
    detection: HandDetection,
    factors: Tuple[float, float],
) -> HandDetection:
    """Multiply every coordinate of a detection by (x_factor, y_factor)."""
    fx, fy = factors
    return replace(
        detection,
        start_point=(detection.start_point[0] * fx, detection.start_point[1] * fy),
        end_point=(detection.end_point[0] * fx, detection.end_point[1] * fy),
        landmarks=tuple((x * fx, y * fy) for x, y in detection.landmarks),
    )


def postprocess(
    prediction: np.ndarray,
    anchors: np.ndarray,
    input_size: Tuple[int, int],
    original_size: Tuple[int, int],
    iou_threshold: float,
    score_threshold: float,
) -> Optional[HandDetection]:
    """Turn the raw network output into at most one hand detection.

    Args:
        prediction: Raw output, (N, 19) or with leading unit dimensions
                    such as (1, N, 19).
        anchors: (N, 2) array of normalized anchor centers.
        input_size: Network input (width, height).
        original_size: Original frame (width, height).
        iou_threshold: NMS overlap threshold.
        score_threshold: Minimum sigmoid score to accept a candidate.

    Returns:
        The best HandDetection in original-frame pixels, or None when no
        candidate passes the thresholds.

    Raises:
        ValueError: If the prediction does not have one 19-wide row per anchor.
    """
    raw = np.squeeze(np.asarray(prediction, dtype=np.float32))
    if raw.ndim == 1:
        raw = raw.reshape(1, -1)

    if raw.ndim != 2 or raw.shape[1] != PREDICTION_WIDTH:
        raise ValueError(
            f"Expected raw prediction of shape (N, {PREDICTION_WIDTH}), "
            f"got {np.shape(prediction)}."
        )

    if raw.shape[0] != len(anchors):
        raise ValueError(
            f"Anchor count mismatch: model produced {raw.shape[0]} rows "
            f"but {len(anchors)} anchors are configured."
        )

    scores = sigmoid(raw[:, 0])
    boxes = decode_boxes(raw[:, 1:5], anchors, input_size)

    indices = non_max_suppression(
        boxes, scores, 1, iou_threshold, score_threshold
    )
    if not indices:
        logger.debug("No candidate above score threshold %.2f", score_threshold)
        return None

    best = indices[0]
    # Only the selected anchor's landmarks are needed
    landmarks = decode_landmarks(
        raw[best:best + 1, 5:], anchors[best:best + 1], input_size
    )[0]

    box = boxes[best]
    detection = HandDetection(
        start_point=(float(box[0]), float(box[1])),
        end_point=(float(box[2]), float(box[3])),
        landmarks=tuple((float(x), float(y)) for x, y in landmarks),
        confidence=float(scores[best]),
    )

    factors = (
        original_size[0] / input_size[0],
        original_size[1] / input_size[1],
    )
    return scale_box_coordinates(detection, factors)
