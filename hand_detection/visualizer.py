"""
Visualization for the hand detection pipeline.

Responsibility:
    Draw a hand's bounding box, palm landmarks and optional confidence
    label onto a frame. This is a pure rendering module: it produces an
    annotated copy of the frame and performs no I/O.

Non-goals:
    - No file writing, window management, or display logic.
    - No detection or model logic.
"""

from typing import Optional

import cv2
import numpy as np

from hand_detection.config import VisualizationConfig
from hand_detection.detection import HandDetection

# Hard-coded rendering constants (cosmetic internals, not user-facing)
_FONT = cv2.FONT_HERSHEY_SIMPLEX
_FONT_SCALE = 0.5
_FONT_THICKNESS = 1
_LABEL_PADDING = 4


def _to_pixel(point) -> tuple:
    return int(round(point[0])), int(round(point[1]))


def draw_detection(
    frame: np.ndarray,
    detection: Optional[HandDetection],
    config: VisualizationConfig,
) -> np.ndarray:
    """Draw a hand detection onto a frame.

    Args:
        frame: Input BGR image (not modified, a copy is returned).
        detection: The detection to render. None yields an unannotated copy.
        config: Visualization parameters (colors, thickness, labels).

    Returns:
        A new BGR numpy array with the detection drawn.
    """
    annotated = frame.copy()
    if detection is None:
        return annotated

    x1, y1 = _to_pixel(detection.start_point)
    x2, y2 = _to_pixel(detection.end_point)

    cv2.rectangle(
        annotated,
        (x1, y1),
        (x2, y2),
        color=config.box_color,
        thickness=config.thickness,
    )

    for point in detection.landmarks:
        cv2.circle(
            annotated,
            _to_pixel(point),
            config.landmark_radius,
            color=config.landmark_color,
            thickness=cv2.FILLED,
        )

    if config.show_confidence:
        label = f"{detection.confidence:.2f}"
        (text_w, text_h), baseline = cv2.getTextSize(
            label, _FONT, _FONT_SCALE, _FONT_THICKNESS
        )

        # Label above the box, or below if too close to top
        label_y = y1 - _LABEL_PADDING
        if label_y - text_h - _LABEL_PADDING < 0:
            label_y = y2 + text_h + _LABEL_PADDING

        cv2.rectangle(
            annotated,
            (x1, label_y - text_h - _LABEL_PADDING),
            (x1 + text_w + _LABEL_PADDING, label_y + _LABEL_PADDING),
            color=config.box_color,
            thickness=cv2.FILLED,
        )

        cv2.putText(
            annotated,
            label,
            (x1 + _LABEL_PADDING // 2, label_y),
            _FONT,
            _FONT_SCALE,
            (0, 0, 0),  # Black text on colored background
            _FONT_THICKNESS,
            cv2.LINE_AA,
        )

    return annotated
