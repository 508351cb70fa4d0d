"""
Hand detection data transfer object.

This module defines the HandDetection dataclass, the single output type
returned by HandDetector.detect(). It is a frozen, serializable container
with no behavior beyond data access.

Non-goals:
    - No rendering logic.
    - No coordinate transformation methods (that belongs in postprocessor).
"""

from dataclasses import dataclass
from typing import Tuple

Point = Tuple[float, float]


@dataclass(frozen=True, slots=True)
class HandDetection:
    """A single detected hand with bounding box, palm landmarks and score.

    Attributes:
        start_point: Top-left (x, y) corner of the palm box.
        end_point: Bottom-right (x, y) corner of the palm box.
        landmarks: Seven (x, y) palm keypoints, in model output order.
        confidence: Sigmoid score of the selected anchor in [0.0, 1.0].

    All coordinates are floating point pixels relative to the original
    input image dimensions.
    """

    start_point: Point
    end_point: Point
    landmarks: Tuple[Point, ...]
    confidence: float

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "start_point": list(self.start_point),
            "end_point": list(self.end_point),
            "landmarks": [list(p) for p in self.landmarks],
            "confidence": round(self.confidence, 4),
        }

    @property
    def width(self) -> float:
        """Bounding box width in pixels."""
        return self.end_point[0] - self.start_point[0]

    @property
    def height(self) -> float:
        """Bounding box height in pixels."""
        return self.end_point[1] - self.start_point[1]

    @property
    def center(self) -> Point:
        """Bounding box center in pixels."""
        return (
            (self.start_point[0] + self.end_point[0]) / 2.0,
            (self.start_point[1] + self.end_point[1]) / 2.0,
        )
