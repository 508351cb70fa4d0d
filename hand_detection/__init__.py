"""
Hand Detection — single-hand palm detection over an anchor-based SSD network.

Public API:
    - HandDetector: The single entry point for hand detection.
    - HandDetection: Data transfer object representing a detected hand.

All other modules in this package are internal implementation details
and should not be imported directly by consumers.

Usage:
    from hand_detection import HandDetector

    detector = HandDetector.from_config()
    detection = detector.detect(frame)  # None when no hand is visible
"""

from hand_detection.detection import HandDetection
from hand_detection.detector import HandDetector

__all__ = ["HandDetector", "HandDetection"]
