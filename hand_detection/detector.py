"""
HandDetector — the single public API for palm detection.

Public contract:
    HandDetector.detect(frame: np.ndarray) -> Optional[HandDetection]

Constraints:
    - Input must be an (H, W, 3) numpy array with values in [0, 255].
    - The method is stateless per call and deterministic.
    - At most one hand is returned per call.
    - Thread-safety is not guaranteed (single-threaded design).

Non-goals:
    - No file reading, camera access, or I/O of any kind.
    - No visualization or output writing.
    - No tracking or temporal state.
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np

from hand_detection.anchors import (
    Anchor,
    anchors_to_array,
    generate_anchors,
    load_anchors,
)
from hand_detection.config import AppConfig, load_config
from hand_detection.detection import HandDetection
from hand_detection.model_loader import Predictor, load_model
from hand_detection.postprocessor import postprocess
from hand_detection.preprocessor import preprocess

logger = logging.getLogger(__name__)


class HandDetector:
    """Single-hand palm detector over an anchor-based SSD network.

    Usage:
        detector = HandDetector.from_config()       # Model + anchors from config
        detector = HandDetector(model, 256, 256, anchors, 0.3, 0.5)
        detection = detector.detect(frame)          # HandDetection or None

    The anchor table, input size and thresholds are fixed at construction.
    Every intermediate array of a detect() call is local to that call.
    """

    def __init__(
        self,
        model: Predictor,
        width: int,
        height: int,
        anchors: Sequence[Anchor],
        iou_threshold: float,
        score_threshold: float,
        swap_rb: bool = True,
    ) -> None:
        """Initialize the detector around an already loaded model.

        Args:
            model: Object exposing predict(tensor) -> tensor.
            width: Network input width in pixels.
            height: Network input height in pixels.
            anchors: Ordered anchor list, one per network output row.
            iou_threshold: NMS overlap threshold in [0, 1].
            score_threshold: Minimum confidence in [0, 1].
            swap_rb: Whether input frames are BGR and must be swapped to RGB.

        Raises:
            ValueError: If any parameter describes a degenerate configuration.
        """
        if width <= 0 or height <= 0:
            raise ValueError(
                f"Input size must be positive, got width={width}, height={height}."
            )
        if len(anchors) == 0:
            raise ValueError("Anchor list must not be empty.")
        if not (0.0 <= iou_threshold <= 1.0):
            raise ValueError(f"iou_threshold must be in [0.0, 1.0], got {iou_threshold}.")
        if not (0.0 <= score_threshold <= 1.0):
            raise ValueError(
                f"score_threshold must be in [0.0, 1.0], got {score_threshold}."
            )

        self._model = model
        self._width = int(width)
        self._height = int(height)
        self._iou_threshold = float(iou_threshold)
        self._score_threshold = float(score_threshold)
        self._swap_rb = bool(swap_rb)

        self._anchors = anchors_to_array(anchors)
        self._anchors.setflags(write=False)

        logger.info(
            "HandDetector initialized (input=%dx%d, anchors=%d, "
            "score_threshold=%.2f, iou_threshold=%.2f)",
            self._width,
            self._height,
            len(self._anchors),
            self._score_threshold,
            self._iou_threshold,
        )

    @classmethod
    def from_config(cls, config: Optional[AppConfig] = None) -> "HandDetector":
        """Build a detector by loading the model and anchors from config.

        Args:
            config: Library configuration. If None, safe defaults are used.

        Raises:
            FileNotFoundError: If the model or anchor file is missing.
            RuntimeError: If the requested backend is unavailable.
            ValueError: If configuration values are invalid.
        """
        if config is None:
            config = load_config()

        model = load_model(config.model)

        if config.anchors.path is not None:
            anchors = load_anchors(config.anchors.path)
        else:
            anchors = generate_anchors(config.model.input_size, config.anchors)

        width, height = config.model.input_size
        return cls(
            model,
            width,
            height,
            anchors,
            iou_threshold=config.detection.iou_threshold,
            score_threshold=config.detection.score_threshold,
            swap_rb=config.model.swap_rb,
        )

    def detect(self, frame: np.ndarray) -> Optional[HandDetection]:
        """Detect a single hand in a frame.

        Args:
            frame: An image as a numpy array with shape (H, W, 3) and
                   values in [0, 255].

        Returns:
            The highest-scoring HandDetection in frame pixel coordinates,
            or None if no hand passes the thresholds.

        Raises:
            TypeError: If frame is not a numpy ndarray.
            ValueError: If frame has incorrect shape or is empty, or the
                        model output does not match the anchor table.
        """
        self._validate_frame(frame)

        # Preprocess: frame → [-1, 1] NHWC tensor
        tensor = preprocess(frame, (self._width, self._height), self._swap_rb)

        # Inference
        prediction = self._model.predict(tensor)

        # Postprocess: raw output → decoded, suppressed, rescaled hand
        h, w = frame.shape[:2]
        return postprocess(
            prediction=prediction,
            anchors=self._anchors,
            input_size=(self._width, self._height),
            original_size=(w, h),
            iou_threshold=self._iou_threshold,
            score_threshold=self._score_threshold,
        )

    @property
    def input_size(self) -> Tuple[int, int]:
        """Network input (width, height)."""
        return self._width, self._height

    @property
    def num_anchors(self) -> int:
        """Number of anchors the detector decodes against."""
        return len(self._anchors)

    @staticmethod
    def _validate_frame(frame: np.ndarray) -> None:
        """Validate that the input frame meets the API contract.

        Raises:
            TypeError: If frame is not a numpy ndarray.
            ValueError: If frame is empty or has wrong dimensions.
        """
        if not isinstance(frame, np.ndarray):
            raise TypeError(
                f"Expected frame to be a numpy ndarray, "
                f"got {type(frame).__name__}. "
                f"Use cv2.imread() or VideoCapture.read() to obtain frames."
            )

        if frame.size == 0:
            raise ValueError(
                "Frame is empty (zero size). "
                "Ensure the input source is providing valid frames."
            )

        if frame.ndim != 3:
            raise ValueError(
                f"Expected a 3-dimensional frame (H, W, C), "
                f"got {frame.ndim} dimensions with shape {frame.shape}. "
                f"Grayscale images must be converted to color first."
            )

        if frame.shape[2] != 3:
            raise ValueError(
                f"Expected 3 channels, got {frame.shape[2]} channels. "
                f"Drop the alpha channel before detection."
            )
