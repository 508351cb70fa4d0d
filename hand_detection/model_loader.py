"""
Model loading for the hand detection library.

Responsibility:
    Load the palm detection network from disk, configure the compute
    backend, and expose it through the Predictor capability the detector
    consumes.

Non-goals:
    - No preprocessing, decoding, or frame-level logic.
    - No automatic model downloading.
    - No fallback to alternative models.

Failure behavior:
    - Missing model files raise FileNotFoundError with the exact
      missing path and expected location.
    - Incompatible backend raises RuntimeError.
"""

import logging
from pathlib import Path
from typing import Protocol

import cv2
import numpy as np

from hand_detection.config import ModelConfig, get_project_root

logger = logging.getLogger(__name__)


class Predictor(Protocol):
    """Anything that maps an input tensor to the raw prediction tensor."""

    def predict(self, tensor: np.ndarray) -> np.ndarray:
        ...


class CvDnnModel:
    """Adapts a cv2.dnn.Net to the Predictor capability.

    Input tensors are always NHWC (batch, height, width, channels). They
    are transposed to NCHW when the network was exported that way.

    Palm models come in two output flavors: a single [1, N, 19] tensor
    with the score first, or a pair of regressors [1, N, 18] and scores
    [1, N, 1]. The pair is merged into the single-tensor layout.
    """

    def __init__(self, net: cv2.dnn.Net, input_layout: str = "nhwc") -> None:
        self._net = net
        self._input_layout = input_layout
        self._output_names = list(net.getUnconnectedOutLayersNames())

    def predict(self, tensor: np.ndarray) -> np.ndarray:
        if self._input_layout == "nchw":
            tensor = np.ascontiguousarray(tensor.transpose(0, 3, 1, 2))

        self._net.setInput(tensor)

        if len(self._output_names) <= 1:
            return self._net.forward()

        outputs = self._net.forward(self._output_names)
        return _merge_outputs(outputs)


def _merge_outputs(outputs) -> np.ndarray:
    """Concatenate (scores, regressors) into a single [1, N, 1 + R] tensor."""
    if len(outputs) != 2:
        raise ValueError(
            f"Expected 1 or 2 network outputs, got {len(outputs)}."
        )

    first, second = (np.asarray(o) for o in outputs)
    if first.shape[-1] == 1:
        scores, regressors = first, second
    elif second.shape[-1] == 1:
        scores, regressors = second, first
    else:
        raise ValueError(
            f"Cannot identify the score output among shapes "
            f"{first.shape} and {second.shape}."
        )

    return np.concatenate([scores, regressors], axis=-1)


def load_model(config: ModelConfig) -> CvDnnModel:
    """Load and configure the palm detection model.

    Args:
        config: ModelConfig containing the model path and backend preference.

    Returns:
        A CvDnnModel ready for inference.

    Raises:
        FileNotFoundError: If the model file does not exist.
        RuntimeError: If the requested backend is unavailable.
    """
    model_path = Path(config.model_path)

    # Resolve relative paths against project root
    if not model_path.is_absolute():
        model_path = get_project_root() / model_path

    # Fail fast with the missing path
    if not model_path.is_file():
        raise FileNotFoundError(
            f"Palm detection model not found.\n"
            f"  Expected: {model_path}\n"
            f"  Download the model file and place it at the path above,\n"
            f"  or update 'model.model_path' in your config."
        )

    logger.info("Loading model: %s", model_path)
    net = cv2.dnn.readNet(str(model_path))

    # Configure backend and target
    if config.backend == "cuda":
        logger.info("Setting CUDA backend and target.")
        try:
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)
        except cv2.error as e:
            raise RuntimeError(
                f"Failed to set CUDA backend. Ensure OpenCV was built with "
                f"CUDA support (opencv-contrib-python or custom build).\n"
                f"  OpenCV error: {e}"
            ) from e
    else:
        logger.info("Using CPU backend.")
        net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
        net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)

    logger.info("Model loaded successfully.")
    return CvDnnModel(net, input_layout=config.input_layout)
