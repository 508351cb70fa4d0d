"""
Preprocessing for the hand detection pipeline.

Responsibility:
    Convert a raw image (numpy array) into the 4D NHWC float tensor the
    palm detection network consumes: resized to the network input size
    with bilinear interpolation and scaled to [-1, 1].

Non-goals:
    - No frame acquisition or I/O.
    - No inference or coordinate mapping.
    - No layout conversion (the model adapter owns NHWC → NCHW).
"""

from typing import Tuple

import numpy as np
import cv2


def preprocess(
    frame: np.ndarray,
    input_size: Tuple[int, int],
    swap_rb: bool = True,
) -> np.ndarray:
    """Convert a raw frame into a network input tensor.

    Args:
        frame: Input image (H, W, 3) with values in [0, 255]. BGR when
               swap_rb is set (the OpenCV convention), RGB otherwise.
        input_size: Network input (width, height).
        swap_rb: Reverse the channel order before normalizing.

    Returns:
        A 4D numpy array of shape (1, height, width, 3) with dtype float32
        and values in [-1, 1].

    Raises:
        ValueError: If the frame is empty or has unexpected dimensions.
    """
    if frame is None or frame.size == 0:
        raise ValueError(
            "Cannot preprocess an empty frame. "
            "Ensure the input source is providing valid frames."
        )

    width, height = input_size
    # cv2.resize has no kernels for int64, int32, float16 or bool frames
    resized = cv2.resize(
        frame.astype(np.float32), (width, height), interpolation=cv2.INTER_LINEAR
    )

    if swap_rb:
        resized = resized[..., ::-1]

    # [0, 255] → [0, 1] → [-1, 1]
    tensor = resized / 255.0
    tensor = (tensor - 0.5) * 2.0

    return tensor[np.newaxis, ...]
