"""
Anchor tables for the palm detection network.

Responsibility:
    Provide the ordered, immutable list of anchor centers the network
    regresses against, either generated from the SSD layer strides or
    loaded from a JSON file shipped next to the model.

Non-goals:
    - No anchor widths/heights. Palm models are trained with fixed-size
      anchors, so only the centers are used during decoding.
    - No decoding or model logic.
"""

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Sequence, Tuple, Union

import numpy as np

from hand_detection.config import AnchorConfig, get_project_root

logger = logging.getLogger(__name__)

# Per layer: one anchor at aspect ratio 1.0 plus the interpolated scale.
_ANCHORS_PER_LAYER = 2


@dataclass(frozen=True, slots=True)
class Anchor:
    """Anchor center in normalized [0, 1] image coordinates."""

    x_center: float
    y_center: float


def generate_anchors(
    input_size: Tuple[int, int],
    config: AnchorConfig = AnchorConfig(),
) -> List[Anchor]:
    """Generate SSD anchor centers for a palm detection network.

    Consecutive layers sharing a stride are merged into a single feature
    map, each cell of which carries two anchors per merged layer. Anchors
    are emitted row by row, then column by column, then per anchor.

    With the default 256x256 input and strides (8, 16, 32, 32, 32) this
    produces 32*32*2 + 16*16*2 + 8*8*6 = 2944 anchors.

    Args:
        input_size: Network input (width, height) in pixels.
        config: Layer strides and in-cell offset.

    Returns:
        The ordered anchor list.

    Raises:
        ValueError: If the input size or strides are not positive.
    """
    width, height = input_size
    if width <= 0 or height <= 0:
        raise ValueError(f"input_size must be positive, got {input_size}.")

    strides = list(config.strides)
    if not strides or any(s <= 0 for s in strides):
        raise ValueError(f"strides must be positive, got {config.strides}.")

    anchors: List[Anchor] = []
    layer = 0
    while layer < len(strides):
        stride = strides[layer]

        # Merge the run of layers with the same stride
        repeats = 0
        while layer < len(strides) and strides[layer] == stride:
            repeats += 1
            layer += 1

        fm_height = math.ceil(height / stride)
        fm_width = math.ceil(width / stride)
        per_cell = _ANCHORS_PER_LAYER * repeats

        for y in range(fm_height):
            y_center = (y + config.offset) / fm_height
            for x in range(fm_width):
                x_center = (x + config.offset) / fm_width
                anchors.extend(Anchor(x_center, y_center) for _ in range(per_cell))

    logger.debug("Generated %d anchors for input size %s", len(anchors), input_size)
    return anchors


def load_anchors(path: Union[str, Path]) -> List[Anchor]:
    """Load an anchor table from a JSON file.

    Expected schema: a list of objects with at least ``x_center`` and
    ``y_center`` keys, e.g. ``[{"w": 1, "h": 1, "x_center": 0.015625,
    "y_center": 0.015625}, ...]``. Extra keys are ignored.

    Args:
        path: JSON file path. Relative paths resolve against the project root.

    Returns:
        The ordered anchor list.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a non-empty list of anchor objects.
    """
    resolved = Path(path)
    if not resolved.is_absolute():
        resolved = get_project_root() / resolved

    if not resolved.is_file():
        raise FileNotFoundError(
            f"Anchor file not found.\n"
            f"  Expected: {resolved}\n"
            f"  Provide the file or update 'anchors.path' in your config."
        )

    with open(resolved, "r", encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, list) or not raw:
        raise ValueError(
            f"Anchor file {resolved} must contain a non-empty JSON list."
        )

    anchors: List[Anchor] = []
    for i, entry in enumerate(raw):
        try:
            anchors.append(Anchor(float(entry["x_center"]), float(entry["y_center"])))
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(
                f"Malformed anchor at index {i} in {resolved}: {entry!r}"
            ) from e

    logger.info("Loaded %d anchors from %s", len(anchors), resolved)
    return anchors


def anchors_to_array(anchors: Sequence[Union[Anchor, Mapping]]) -> np.ndarray:
    """Stack anchors into an (N, 2) float32 array of (x_center, y_center).

    Entries may be Anchor instances or mappings with x_center/y_center keys.
    """
    rows = []
    for a in anchors:
        if isinstance(a, Mapping):
            rows.append((a["x_center"], a["y_center"]))
        else:
            rows.append((a.x_center, a.y_center))
    return np.array(rows, dtype=np.float32).reshape(-1, 2)
