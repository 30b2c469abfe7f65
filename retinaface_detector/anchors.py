"""
Anchor generation for the RetinaFace detection head.

Anchors are generated once per stride, centered on (base_size/2,
base_size/2), and reused by the proposal decoder as a template stepped
across the feature-map grid.

Hard-coded:
    - Anchor order is ratio-major: index = ratio_index * len(scales) + scale_index.
      The decoder uses the same index to find each anchor's channel block.
"""

import math
from typing import Sequence

import numpy as np


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def generate_anchors(
    base_size: float,
    ratios: Sequence[float],
    scales: Sequence[float],
) -> np.ndarray:
    """Generate the reference anchors for one stride.

    Args:
        base_size: Base anchor size in pixels.
        ratios: Aspect ratios (height / width).
        scales: Anchor scales applied to the base size.

    Returns:
        A float64 array of shape (len(ratios) * len(scales), 4) where each
        row is (x0, y0, x1, y1).

    Raises:
        ValueError: If ratios or scales is empty or holds non-positive values.
    """
    if len(ratios) == 0 or any(r <= 0 for r in ratios):
        raise ValueError(f"ratios must be non-empty and positive, got {list(ratios)}.")
    if len(scales) == 0 or any(s <= 0 for s in scales):
        raise ValueError(f"scales must be non-empty and positive, got {list(scales)}.")

    num_scales = len(scales)
    anchors = np.empty((len(ratios) * num_scales, 4), dtype=np.float64)

    cx = base_size * 0.5
    cy = base_size * 0.5

    for i, ar in enumerate(ratios):
        r_w = _round_half_up(base_size / math.sqrt(ar))
        r_h = _round_half_up(r_w * ar)

        for j, scale in enumerate(scales):
            rs_w = r_w * scale * 0.5
            rs_h = r_h * scale * 0.5
            anchors[i * num_scales + j] = (cx - rs_w, cy - rs_h, cx + rs_w, cy + rs_h)

    return anchors
