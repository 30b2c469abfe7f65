"""
Proposal decoding for one feature-map stride.

Responsibility:
    Walk a stride's score / bbox / landmark tensors over the spatial grid,
    keep cells whose face probability passes the threshold, and regress
    each kept cell's anchor into a FaceObject in network-input pixels.

Non-goals:
    - No sorting or suppression (see nms).
    - No rescaling to original-image space (see postprocessor).

Hard-coded:
    - Channel-major tensor layout (1, C, H, W).
    - Score channels are [background x num_anchors, face x num_anchors];
      the face probability of anchor q lives in channel q + num_anchors.
    - Anchor q owns bbox channels q*4 .. q*4+3 (dx, dy, dw, dh) and
      landmark channels q*10 .. q*10+9 (five x, y pairs).
"""

from typing import List

import numpy as np

from retinaface_detector.face import FaceObject

_SCORE_CHANNELS = 2
_BBOX_CHANNELS = 4
_LANDMARK_CHANNELS = 10


def _as_planes(
    tensor: np.ndarray,
    name: str,
    channels_per_anchor: int,
    num_anchors: int,
    width: int,
    height: int,
) -> np.ndarray:
    """Return a (channels, height, width) view of a flat-compatible tensor.

    Raises:
        ValueError: If the element count does not match the expected layout.
    """
    arr = np.asarray(tensor)
    channels = num_anchors * channels_per_anchor
    expected = channels * width * height
    if arr.size != expected:
        raise ValueError(
            f"Malformed {name} tensor: got {arr.size} values with shape "
            f"{arr.shape}, expected {num_anchors} anchors x "
            f"{channels_per_anchor} channels x {width}x{height} = {expected}."
        )
    return arr.reshape(channels, height, width)


def generate_proposals(
    anchors: np.ndarray,
    feat_stride: int,
    score: np.ndarray,
    bbox: np.ndarray,
    landmark: np.ndarray,
    prob_threshold: float,
) -> List[FaceObject]:
    """Decode one stride's network outputs into face candidates.

    Args:
        anchors: (num_anchors, 4) anchor template from generate_anchors().
        feat_stride: Pixel step between adjacent grid cells.
        score: Classification tensor, 2 channels per anchor.
        bbox: Box regression tensor, 4 channels per anchor. Its last two
              dimensions define the grid height and width.
        landmark: Landmark regression tensor, 10 channels per anchor.
        prob_threshold: Cells with face probability below this are dropped.

    Returns:
        FaceObjects in anchor order, then row-major grid order.

    Raises:
        ValueError: If any tensor's size does not match the grid layout.
    """
    bbox_shape = np.shape(bbox)
    if len(bbox_shape) < 2:
        raise ValueError(
            f"Malformed bbox tensor: expected (..., H, W) layout, got shape {bbox_shape}."
        )
    height, width = int(bbox_shape[-2]), int(bbox_shape[-1])
    num_anchors = len(anchors)

    score_planes = _as_planes(score, "score", _SCORE_CHANNELS, num_anchors, width, height)
    bbox_planes = _as_planes(bbox, "bbox", _BBOX_CHANNELS, num_anchors, width, height)
    landmark_planes = _as_planes(
        landmark, "landmark", _LANDMARK_CHANNELS, num_anchors, width, height
    )

    faces: List[FaceObject] = []

    for q in range(num_anchors):
        ax0, ay0, ax1, ay1 = (float(v) for v in anchors[q])
        anchor_w = ax1 - ax0
        anchor_h = ay1 - ay0

        # Threshold comparison happens in float64
        prob_plane = score_planes[q + num_anchors].astype(np.float64)
        rows, cols = np.nonzero(prob_plane >= prob_threshold)
        if rows.size == 0:
            continue

        probs = prob_plane[rows, cols]

        # Anchor template stepped across the grid
        cx = ax0 + cols * feat_stride + anchor_w * 0.5
        cy = ay0 + rows * feat_stride + anchor_h * 0.5

        dx, dy, dw, dh = bbox_planes[q * 4:q * 4 + 4, rows, cols].astype(np.float64)

        pb_cx = cx + anchor_w * dx
        pb_cy = cy + anchor_h * dy
        pb_w = anchor_w * np.exp(dw)
        pb_h = anchor_h * np.exp(dh)

        x0 = pb_cx - pb_w * 0.5
        y0 = pb_cy - pb_h * 0.5
        x1 = pb_cx + pb_w * 0.5
        y1 = pb_cy + pb_h * 0.5

        # Landmarks regress against the anchor extent plus one
        lm = landmark_planes[q * 10:q * 10 + 10, rows, cols].astype(np.float64)
        lm_x = cx + (anchor_w + 1) * lm[0::2]
        lm_y = cy + (anchor_h + 1) * lm[1::2]

        for k in range(rows.size):
            faces.append(FaceObject(
                rect=(float(x0[k]), float(y0[k]), float(x1[k]), float(y1[k])),
                landmarks=tuple(
                    (float(lm_x[p, k]), float(lm_y[p, k])) for p in range(5)
                ),
                prob=float(probs[k]),
            ))

    return faces
