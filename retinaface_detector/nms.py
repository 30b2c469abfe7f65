"""
Greedy non-maximum suppression over face candidates.

Responsibility:
    Order candidates by descending probability and pick the subset in
    which no candidate overlaps an already-picked, more confident one by
    more than the IoU threshold.

Hard-coded:
    - Box areas are computed once from the raw rect and are NOT clamped.
      A malformed rect (x1 < x0) gets a negative area.
    - A zero union yields a non-finite IoU; NaN never exceeds the
      threshold, so such candidates are kept.

O(n^2) in the number of candidates, which is tens to low hundreds after
probability thresholding.
"""

from typing import List, Sequence

import numpy as np

from retinaface_detector.face import FaceObject, Rect


def sort_by_prob(faces: Sequence[FaceObject]) -> List[FaceObject]:
    """Return a new list sorted by prob, descending. Ties keep input order."""
    return sorted(faces, key=lambda f: f.prob, reverse=True)


def iou(a: Rect, b: Rect) -> float:
    """Intersection-over-union of two (x0, y0, x1, y1) rects."""
    inter_w = max(0.0, min(a[2], b[2]) - max(a[0], b[0]))
    inter_h = max(0.0, min(a[3], b[3]) - max(a[1], b[1]))
    inter = inter_w * inter_h
    area_a = (a[2] - a[0]) * (a[3] - a[1])
    area_b = (b[2] - b[0]) * (b[3] - b[1])
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.float64(inter) / np.float64(area_a + area_b - inter))


def nms_sorted_bboxes(faces: Sequence[FaceObject], nms_threshold: float) -> List[int]:
    """Greedy NMS over candidates already sorted by descending prob.

    Args:
        faces: Candidates, sorted by sort_by_prob().
        nms_threshold: A candidate is dropped when its IoU with any picked
                       candidate is strictly greater than this value.

    Returns:
        Indices into faces, in pick order (descending confidence).
    """
    picked: List[int] = []
    if len(faces) == 0:
        return picked

    rects = np.array([f.rect for f in faces], dtype=np.float64)
    areas = (rects[:, 2] - rects[:, 0]) * (rects[:, 3] - rects[:, 1])

    for i in range(len(faces)):
        if picked:
            kept = rects[picked]
            inter_w = np.maximum(
                0.0, np.minimum(rects[i, 2], kept[:, 2]) - np.maximum(rects[i, 0], kept[:, 0])
            )
            inter_h = np.maximum(
                0.0, np.minimum(rects[i, 3], kept[:, 3]) - np.maximum(rects[i, 1], kept[:, 1])
            )
            inter = inter_w * inter_h
            union = areas[i] + areas[picked] - inter
            with np.errstate(divide="ignore", invalid="ignore"):
                overlap = inter / union
            if np.any(overlap > nms_threshold):
                continue

        picked.append(i)

    return picked
