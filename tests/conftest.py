"""
Shared fixtures: synthetic RetinaFace output tensors.
"""

import numpy as np
import pytest

from retinaface_detector.postprocessor import output_names


def build_stride_outputs(stride, width, height, num_anchors=2, cells=()):
    """Build zeroed score/bbox/landmark tensors for one stride.

    cells: iterable of (anchor, row, col, prob, bbox_deltas, landmark_deltas)
           where the deltas may be None for all-zero regression.
    """
    score = np.zeros((1, 2 * num_anchors, height, width), dtype=np.float32)
    bbox = np.zeros((1, 4 * num_anchors, height, width), dtype=np.float32)
    landmark = np.zeros((1, 10 * num_anchors, height, width), dtype=np.float32)

    for q, i, j, prob, deltas, lm_deltas in cells:
        score[0, q, i, j] = 1.0 - prob
        score[0, q + num_anchors, i, j] = prob
        if deltas is not None:
            bbox[0, q * 4:q * 4 + 4, i, j] = deltas
        if lm_deltas is not None:
            landmark[0, q * 10:q * 10 + 10, i, j] = lm_deltas

    score_name, bbox_name, landmark_name = output_names(stride)
    return {score_name: score, bbox_name: bbox, landmark_name: landmark}


@pytest.fixture
def make_outputs():
    """Factory building a full output mapping for a network input size.

    cells_by_stride maps a stride to the cells to light up on it.
    """
    def _make(input_size=(512, 512), strides=(32, 16, 8), cells_by_stride=None):
        cells_by_stride = cells_by_stride or {}
        outputs = {}
        for stride in strides:
            outputs.update(build_stride_outputs(
                stride,
                input_size[0] // stride,
                input_size[1] // stride,
                cells=cells_by_stride.get(stride, ()),
            ))
        return outputs

    return _make
