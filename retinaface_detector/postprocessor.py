"""
Postprocessing for the RetinaFace detection pipeline.

Responsibility:
    Turn the network's named per-stride output tensors into the final
    list of faces: decode every configured stride, sort by probability,
    suppress overlaps, and map the survivors back to original-image
    coordinates.

Non-goals:
    - No drawing, saving, or display logic.
    - No model loading or inference.

Hard-coded:
    - Output tensor names follow the pattern
      face_rpn_{cls_prob_reshape,bbox_pred,landmark_pred}_stride{N}.
"""

import logging
from typing import List, Mapping, Sequence, Tuple

import numpy as np

from retinaface_detector.anchors import generate_anchors
from retinaface_detector.config import DetectionConfig, StrideConfig
from retinaface_detector.face import FaceObject
from retinaface_detector.nms import nms_sorted_bboxes, sort_by_prob
from retinaface_detector.proposals import generate_proposals

logger = logging.getLogger(__name__)


def output_names(stride: int) -> Tuple[str, str, str]:
    """Return the (score, bbox, landmark) output names for a stride."""
    return (
        f"face_rpn_cls_prob_reshape_stride{stride}",
        f"face_rpn_bbox_pred_stride{stride}",
        f"face_rpn_landmark_pred_stride{stride}",
    )


def required_outputs(strides: Sequence[StrideConfig]) -> List[str]:
    """Return every output name the stride table needs, in decode order."""
    names: List[str] = []
    for entry in strides:
        names.extend(output_names(entry.stride))
    return names


def process_stride(
    outputs: Mapping[str, np.ndarray],
    stride_config: StrideConfig,
    base_size: float,
    ratios: Sequence[float],
    prob_threshold: float,
) -> List[FaceObject]:
    """Decode the candidates of a single stride.

    Raises:
        KeyError: If one of the stride's output tensors is missing.
        ValueError: If a tensor does not match the expected layout.
    """
    tensors = []
    for name in output_names(stride_config.stride):
        if name not in outputs:
            raise KeyError(
                f"Inference output '{name}' is missing. "
                f"Available outputs: {sorted(outputs)}."
            )
        tensors.append(outputs[name])

    score, bbox, landmark = tensors
    anchors = generate_anchors(base_size, ratios, stride_config.scales)

    return generate_proposals(
        anchors, stride_config.stride, score, bbox, landmark, prob_threshold
    )


def decode_outputs(
    outputs: Mapping[str, np.ndarray],
    strides: Sequence[StrideConfig],
    base_size: float,
    ratios: Sequence[float],
    prob_threshold: float,
) -> List[FaceObject]:
    """Decode all strides and concatenate them in stride-table order."""
    proposals: List[FaceObject] = []
    for entry in strides:
        found = process_stride(outputs, entry, base_size, ratios, prob_threshold)
        logger.debug("Stride %d: %d candidates", entry.stride, len(found))
        proposals.extend(found)
    return proposals


def _clamp(value: float, upper: float) -> float:
    return max(min(value, upper), 0.0)


def rescale_faces(
    faces: Sequence[FaceObject],
    scale: float,
    width: int,
    height: int,
) -> List[FaceObject]:
    """Map faces from network-input pixels back to original-image pixels.

    Rect coordinates are clamped to [0, width-1] x [0, height-1] and then
    divided by scale. Landmarks are divided by scale without clamping.

    Raises:
        ValueError: If scale is not positive.
    """
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}.")

    rescaled: List[FaceObject] = []
    for face in faces:
        x0, y0, x1, y1 = face.rect
        rescaled.append(FaceObject(
            rect=(
                _clamp(x0, width - 1) / scale,
                _clamp(y0, height - 1) / scale,
                _clamp(x1, width - 1) / scale,
                _clamp(y1, height - 1) / scale,
            ),
            landmarks=tuple((x / scale, y / scale) for x, y in face.landmarks),
            prob=face.prob,
        ))
    return rescaled


def postprocess(
    outputs: Mapping[str, np.ndarray],
    config: DetectionConfig,
    width: int,
    height: int,
    scale: float = 1.0,
    prob_threshold: float = 0.75,
    nms_threshold: float = 0.5,
) -> List[FaceObject]:
    """Run the full decode → sort → suppress → rescale pipeline.

    Args:
        outputs: Mapping of output name to tensor, as returned by the session.
        config: DetectionConfig providing anchor geometry and strides.
        width: Network input width in pixels.
        height: Network input height in pixels.
        scale: Resize factor applied to the original image.
        prob_threshold: Minimum face probability for a candidate.
        nms_threshold: IoU threshold for suppression.

    Returns:
        List of FaceObjects in original-image space, sorted by
        probability (descending). Empty if nothing passes the threshold.
    """
    proposals = decode_outputs(
        outputs, config.strides, config.base_size, config.ratios, prob_threshold
    )
    proposals = sort_by_prob(proposals)
    picked = nms_sorted_bboxes(proposals, nms_threshold)

    logger.debug("NMS kept %d of %d candidates", len(picked), len(proposals))

    return rescale_faces([proposals[i] for i in picked], scale, width, height)
