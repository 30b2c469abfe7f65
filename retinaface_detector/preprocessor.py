"""
Preprocessing for the RetinaFace detection pipeline.

Responsibility:
    Letterbox an arbitrary BGR frame into the network's fixed input
    resolution as an RGBA pixel buffer, and convert that buffer into the
    (1, 3, H, W) float32 tensor the network consumes.

Non-goals:
    - No frame acquisition or I/O.
    - No inference or coordinate mapping.

Hard-coded:
    - Channel order R, G, B as contiguous planes; alpha is dropped.
    - No mean subtraction or normalization: raw 0-255 pixel values.
    - Resized content is placed at the top-left of a zeroed canvas.
"""

import logging
from typing import Mapping, Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


def to_nchw(pixels: np.ndarray) -> np.ndarray:
    """Convert an RGBA (H, W, 4) pixel buffer into a (1, 3, H, W) blob.

    Args:
        pixels: RGBA image, any numeric dtype (usually uint8).

    Returns:
        A float32 array of shape (1, 3, H, W) holding the R, G and B planes.

    Raises:
        ValueError: If pixels is not an (H, W, 4) array.
    """
    if pixels is None or pixels.ndim != 3 or pixels.shape[2] != 4:
        shape = None if pixels is None else pixels.shape
        raise ValueError(f"Expected an RGBA (H, W, 4) pixel buffer, got shape {shape}.")

    rgb = pixels[:, :, :3].astype(np.float32)
    return np.ascontiguousarray(rgb.transpose(2, 0, 1))[np.newaxis]


def prepare_image(
    frame: np.ndarray,
    input_size: Tuple[int, int],
    rect: Optional[Mapping[str, int]] = None,
) -> Tuple[np.ndarray, float]:
    """Fit a BGR frame into the network input as an RGBA buffer.

    The source region (the whole frame unless rect says otherwise) is
    drawn into the frame's scaled footprint at the top-left of the
    canvas. Parts of the region outside the frame are clipped, and the
    destination shrinks and shifts by the same proportion.

    Args:
        frame: Input image as a BGR numpy array (H, W, 3).
        input_size: Network input (width, height).
        rect: Optional source region with any of 'left', 'top', 'width',
              'height'. Missing keys default to the full frame.

    Returns:
        (pixels, scale): an RGBA uint8 array of shape (height, width, 4)
        and the factor applied to the frame, to be passed to
        Detector.detect() so boxes come back in frame coordinates.

    Raises:
        ValueError: If the frame is empty or the region has a
                    non-positive width or height.
    """
    if frame is None or frame.size == 0:
        raise ValueError(
            "Cannot preprocess an empty frame. "
            "Ensure the input source is providing valid frames."
        )

    net_w, net_h = input_size
    img_h, img_w = frame.shape[:2]

    region = {"left": 0, "top": 0, "width": img_w, "height": img_h}
    if rect:
        region.update({k: int(v) for k, v in rect.items()})

    src_x, src_y = region["left"], region["top"]
    src_w, src_h = region["width"], region["height"]
    if src_w <= 0 or src_h <= 0:
        raise ValueError(f"Source region {region} must have a positive width and height.")

    scale = min(net_w / img_w, net_h / img_h)
    dst_w = int(img_w * scale)
    dst_h = int(img_h * scale)

    canvas = np.zeros((net_h, net_w, 4), dtype=np.uint8)

    # Visible part of the source region
    x0, x1 = max(src_x, 0), min(src_x + src_w, img_w)
    y0, y1 = max(src_y, 0), min(src_y + src_h, img_h)
    if x1 <= x0 or y1 <= y0:
        logger.debug("Source region %s lies outside the %dx%d frame", region, img_w, img_h)
        return canvas, scale

    fx = dst_w / src_w
    fy = dst_h / src_h
    out_x0 = min(int(round((x0 - src_x) * fx)), net_w)
    out_x1 = min(int(round((x1 - src_x) * fx)), net_w)
    out_y0 = min(int(round((y0 - src_y) * fy)), net_h)
    out_y1 = min(int(round((y1 - src_y) * fy)), net_h)

    if out_x1 > out_x0 and out_y1 > out_y0:
        resized = cv2.resize(
            frame[y0:y1, x0:x1],
            (out_x1 - out_x0, out_y1 - out_y0),
            interpolation=cv2.INTER_LINEAR,
        )
        canvas[out_y0:out_y1, out_x0:out_x1] = cv2.cvtColor(resized, cv2.COLOR_BGR2RGBA)

    return canvas, scale
