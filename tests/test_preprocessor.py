"""
Tests for the preprocessing module.
"""

import numpy as np
import pytest

from retinaface_detector.preprocessor import prepare_image, to_nchw


def test_to_nchw_layout():
    """Test RGBA → (1, 3, H, W) float32 with alpha dropped."""
    pixels = np.zeros((2, 3, 4), dtype=np.uint8)
    pixels[..., 0] = 10
    pixels[..., 1] = 20
    pixels[..., 2] = 30
    pixels[..., 3] = 255
    pixels[1, 2] = (1, 2, 3, 4)

    blob = to_nchw(pixels)

    assert blob.shape == (1, 3, 2, 3)
    assert blob.dtype == np.float32
    assert blob[0, 0, 0, 0] == 10
    assert blob[0, 1, 0, 0] == 20
    assert blob[0, 2, 0, 0] == 30
    assert tuple(blob[0, :, 1, 2]) == (1, 2, 3)
    # Raw pixel values, no normalization
    assert blob.max() == 30


def test_to_nchw_rejects_rgb():
    """Test that a 3-channel buffer is rejected."""
    with pytest.raises(ValueError, match="RGBA"):
        to_nchw(np.zeros((4, 4, 3), dtype=np.uint8))


def test_prepare_image_letterbox():
    """Test scale and top-left placement for a wide frame."""
    frame = np.zeros((100, 200, 3), dtype=np.uint8)
    frame[:, :, 2] = 255  # solid red in BGR

    pixels, scale = prepare_image(frame, (512, 512))

    assert pixels.shape == (512, 512, 4)
    assert pixels.dtype == np.uint8
    assert scale == pytest.approx(2.56)
    # Content occupies the top 256 rows, red in RGBA
    assert tuple(pixels[10, 10, :3]) == (255, 0, 0)
    assert pixels[300, 10].sum() == 0


def test_prepare_image_downscale():
    """Test that large frames are shrunk to fit."""
    frame = np.full((1024, 768, 3), 7, dtype=np.uint8)

    pixels, scale = prepare_image(frame, (512, 512))

    assert scale == pytest.approx(0.5)
    assert pixels[511, 383, 0] == 7
    assert pixels[0, 384].sum() == 0


def test_prepare_image_crop_rect():
    """Test that a region running past the frame is clipped, not stretched."""
    frame = np.zeros((100, 100, 3), dtype=np.uint8)
    frame[50:, 50:] = 200

    # Region (50, 50, 100, 100): only its top-left quarter lies in the frame
    pixels, scale = prepare_image(frame, (100, 100), rect={"left": 50, "top": 50})

    assert scale == pytest.approx(1.0)
    assert pixels[:50, :50, :3].min() == 200
    assert pixels[75, 75].sum() == 0
    assert pixels[10, 75].sum() == 0


def test_prepare_image_negative_offset():
    """Test that a region starting left of the frame shifts the drawing right."""
    frame = np.zeros((100, 100, 3), dtype=np.uint8)
    frame[:, :10] = 90

    # 20px wide region, left half outside the frame, drawn 100px wide
    pixels, _ = prepare_image(frame, (100, 100), rect={"left": -10, "width": 20})

    assert pixels[:, :50].sum() == 0
    assert pixels[:, 50:, :3].min() == 90


def test_prepare_image_region_outside_frame():
    """Test that a fully off-frame region yields an empty canvas."""
    frame = np.full((100, 100, 3), 50, dtype=np.uint8)

    pixels, _ = prepare_image(frame, (100, 100), rect={"left": 200})

    assert pixels.sum() == 0


def test_prepare_image_rejects_degenerate_region():
    """Test that a zero-width region is rejected."""
    with pytest.raises(ValueError, match="positive width"):
        prepare_image(np.zeros((10, 10, 3), dtype=np.uint8), (10, 10), rect={"width": 0})


def test_prepare_image_empty_frame():
    """Test that an empty frame is rejected."""
    with pytest.raises(ValueError):
        prepare_image(np.array([]), (512, 512))
    with pytest.raises(ValueError):
        prepare_image(None, (512, 512))
