"""
Tests for the detector module.
"""

import numpy as np
import pytest

from retinaface_detector.config import AppConfig, ModelConfig
from retinaface_detector.detector import Detector


class FakeSession:
    """Inference session returning canned outputs and recording inputs."""

    def __init__(self, outputs=None, error=None):
        self.outputs = outputs or {}
        self.error = error
        self.blobs = []

    def run(self, blob):
        self.blobs.append(blob)
        if self.error is not None:
            raise self.error
        return self.outputs


@pytest.fixture
def face_outputs(make_outputs):
    # Stride 16, anchor 1 = (-24, -24, 40, 40); row 2, col 3 -> (24, 8, 88, 72)
    return make_outputs(cells_by_stride={16: [(1, 2, 3, 0.9, None, None)]})


def _pixels(width=512, height=512):
    return np.zeros((height, width, 4), dtype=np.uint8)


def test_detect_pipeline(face_outputs):
    """Test that session outputs are decoded and rescaled."""
    session = FakeSession(face_outputs)
    detector = Detector(AppConfig(), session=session)

    faces = detector.detect(_pixels(), scale=2.0)

    assert len(faces) == 1
    assert faces[0].rect == pytest.approx((12.0, 4.0, 44.0, 36.0))
    assert faces[0].landmarks[0] == pytest.approx((28.0, 20.0))
    assert faces[0].prob == pytest.approx(0.9)

    blob = session.blobs[0]
    assert blob.shape == (1, 3, 512, 512)
    assert blob.dtype == np.float32


def test_detect_threshold_override(face_outputs):
    """Test per-call probability threshold override."""
    detector = Detector(AppConfig(), session=FakeSession(face_outputs))
    assert detector.detect(_pixels(), prob_threshold=0.95) == []


def test_detect_rejects_wrong_size():
    """Test the input-resolution precondition."""
    detector = Detector(AppConfig(), session=FakeSession())

    with pytest.raises(ValueError, match="image should be 512x512"):
        detector.detect(_pixels(256, 256))


def test_detect_input_validation():
    """Test strict pixel buffer validation."""
    session = FakeSession()
    detector = Detector(AppConfig(), session=session)

    with pytest.raises(TypeError):
        detector.detect("not pixels")

    with pytest.raises(ValueError, match="RGBA"):
        detector.detect(np.zeros((512, 512, 3), dtype=np.uint8))

    with pytest.raises(ValueError, match="scale"):
        detector.detect(_pixels(), scale=0)

    with pytest.raises(ValueError, match="nms_threshold"):
        detector.detect(_pixels(), nms_threshold=1.5)

    # Nothing reached the session
    assert session.blobs == []


def test_session_errors_propagate():
    """Test that inference failures surface unchanged."""
    error = RuntimeError("engine exploded")
    detector = Detector(AppConfig(), session=FakeSession(error=error))

    with pytest.raises(RuntimeError, match="engine exploded"):
        detector.detect(_pixels())


def test_malformed_outputs_fail(make_outputs):
    """Test that missing output tensors fail instead of returning garbage."""
    detector = Detector(AppConfig(), session=FakeSession(make_outputs(strides=(32, 16))))

    with pytest.raises(KeyError):
        detector.detect(_pixels())


def test_detect_image_maps_to_frame_coordinates(make_outputs):
    """Test that detect_image letterboxes and undoes the scale."""
    # 256x256 network input, 512x512 frame -> scale 0.5
    config = AppConfig(model=ModelConfig(input_size=(256, 256)))
    outputs = make_outputs(
        input_size=(256, 256),
        cells_by_stride={8: [(1, 1, 2, 0.9, None, None)]},
    )
    detector = Detector(config, session=FakeSession(outputs))

    faces = detector.detect_image(np.zeros((512, 512, 3), dtype=np.uint8))

    # (16, 8, 32, 24) in network space
    assert faces[0].rect == pytest.approx((32.0, 16.0, 64.0, 48.0))


def test_detect_image_rejects_grayscale():
    """Test that detect_image requires a BGR frame."""
    detector = Detector(AppConfig(), session=FakeSession())
    with pytest.raises(ValueError, match="3-channel"):
        detector.detect_image(np.zeros((100, 100), dtype=np.uint8))


def test_missing_model_file(tmp_path):
    """Test that a missing model file fails at construction."""
    config = AppConfig(model=ModelConfig(model_path=str(tmp_path / "missing.onnx")))
    with pytest.raises(FileNotFoundError, match="missing.onnx"):
        Detector(config)
