"""
Tests for model loading and the DNN session wrapper.
"""

import numpy as np
import pytest

from retinaface_detector.config import ModelConfig
from retinaface_detector.model_loader import DnnSession, load_model


class FakeNet:
    def __init__(self):
        self.inputs = []

    def setInput(self, blob, name):
        self.inputs.append((blob, name))

    def forward(self, names):
        return [np.full((1, 1), i, dtype=np.float32) for i, _ in enumerate(names)]


def test_session_returns_outputs_by_name():
    """Test that run() keys the forward results by output name."""
    net = FakeNet()
    session = DnnSession(net, "data", ["a", "b"])
    blob = np.zeros((1, 3, 4, 4), dtype=np.float32)

    outputs = session.run(blob)

    assert set(outputs) == {"a", "b"}
    assert outputs["b"][0, 0] == 1
    assert net.inputs[0][1] == "data"
    assert session.output_names == ("a", "b")


def test_load_model_missing_file(tmp_path):
    """Test the actionable error for a missing model file."""
    config = ModelConfig(model_path=str(tmp_path / "retinaface.onnx"))
    with pytest.raises(FileNotFoundError, match="model_path"):
        load_model(config, ["x"])
