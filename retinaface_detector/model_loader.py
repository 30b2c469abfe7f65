"""
Model loading for the RetinaFace detector.

Responsibility:
    Load the ONNX network from disk with OpenCV DNN, configure the compute
    backend, and wrap it in a session that returns named output tensors.

Non-goals:
    - No preprocessing, decoding, or frame-level logic.
    - No automatic model downloading.
    - No fallback to alternative models.

Failure behavior:
    - A missing model file raises FileNotFoundError with the exact
      missing path and expected location.
    - Incompatible backend raises RuntimeError.
    - Errors raised by the network during inference propagate unchanged.
"""

import logging
from pathlib import Path
from typing import Dict, Sequence

import cv2
import numpy as np

from retinaface_detector.config import ModelConfig, get_project_root

logger = logging.getLogger(__name__)


class DnnSession:
    """Inference session over a cv2.dnn.Net.

    Feeds one (1, 3, H, W) blob and returns the requested outputs keyed
    by name, which is the interface Detector expects from any session.
    """

    def __init__(self, net: cv2.dnn.Net, input_name: str, output_names: Sequence[str]) -> None:
        self._net = net
        self._input_name = input_name
        self._output_names = list(output_names)

    @property
    def output_names(self) -> Sequence[str]:
        return tuple(self._output_names)

    def run(self, blob: np.ndarray) -> Dict[str, np.ndarray]:
        """Run one forward pass and return {output name: tensor}."""
        self._net.setInput(blob, self._input_name)
        outputs = self._net.forward(self._output_names)
        return dict(zip(self._output_names, outputs))


def load_model(config: ModelConfig, output_names: Sequence[str]) -> DnnSession:
    """Load and configure the RetinaFace ONNX model.

    Args:
        config: ModelConfig containing the file path and backend preference.
        output_names: Names of the output tensors to fetch on every run.

    Returns:
        A DnnSession ready for inference.

    Raises:
        FileNotFoundError: If the model file does not exist.
        RuntimeError: If the requested backend is unavailable.
    """
    model_path = Path(config.model_path)

    # Resolve relative paths against project root
    if not model_path.is_absolute():
        model_path = get_project_root() / model_path

    if not model_path.is_file():
        raise FileNotFoundError(
            f"Model file not found.\n"
            f"  Expected: {model_path}\n"
            f"  Place the RetinaFace .onnx file at the path above,\n"
            f"  or update 'model.model_path' in your config."
        )

    logger.info("Loading model: %s", model_path)
    net = cv2.dnn.readNetFromONNX(str(model_path))

    # Configure backend and target
    if config.backend == "cuda":
        logger.info("Setting CUDA backend and target.")
        try:
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)
        except cv2.error as e:
            raise RuntimeError(
                f"Failed to set CUDA backend. Ensure OpenCV was built with "
                f"CUDA support (opencv-contrib-python or custom build).\n"
                f"  OpenCV error: {e}"
            ) from e
    else:
        logger.info("Using CPU backend.")
        net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
        net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)

    logger.info("Model loaded successfully.")
    return DnnSession(net, config.input_name, output_names)
