"""
Detector — the single public API for RetinaFace face detection.

Public contract:
    Detector.detect(pixels, scale=1.0, prob_threshold=None, nms_threshold=None)
        -> list[FaceObject]

Constraints:
    - Input to detect() is an RGBA (H, W, 4) array whose size equals the
      configured network input resolution.
    - Thread-safety is not guaranteed (single-threaded design).
    - Errors raised by the inference session propagate unchanged; there
      are no retries and no partial results.

Non-goals:
    - No file reading, camera access, or I/O of any kind.
    - No visualization or output writing.
    - No tracking or temporal state.
"""

import logging
from typing import List, Mapping, Optional

import numpy as np

from retinaface_detector.config import AppConfig, load_config
from retinaface_detector.face import FaceObject
from retinaface_detector.model_loader import load_model
from retinaface_detector.postprocessor import postprocess, required_outputs
from retinaface_detector.preprocessor import prepare_image, to_nchw

logger = logging.getLogger(__name__)


class Detector:
    """RetinaFace detector: inference session plus anchor decoding.

    Usage:
        detector = Detector()                          # Safe defaults
        detector = Detector(config=my_config)           # Custom config
        detector = Detector(session=my_session)         # Any object with run(blob)
        faces = detector.detect(rgba, scale)            # Pre-letterboxed buffer
        faces = detector.detect_image(frame)            # BGR frame of any size

    The constructor loads the model once; detect() calls reuse it.
    """

    def __init__(self, config: Optional[AppConfig] = None, session=None) -> None:
        """Initialize the detector and load the model.

        Args:
            config: Application configuration. If None, safe defaults
                    are used (no config file required).
            session: Optional inference session exposing
                     run(blob) -> Mapping[str, np.ndarray]. When omitted
                     the ONNX model from config.model is loaded.

        Raises:
            FileNotFoundError: If the model file is missing.
            RuntimeError: If the requested backend is unavailable.
            ValueError: If configuration values are invalid.
        """
        if config is None:
            config = load_config()

        self._config = config
        if session is None:
            session = load_model(config.model, required_outputs(config.detection.strides))
        self._session = session

        logger.info(
            "Detector initialized (input=%dx%d, prob_threshold=%.2f, nms_threshold=%.2f)",
            config.model.input_size[0],
            config.model.input_size[1],
            config.detection.prob_threshold,
            config.detection.nms_threshold,
        )

    @property
    def config(self) -> AppConfig:
        """Return the active configuration (read-only)."""
        return self._config

    @property
    def width(self) -> int:
        return self._config.model.input_size[0]

    @property
    def height(self) -> int:
        return self._config.model.input_size[1]

    def detect(
        self,
        pixels: np.ndarray,
        scale: float = 1.0,
        prob_threshold: Optional[float] = None,
        nms_threshold: Optional[float] = None,
    ) -> List[FaceObject]:
        """Detect faces in a network-sized RGBA pixel buffer.

        Args:
            pixels: RGBA array of shape (height, width, 4) matching the
                    configured input size.
            scale: Factor the original image was resized by; output
                   coordinates are divided by it.
            prob_threshold: Overrides detection.prob_threshold.
            nms_threshold: Overrides detection.nms_threshold.

        Returns:
            FaceObjects in original-image space, sorted by probability
            (descending). Empty if no faces are detected.

        Raises:
            TypeError: If pixels is not a numpy ndarray.
            ValueError: If pixels has the wrong shape or a threshold or
                        scale is out of range.
        """
        self._validate_pixels(pixels)

        detection = self._config.detection
        if prob_threshold is None:
            prob_threshold = detection.prob_threshold
        if nms_threshold is None:
            nms_threshold = detection.nms_threshold
        self._validate_thresholds(scale, prob_threshold, nms_threshold)

        blob = to_nchw(pixels)
        outputs: Mapping[str, np.ndarray] = self._session.run(blob)

        faces = postprocess(
            outputs,
            detection,
            width=self.width,
            height=self.height,
            scale=scale,
            prob_threshold=prob_threshold,
            nms_threshold=nms_threshold,
        )
        logger.debug("Detected %d faces", len(faces))
        return faces

    def detect_image(
        self,
        frame: np.ndarray,
        rect: Optional[Mapping[str, int]] = None,
        prob_threshold: Optional[float] = None,
        nms_threshold: Optional[float] = None,
    ) -> List[FaceObject]:
        """Letterbox a BGR frame of any size and detect faces in it.

        Args:
            frame: A BGR image with shape (H, W, 3), as from cv2.imread().
            rect: Optional crop region, see preprocessor.prepare_image().

        Returns:
            FaceObjects in frame coordinates.
        """
        self._validate_frame(frame)
        pixels, scale = prepare_image(frame, self._config.model.input_size, rect)
        return self.detect(pixels, scale, prob_threshold, nms_threshold)

    def _validate_pixels(self, pixels: np.ndarray) -> None:
        """Validate that the pixel buffer matches the network input.

        Raises:
            TypeError: If pixels is not a numpy ndarray.
            ValueError: If pixels is not (height, width, 4).
        """
        if not isinstance(pixels, np.ndarray):
            raise TypeError(
                f"Expected pixels to be a numpy ndarray, got {type(pixels).__name__}."
            )

        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(
                f"Expected an RGBA pixel buffer (H, W, 4), got shape {pixels.shape}."
            )

        h, w = pixels.shape[:2]
        if w != self.width or h != self.height:
            raise ValueError(
                f"image should be {self.width}x{self.height}, got {w}x{h}. "
                f"Use detect_image() or preprocessor.prepare_image() to letterbox it."
            )

    @staticmethod
    def _validate_thresholds(scale: float, prob_threshold: float, nms_threshold: float) -> None:
        if scale <= 0:
            raise ValueError(f"scale must be positive, got {scale}.")
        if not (0.0 <= prob_threshold <= 1.0):
            raise ValueError(f"prob_threshold must be in [0.0, 1.0], got {prob_threshold}.")
        if not (0.0 <= nms_threshold <= 1.0):
            raise ValueError(f"nms_threshold must be in [0.0, 1.0], got {nms_threshold}.")

    @staticmethod
    def _validate_frame(frame: np.ndarray) -> None:
        """Validate that the input frame is a BGR image.

        Raises:
            TypeError: If frame is not a numpy ndarray.
            ValueError: If frame is empty or has wrong dimensions.
        """
        if not isinstance(frame, np.ndarray):
            raise TypeError(
                f"Expected frame to be a numpy ndarray, "
                f"got {type(frame).__name__}. "
                f"Use cv2.imread() to obtain frames."
            )

        if frame.size == 0:
            raise ValueError("Frame is empty (zero size).")

        if frame.ndim != 3 or frame.shape[2] != 3:
            raise ValueError(
                f"Expected a 3-channel BGR frame (H, W, 3), got shape {frame.shape}. "
                f"Grayscale images must be converted to BGR first."
            )
