"""
RetinaFace Detector — decodes RetinaFace network outputs into faces with
five landmarks each.

Public API:
    - Detector: The single entry point for face detection.
    - FaceObject: Data transfer object representing a detected face.

Usage:
    from retinaface_detector import Detector, FaceObject

    detector = Detector()
    faces = detector.detect_image(frame)
"""

from retinaface_detector.detector import Detector
from retinaface_detector.face import FaceObject

__all__ = ["Detector", "FaceObject"]
