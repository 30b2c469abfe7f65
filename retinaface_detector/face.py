"""
Face data transfer object.

This module defines FaceObject, the candidate type produced by the
proposal decoder and the output type returned by Detector.detect().
It is a frozen container: the rescale step builds new instances rather
than editing existing ones.

Non-goals:
    - No rendering logic.
    - No file I/O.
    - No coordinate transformation methods (that belongs in postprocessor).
"""

from dataclasses import dataclass
from typing import Tuple

Rect = Tuple[float, float, float, float]
Point = Tuple[float, float]


@dataclass(frozen=True)
class FaceObject:
    """A detected face with bounding box, five landmarks and probability.

    Attributes:
        rect: (x0, y0, x1, y1) with (x0, y0) top-left and (x1, y1)
              bottom-right. Regression output may produce x1 < x0.
        landmarks: Five (x, y) points: eyes, nose tip, mouth corners.
        prob: Face probability from the classification head.
    """

    rect: Rect
    landmarks: Tuple[Point, ...]
    prob: float

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "rect": [float(v) for v in self.rect],
            "landmarks": [[float(x), float(y)] for x, y in self.landmarks],
            "prob": round(float(self.prob), 4),
        }

    @property
    def width(self) -> float:
        """Box width in pixels (negative for malformed rects)."""
        return self.rect[2] - self.rect[0]

    @property
    def height(self) -> float:
        """Box height in pixels (negative for malformed rects)."""
        return self.rect[3] - self.rect[1]

    @property
    def area(self) -> float:
        """Signed box area. Not clamped."""
        return self.width * self.height
