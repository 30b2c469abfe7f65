"""
Serialization of detection results.

Responsibility:
    Export faces to structured file formats (JSON, CSV) for downstream
    consumption or offline analysis.

Non-goals:
    - No rendering, display, or detection logic.
    - No streaming output. Writes complete files at the end of a run.
"""

import csv
import json
import logging
from pathlib import Path
from typing import Dict, List

from retinaface_detector.face import FaceObject

logger = logging.getLogger(__name__)

_NUM_LANDMARKS = 5


def save_json(
    faces_by_image: Dict[str, List[FaceObject]],
    output_path: str,
) -> None:
    """Export all faces to a JSON file.

    Output schema:
        {
            "images": [
                {
                    "image": "a.jpg",
                    "faces": [
                        {"rect": [x0, y0, x1, y1], "landmarks": [[x, y], ...], "prob": ...}
                    ]
                }
            ],
            "total_images": N,
            "total_faces": M
        }

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    images = []
    total_faces = 0

    for image_id in sorted(faces_by_image):
        faces = faces_by_image[image_id]
        total_faces += len(faces)
        images.append({
            "image": image_id,
            "faces": [f.to_dict() for f in faces],
        })

    payload = {
        "images": images,
        "total_images": len(images),
        "total_faces": total_faces,
    }

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    logger.info(
        "JSON output saved: %s (%d images, %d faces)",
        output_path, len(images), total_faces,
    )


def save_csv(
    faces_by_image: Dict[str, List[FaceObject]],
    output_path: str,
) -> None:
    """Export all faces to a CSV file, one row per face.

    Columns: image, x0, y0, x1, y1, prob, lm0_x, lm0_y, ..., lm4_x, lm4_y

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    landmark_fields = []
    for k in range(_NUM_LANDMARKS):
        landmark_fields += [f"lm{k}_x", f"lm{k}_y"]
    fieldnames = ["image", "x0", "y0", "x1", "y1", "prob"] + landmark_fields

    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()

        total = 0
        for image_id in sorted(faces_by_image):
            for face in faces_by_image[image_id]:
                row = {"image": image_id, "prob": round(face.prob, 4)}
                row.update(zip(("x0", "y0", "x1", "y1"), face.rect))
                for k, (x, y) in enumerate(face.landmarks):
                    row[f"lm{k}_x"] = x
                    row[f"lm{k}_y"] = y
                writer.writerow(row)
                total += 1

    logger.info("CSV output saved: %s (%d rows)", output_path, total)


def _ensure_parent_dir(path: str) -> None:
    """Create parent directories if they don't exist."""
    parent = Path(path).parent
    parent.mkdir(parents=True, exist_ok=True)
