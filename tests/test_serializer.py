"""
Tests for result serialization.
"""

import csv
import json

from retinaface_detector.face import FaceObject
from retinaface_detector.serializer import save_csv, save_json


def _results():
    face = FaceObject(
        rect=(1.0, 2.0, 30.0, 40.0),
        landmarks=((5.0, 6.0), (7.0, 8.0), (9.0, 10.0), (11.0, 12.0), (13.0, 14.0)),
        prob=0.912345,
    )
    return {"b.jpg": [face, face], "a.jpg": []}


def test_save_json(tmp_path):
    """Test JSON payload layout and totals."""
    path = tmp_path / "out" / "faces.json"

    save_json(_results(), str(path))

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["total_images"] == 2
    assert payload["total_faces"] == 2
    assert [img["image"] for img in payload["images"]] == ["a.jpg", "b.jpg"]
    face = payload["images"][1]["faces"][0]
    assert face["rect"] == [1.0, 2.0, 30.0, 40.0]
    assert face["landmarks"][4] == [13.0, 14.0]
    assert face["prob"] == 0.9123


def test_save_csv(tmp_path):
    """Test one CSV row per face with flattened landmarks."""
    path = tmp_path / "faces.csv"

    save_csv(_results(), str(path))

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))

    assert len(rows) == 2
    row = rows[0]
    assert row["image"] == "b.jpg"
    assert float(row["x1"]) == 30.0
    assert float(row["lm2_x"]) == 9.0
    assert float(row["lm4_y"]) == 14.0
    assert float(row["prob"]) == 0.9123
