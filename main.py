"""
RetinaFace Detector CLI Entrypoint.

Responsibility:
    Parse command-line arguments, configure the application, run the
    detector over every input image, and write the results file.

Usage:
    python main.py --source photo.jpg
    python main.py --source images/ --format csv
    python main.py --config my_config.yaml --prob-threshold 0.9

This module is the executable entry point. It should not be imported
by other modules.
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Dict, List

# Configure logging before importing local modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")

import cv2

from retinaface_detector.config import apply_overrides, get_project_root, load_config
from retinaface_detector.detector import Detector
from retinaface_detector.face import FaceObject
from retinaface_detector.serializer import save_csv, save_json

# Image extensions recognized as inputs
_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp"}


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="RetinaFace face and landmark detection",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--source",
        type=str,
        help="Input source: path to an image file or a directory of images.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--prob-threshold",
        type=float,
        help="Face probability threshold (0.0 - 1.0). Overrides config.",
    )
    parser.add_argument(
        "--nms-threshold",
        type=float,
        help="IoU threshold for non-maximum suppression (0.0 - 1.0). Overrides config.",
    )
    parser.add_argument(
        "--backend",
        type=str,
        choices=["cpu", "cuda"],
        help="Compute backend preference. Overrides config.",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["json", "csv"],
        help="Result file format. Overrides config.",
    )
    parser.add_argument(
        "--output-path",
        type=str,
        help="Directory for the result file. Overrides config.",
    )

    return parser.parse_args()


def collect_images(source: str) -> List[Path]:
    """Resolve the source into a sorted list of image paths.

    Raises:
        FileNotFoundError: If the source does not exist.
        ValueError: If the source holds no recognized images.
    """
    path = Path(source)
    if path.is_file():
        if path.suffix.lower() not in _IMAGE_EXTENSIONS:
            raise ValueError(
                f"Unrecognized file extension: '{path.suffix}' for source '{source}'. "
                f"Supported images: {_IMAGE_EXTENSIONS}."
            )
        return [path]

    if path.is_dir():
        images = sorted(p for p in path.iterdir() if p.suffix.lower() in _IMAGE_EXTENSIONS)
        if not images:
            raise ValueError(
                f"No image files found in directory: '{source}'. "
                f"Supported extensions: {_IMAGE_EXTENSIONS}."
            )
        logger.info("Found %d images in directory: %s", len(images), source)
        return images

    raise FileNotFoundError(
        f"Input source not found: '{source}'. "
        f"Provide a valid image file or directory."
    )


def main() -> int:
    """Main execution loop."""
    args = parse_args()

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = load_config(args.config)

        # Apply CLI overrides
        config = apply_overrides(config, {
            "input": {"source": args.source},
            "detection": {
                "prob_threshold": args.prob_threshold,
                "nms_threshold": args.nms_threshold,
            },
            "model": {"backend": args.backend},
            "output": {"format": args.format, "save_path": args.output_path},
        })

        logger.info("Configuration active for this run.")

    except Exception as e:
        logger.error("Configuration error: %s", e)
        return 1

    # 2. Initialize Components
    try:
        detector = Detector(config)
        images = collect_images(config.input.source)

    except (FileNotFoundError, ValueError, RuntimeError) as e:
        logger.error("Initialization failed: %s", e)
        return 1
    except Exception as e:
        logger.exception("Unexpected initialization error: %s", e)
        return 1

    # 3. Processing Loop
    results: Dict[str, List[FaceObject]] = {}
    start_time = time.perf_counter()

    try:
        for path in images:
            frame = cv2.imread(str(path))
            if frame is None:
                logger.warning("Skipping unreadable image: %s", path)
                continue

            faces = detector.detect_image(frame)
            results[path.name] = faces
            logger.info("%s: %d faces", path.name, len(faces))

    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
    except Exception as e:
        logger.exception("Runtime error during processing: %s", e)
        return 1

    # 4. Output
    save_dir = Path(config.output.save_path)
    if not save_dir.is_absolute():
        save_dir = get_project_root() / save_dir

    if config.output.format == "csv":
        save_csv(results, str(save_dir / "faces.csv"))
    else:
        save_json(results, str(save_dir / "faces.json"))

    elapsed = time.perf_counter() - start_time
    logger.info(
        "Processing finished. Images: %d. Faces: %d. Elapsed: %.2fs.",
        len(results), sum(len(f) for f in results.values()), elapsed,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
