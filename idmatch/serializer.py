"""
Serialization of comparison results.

Responsibility:
    Export a ComparisonResult to a JSON file and write the extracted
    face crops as JPEG images for offline review.

Non-goals:
    - No rendering, display, or comparison logic.
"""

import json
import logging
from pathlib import Path
from typing import List

import cv2

from idmatch.result import ComparisonResult

logger = logging.getLogger(__name__)


def save_json(result: ComparisonResult, output_path: str,
              include_faces: bool = False) -> None:
    """Export a comparison result to a JSON file.

    Output schema:
        {
            "status": "match" | "no-match" | "error",
            "confidence": 0.8123,
            "error": null,
            "error_code": null,
            "id_face": {"box": {...}, "region": {...}},
            "profile_face": {"box": {...}, "region": {...}}
        }

    Args:
        result: The comparison result to export.
        output_path: Path to the output JSON file.
        include_faces: Embed both crops as JPEG data URLs.

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(result.to_dict(include_faces=include_faces), f, indent=2)

    logger.info("JSON output saved: %s (status=%s)", output_path, result.status.value)


def save_faces(result: ComparisonResult, output_dir: str) -> List[Path]:
    """Write the extracted faces of a result as JPEG files.

    Files are named id_face.jpg and profile_face.jpg. Faces missing from
    the result (for example after an error) are skipped.

    Returns:
        Paths of the files written.

    Raises:
        OSError: If a file cannot be written.
    """
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)

    written = []
    for name, face in (("id_face", result.id_face), ("profile_face", result.profile_face)):
        if face is None:
            continue
        path = directory / f"{name}.jpg"
        if not cv2.imwrite(str(path), face.image.to_bgr()):
            raise OSError(f"Failed to write face image: {path}")
        written.append(path)

    logger.info("Saved %d face image(s) to %s", len(written), directory)
    return written


def _ensure_parent_dir(path: str) -> None:
    """Create parent directories if they don't exist."""
    parent = Path(path).parent
    parent.mkdir(parents=True, exist_ok=True)
