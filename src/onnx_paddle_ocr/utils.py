"""Utility functions for the OCR pipeline."""

from pathlib import Path
from typing import Mapping, Optional, Sequence

import cv2
import numpy as np
from loguru import logger

from .types import Box


def first_output(outputs: Optional[Mapping], session, stage: str) -> Optional[np.ndarray]:
    """Pick the session's first declared output from a run() result.

    Returns None (with a warning) when the expected tensor is missing.
    """
    outputs = outputs or {}
    output_names = list(getattr(session, "output_names", None) or outputs)
    name = output_names[0] if output_names else None

    if name is None or outputs.get(name) is None:
        logger.warning(
            f"Output tensor '{name}' not found in {stage} results. "
            f"Available keys: {list(outputs)}"
        )
        return None
    return np.asarray(outputs[name])


def draw_boxes(image: np.ndarray, boxes: Sequence[Box]) -> np.ndarray:
    """Outline detection boxes on a copy of an RGB image.

    Args:
        image: Source image (H, W, 3) RGB
        boxes: Boxes to outline

    Returns:
        Annotated copy of the image
    """
    canvas = np.ascontiguousarray(image).copy()
    for box in boxes:
        cv2.rectangle(
            canvas,
            (box.x, box.y),
            (box.x + box.width - 1, box.y + box.height - 1),
            (0, 255, 0),
            1,
        )
    return canvas


def save_debug_image(image: np.ndarray, filename: str, folder: str) -> Path:
    """Write an RGB or grayscale image into the debug folder."""
    out_dir = Path(folder)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / filename

    if image.ndim == 3:
        image = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
    cv2.imwrite(str(path), image)
    logger.debug(f"Saved debug image to: {path}")
    return path
