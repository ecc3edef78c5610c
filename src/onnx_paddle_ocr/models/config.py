"""
Model definitions: default sources and the on-disk download cache.

Single source of truth for every default resource the pipeline downloads.
"""

import os
from dataclasses import dataclass
from pathlib import Path


# ---------------------------------------------------------------------------
# Where the default models live
# ---------------------------------------------------------------------------
BASE_URL = "https://raw.githubusercontent.com/PT-Perkasa-Pilar-Utama/ppu-paddle-ocr/main/models/"

CACHE_DIR_ENV = "ONNX_PADDLE_OCR_CACHE"


def default_cache_dir() -> Path:
    """Download cache directory (``$ONNX_PADDLE_OCR_CACHE`` or ~/.cache/onnx-paddle-ocr)."""
    override = os.environ.get(CACHE_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".cache" / "onnx-paddle-ocr"


@dataclass(frozen=True)
class ModelFile:
    """A single downloadable model file."""
    filename: str
    description: str = ""

    @property
    def url(self) -> str:
        return BASE_URL + self.filename


# ---------------------------------------------------------------------------
# PaddleOCR text detection and recognition
# ---------------------------------------------------------------------------
DETECTION_MODEL = ModelFile(
    filename="PP-OCRv5_mobile_det_infer.onnx",
    description="PP-OCRv5 mobile DB text detector",
)

RECOGNITION_MODEL = ModelFile(
    filename="en_PP-OCRv4_mobile_rec_infer.onnx",
    description="PP-OCRv4 mobile English text recognizer",
)

CHARACTERS_DICTIONARY = ModelFile(
    filename="en_dict.txt",
    description="English character dictionary",
)
