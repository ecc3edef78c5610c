"""
Default model sources and resource loading.

Usage:
    from onnx_paddle_ocr.models import loader, DETECTION_MODEL

    data = loader.load(None, DETECTION_MODEL)   # download + cache
    loader.clear_cache()                        # delete downloaded files
"""

from .config import (
    BASE_URL,
    CHARACTERS_DICTIONARY,
    DETECTION_MODEL,
    RECOGNITION_MODEL,
    ModelFile,
    default_cache_dir,
)
from .registry import ResourceLoader, loader

__all__ = [
    "ResourceLoader",
    "loader",
    "ModelFile",
    "BASE_URL",
    "DETECTION_MODEL",
    "RECOGNITION_MODEL",
    "CHARACTERS_DICTIONARY",
    "default_cache_dir",
]
