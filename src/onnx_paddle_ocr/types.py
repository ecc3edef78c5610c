"""Result records shared by the OCR stages."""

from dataclasses import dataclass, field
from typing import List

import numpy as np


@dataclass(frozen=True)
class Box:
    """Axis-aligned text box in original-image pixel coordinates."""
    x: int
    y: int
    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Box must have positive size, got {self.width}x{self.height}")

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass
class RecognitionResult:
    """Recognized text for one detected box."""
    text: str
    box: Box
    confidence: float

    def to_dict(self) -> dict:
        return {"text": self.text, "box": self.box.to_dict(), "confidence": self.confidence}


@dataclass
class FlattenedOcrResult:
    """OCR result as a single reading-ordered list."""
    text: str
    results: List[RecognitionResult] = field(default_factory=list)
    confidence: float = 0.0

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "results": [r.to_dict() for r in self.results],
            "confidence": self.confidence,
        }


@dataclass
class OcrResult:
    """OCR result grouped into lines."""
    text: str
    lines: List[List[RecognitionResult]] = field(default_factory=list)
    confidence: float = 0.0

    def flatten(self) -> FlattenedOcrResult:
        results = [item for line in self.lines for item in line]
        return FlattenedOcrResult(text=self.text, results=results, confidence=self.confidence)

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "lines": [[r.to_dict() for r in line] for line in self.lines],
            "confidence": self.confidence,
        }


@dataclass
class DetectionInput:
    """Detection tensor plus what is needed to map boxes back."""
    tensor: np.ndarray  # [1, 3, height, width] float32
    width: int  # Padded width (multiple of 32)
    height: int  # Padded height (multiple of 32)
    resize_ratio: float
    original_width: int
    original_height: int


@dataclass
class TextRegion:
    """A contour with its bounding rectangle and shape stats."""
    rect: Box
    contour: np.ndarray  # (N, 1, 2) int32 points
    area: int
    aspect_ratio: float
