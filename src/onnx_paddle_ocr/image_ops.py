"""Image-processing primitives used by the OCR stages (OpenCV backed)."""

from typing import Any, List, Tuple

import cv2
import numpy as np
from PIL import Image

from .errors import InvalidCropError
from .types import Box

ENCODED_TYPES = (bytes, bytearray, memoryview)


def is_encoded(image: Any) -> bool:
    """True when ``image`` holds raw encoded bytes (PNG, JPEG, ...)."""
    return isinstance(image, ENCODED_TYPES)


def to_rgb_array(image: Any) -> np.ndarray:
    """Decode or convert an input image to an (H, W, 3) uint8 RGB array.

    Args:
        image: Encoded bytes, a Pillow image, or a numpy array
            (H x W grayscale, H x W x 3 RGB, H x W x 4 RGBA)

    Returns:
        Contiguous RGB array
    """
    if is_encoded(image):
        buffer = np.frombuffer(memoryview(image).cast("B"), dtype=np.uint8)
        if buffer.size == 0:
            raise ValueError("Cannot decode an empty image buffer")
        decoded = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if decoded is None:
            raise ValueError("Image bytes could not be decoded")
        return cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB)

    if isinstance(image, Image.Image):
        return np.array(image.convert("RGB"))

    if isinstance(image, np.ndarray):
        img = image
        if img.dtype != np.uint8:
            img = np.clip(img, 0, 255).astype(np.uint8)
        if img.ndim == 2:
            return cv2.cvtColor(img, cv2.COLOR_GRAY2RGB)
        if img.ndim == 3 and img.shape[2] == 4:
            return np.ascontiguousarray(img[:, :, :3])
        if img.ndim == 3 and img.shape[2] == 3:
            return np.ascontiguousarray(img)
        raise ValueError(f"Unsupported image array shape: {image.shape}")

    raise TypeError(f"Unsupported image type: {type(image).__name__}")


def resize(img: np.ndarray, width: int, height: int) -> np.ndarray:
    interpolation = cv2.INTER_AREA if width < img.shape[1] else cv2.INTER_LINEAR
    return cv2.resize(img, (width, height), interpolation=interpolation)


def rotate(img: np.ndarray, angle: float) -> np.ndarray:
    """Rotate around the image center, keeping the canvas size.

    Positive angles rotate clockwise. Exposed corners replicate the border.
    """
    if angle == 0:
        return img.copy()
    h, w = img.shape[:2]
    # cv2 treats positive angles as counter-clockwise
    M = cv2.getRotationMatrix2D((w / 2.0, h / 2.0), -angle, 1.0)
    return cv2.warpAffine(
        img,
        M,
        (w, h),
        flags=cv2.INTER_CUBIC,
        borderMode=cv2.BORDER_REPLICATE,
    )


def crop(img: np.ndarray, box: Box) -> np.ndarray:
    """Cut a box out of an image, clipped to the image bounds."""
    h, w = img.shape[:2]
    x0, y0 = max(0, box.x), max(0, box.y)
    x1, y1 = min(w, box.x + box.width), min(h, box.y + box.height)
    if x1 <= x0 or y1 <= y0:
        raise InvalidCropError(
            f"Crop is empty: box {box.to_dict()} on {w}x{h} image"
        )
    return img[y0:y1, x0:x1]


def probability_map_to_gray(prob_map: np.ndarray, width: int, height: int) -> np.ndarray:
    """Render a detection probability map as an 8-bit grayscale bitmap."""
    prob = np.asarray(prob_map, dtype=np.float32).reshape(-1)
    expected = width * height
    if prob.size < expected:
        prob = np.pad(prob, (0, expected - prob.size))
    prob = np.nan_to_num(prob[:expected].reshape(height, width))
    return np.clip(np.round(prob * 255.0), 0, 255).astype(np.uint8)


def find_contours(bitmap: np.ndarray) -> List[np.ndarray]:
    """Flat, simplified contour list of the non-zero regions."""
    outs = cv2.findContours(bitmap, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)
    # OpenCV 3 returns (image, contours, hierarchy)
    contours = outs[1] if len(outs) == 3 else outs[0]
    return list(contours)


def bounding_rect(contour: np.ndarray) -> Tuple[int, int, int, int]:
    x, y, w, h = cv2.boundingRect(contour)
    return int(x), int(y), int(w), int(h)


def otsu_binarize(gray: np.ndarray) -> np.ndarray:
    _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    return binary


def close_horizontal_gaps(binary: np.ndarray) -> np.ndarray:
    """Morphological closing with a 3x1 horizontal kernel."""
    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (3, 1))
    return cv2.morphologyEx(binary, cv2.MORPH_CLOSE, kernel)


def hough_segments(
    binary: np.ndarray,
    threshold: int = 30,
    min_line_length: int = 50,
    max_line_gap: int = 10,
) -> List[Tuple[int, int, int, int]]:
    """Probabilistic Hough transform returning (x1, y1, x2, y2) segments."""
    lines = cv2.HoughLinesP(
        binary,
        1,
        np.pi / 180,
        threshold,
        minLineLength=min_line_length,
        maxLineGap=max_line_gap,
    )
    if lines is None:
        return []
    # (N, 1, 4) on OpenCV 4, (N, 4) on OpenCV 5
    return [tuple(int(v) for v in line) for line in np.asarray(lines).reshape(-1, 4)]
