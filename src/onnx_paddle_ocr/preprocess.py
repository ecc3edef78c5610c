"""Preprocessing operations for detection and recognition models."""

from typing import Sequence, Tuple

import numpy as np

from . import image_ops
from .types import DetectionInput

DET_STRIDE = 32
MIN_REC_WIDTH = 8


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(np.floor(value + 0.5))


def det_resize_dimensions(
    src_w: int,
    src_h: int,
    max_side_length: int,
) -> Tuple[int, int, float]:
    """Target size for detection so the longer side fits ``max_side_length``.

    Returns:
        Tuple of (resize_w, resize_h, ratio)
    """
    if max(src_h, src_w) > max_side_length:
        ratio = float(max_side_length) / max(src_h, src_w)
        resize_w = max(1, round_half_up(src_w * ratio))
        resize_h = max(1, round_half_up(src_h * ratio))
        return resize_w, resize_h, ratio
    return src_w, src_h, 1.0


def pad_to_stride(size: int, stride: int = DET_STRIDE) -> int:
    """Round ``size`` up to the next multiple of ``stride``."""
    return int(np.ceil(size / stride) * stride)


def normalize_image(
    img: np.ndarray,
    mean: Sequence[float],
    std: Sequence[float],
) -> np.ndarray:
    """HWC uint8 RGB -> CHW float32 with ``(x / 255 - mean) / std`` per channel."""
    img = img.astype(np.float32) * np.float32(1.0 / 255.0)
    mean = np.array(mean, dtype=np.float32).reshape((1, 1, 3))
    std = np.array(std, dtype=np.float32).reshape((1, 1, 3))
    img = (img - mean) / std
    return img.transpose((2, 0, 1))


def prepare_detection_input(
    img: np.ndarray,
    max_side_length: int,
    mean: Sequence[float],
    std: Sequence[float],
) -> DetectionInput:
    """Build the detection tensor for an RGB image.

    The image is downscaled if needed, then placed at the top-left corner of
    a zero canvas whose sides are multiples of 32.

    Args:
        img: Input image (H, W, 3) RGB uint8
        max_side_length: Longest allowed side before padding
        mean: Per-channel mean
        std: Per-channel standard deviation

    Returns:
        DetectionInput with a [1, 3, H, W] tensor and mapping metadata
    """
    src_h, src_w = img.shape[:2]
    resize_w, resize_h, ratio = det_resize_dimensions(src_w, src_h, max_side_length)

    if (resize_w, resize_h) != (src_w, src_h):
        img = image_ops.resize(img, resize_w, resize_h)

    width = pad_to_stride(resize_w)
    height = pad_to_stride(resize_h)

    padded = np.zeros((height, width, 3), dtype=np.uint8)
    padded[:resize_h, :resize_w] = img

    tensor = normalize_image(padded, mean, std)[np.newaxis, :]

    return DetectionInput(
        tensor=np.ascontiguousarray(tensor, dtype=np.float32),
        width=width,
        height=height,
        resize_ratio=ratio,
        original_width=src_w,
        original_height=src_h,
    )


def rec_resize_width(src_w: int, src_h: int, image_height: int) -> int:
    """Width that keeps the crop's aspect ratio at ``image_height``."""
    return max(MIN_REC_WIDTH, round_half_up(image_height * (src_w / float(src_h))))


def prepare_recognition_input(crop: np.ndarray, image_height: int = 48) -> np.ndarray:
    """Resize and normalize a text crop for recognition.

    The red channel is normalized as ``(x / 255 - 0.5) / 0.5`` and copied into
    all three input channels.

    Args:
        crop: Text image patch (H, W, 3) RGB
        image_height: Model input height

    Returns:
        Tensor of shape [1, 3, image_height, W]
    """
    h, w = crop.shape[:2]
    if h == 0 or w == 0:
        raise ValueError(f"Crop dimensions are zero: {w}x{h}")

    resized_w = rec_resize_width(w, h, image_height)
    resized = image_ops.resize(crop, resized_w, image_height)

    channel = resized[:, :, 0].astype(np.float32) / 255.0
    channel -= 0.5
    channel /= 0.5

    tensor = np.repeat(channel[np.newaxis, :, :], 3, axis=0)
    return np.ascontiguousarray(tensor[np.newaxis, :], dtype=np.float32)
