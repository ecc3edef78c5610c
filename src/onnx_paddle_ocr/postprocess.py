"""Postprocessing for detection maps and recognition logits."""

from typing import List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from . import image_ops
from .preprocess import round_half_up
from .types import Box, DetectionInput, TextRegion

MIN_BOX_SIDE = 5


def region_from_contour(contour: np.ndarray) -> TextRegion:
    """Wrap a contour with its bounding rectangle, area and aspect ratio."""
    x, y, w, h = image_ops.bounding_rect(contour)
    return TextRegion(
        rect=Box(x, y, w, h),
        contour=contour,
        area=w * h,
        aspect_ratio=w / float(h),
    )


class DetectionPostprocessor:
    """Turns a detection probability map into boxes in original-image space.

    Every non-zero pixel of the 8-bit rendered map counts as text; each
    contour's bounding rectangle is padded, clipped, and scaled back.
    """

    def __init__(
        self,
        minimum_area_threshold: int = 25,
        padding_vertical: float = 0.4,
        padding_horizontal: float = 0.6,
    ):
        """Initialize detection post-processor.

        Args:
            minimum_area_threshold: Rectangles with area at or below this are dropped
            padding_vertical: Padding above/below as a fraction of box height
            padding_horizontal: Padding left/right as a fraction of box height
        """
        self.minimum_area_threshold = minimum_area_threshold
        self.padding_vertical = padding_vertical
        self.padding_horizontal = padding_horizontal

    def __call__(self, prob_map: np.ndarray, det_input: DetectionInput) -> List[Box]:
        """Convert a probability map to boxes.

        Args:
            prob_map: Probability values covering the padded input
            det_input: Metadata produced by detection preprocessing

        Returns:
            Unordered list of boxes
        """
        bitmap = image_ops.probability_map_to_gray(prob_map, det_input.width, det_input.height)
        return self.boxes_from_bitmap(bitmap, det_input)

    def boxes_from_bitmap(self, bitmap: np.ndarray, det_input: DetectionInput) -> List[Box]:
        boxes = []
        for contour in image_ops.find_contours(bitmap):
            x, y, w, h = image_ops.bounding_rect(contour)
            if w * h <= self.minimum_area_threshold:
                continue

            padded = self.pad_rect((x, y, w, h), det_input.width, det_input.height)
            box = self.to_original_coordinates(padded, det_input)
            if box is not None:
                boxes.append(box)
        return boxes

    def pad_rect(
        self,
        rect: Tuple[int, int, int, int],
        max_width: int,
        max_height: int,
    ) -> Tuple[int, int, int, int]:
        """Grow a rectangle by height-proportional padding, clipped to the canvas.

        Horizontal padding is also derived from the height: text lines are
        much wider than tall and width-based padding would overshoot.
        """
        x, y, w, h = rect
        pad_v = round_half_up(h * self.padding_vertical)
        pad_h = round_half_up(h * self.padding_horizontal)

        left = max(0, x - pad_h)
        top = max(0, y - pad_v)
        right = min(max_width, x + w + pad_h)
        bottom = min(max_height, y + h + pad_v)

        return left, top, right - left, bottom - top

    @staticmethod
    def to_original_coordinates(
        rect: Tuple[int, int, int, int],
        det_input: DetectionInput,
    ) -> Optional[Box]:
        """Scale a padded-canvas rectangle back to the source image.

        Returns None for boxes not larger than 5px on either side.
        """
        ratio = det_input.resize_ratio
        x, y, w, h = rect

        x = max(0, round_half_up(x / ratio))
        y = max(0, round_half_up(y / ratio))
        w = min(det_input.original_width - x, round_half_up(w / ratio))
        h = min(det_input.original_height - y, round_half_up(h / ratio))

        if w <= MIN_BOX_SIDE or h <= MIN_BOX_SIDE:
            return None
        return Box(x, y, w, h)


class CTCGreedyDecoder:
    """Greedy CTC decoding for text recognition.

    Class 0 is the blank symbol. The last dictionary entry is a sentinel:
    it decodes to a space unless it is the ``<unk>`` marker, which is dropped.
    """

    BLANK_INDEX = 0
    UNK_TOKEN = "<unk>"

    def __init__(self, characters_dictionary: Sequence[str]):
        """Initialize CTC decoder.

        Args:
            characters_dictionary: Entries indexed by model class id
        """
        self.character = list(characters_dictionary)

    def __call__(self, preds: np.ndarray) -> Tuple[str, float]:
        """Decode one sequence of class scores.

        Args:
            preds: Scores of shape [T, C] or [1, T, C]

        Returns:
            Tuple of (text, confidence)
        """
        preds = np.asarray(preds, dtype=np.float32)
        if preds.ndim == 3:
            preds = preds[0]
        if preds.ndim != 2:
            raise ValueError(f"Expected [T, C] recognition output, got shape {preds.shape}")

        num_classes = preds.shape[1]
        if num_classes != len(self.character):
            logger.warning(
                f"Model output classes ({num_classes}) does not match "
                f"dictionary length ({len(self.character)})"
            )

        if preds.shape[0] == 0 or num_classes == 0:
            return "", 0.0

        preds_idx = preds.argmax(axis=1)
        preds_prob = preds.max(axis=1)
        return self.decode(preds_idx, preds_prob)

    def decode(self, text_index: np.ndarray, text_prob: np.ndarray) -> Tuple[str, float]:
        """Collapse blanks and repeats, map class ids to characters."""
        char_list = []
        conf_list = []
        last_index = -1
        last_entry = len(self.character) - 1

        for t, (index, prob) in enumerate(zip(text_index.tolist(), text_prob.tolist())):
            if index == self.BLANK_INDEX or index == last_index:
                last_index = index
                continue

            if index < 0 or index > last_entry:
                logger.warning(
                    f"Decoded index {index} out of bounds for dictionary "
                    f"(length {len(self.character)}) at t={t}"
                )
            elif index == last_entry:
                if self.character[index] != self.UNK_TOKEN:
                    char_list.append(" ")
                    conf_list.append(prob)
            else:
                char_list.append(self.character[index])
                conf_list.append(prob)

            last_index = index

        confidence = float(np.mean(conf_list)) if conf_list else 0.0
        return "".join(char_list), confidence
