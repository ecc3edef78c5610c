"""
Text Recognition Module - Stage 2 of OCR Pipeline

Recognizes text in each detected box. Boxes are processed as independent
tasks; a failing box is logged and dropped without affecting the others.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from . import image_ops, utils
from .config import DebuggingOptions, RecognitionOptions
from .errors import RecognitionFailure
from .postprocess import CTCGreedyDecoder
from .preprocess import prepare_recognition_input
from .types import Box, RecognitionResult


class TextRecognizer:
    """Text recognition stage with per-box fan-out."""

    def __init__(
        self,
        session,
        options: Optional[RecognitionOptions] = None,
        debugging: Optional[DebuggingOptions] = None,
        max_workers: Optional[int] = None,
    ):
        """Initialize text recognizer.

        Args:
            session: Recognition inference session
            options: Recognition configuration, including the dictionary
            debugging: Logging/debug dump configuration (uses defaults if None)
            max_workers: Thread pool size for box fan-out (None = executor default)
        """
        self.session = session
        self.options = options or RecognitionOptions()
        self.debugging = debugging or DebuggingOptions()
        self.max_workers = max_workers
        self._lock = None if getattr(session, "reentrant", False) else threading.Lock()

    def _log(self, message: str) -> None:
        logger.log("INFO" if self.debugging.verbose else "DEBUG", "[TextRecognizer] " + message)

    def _run_session(self, tensor: np.ndarray) -> Optional[np.ndarray]:
        input_feed = self.session.get_input_feed(tensor)
        try:
            if self._lock is None:
                outputs = self.session.run(input_feed)
            else:
                with self._lock:
                    outputs = self.session.run(input_feed)
        except Exception as e:
            raise RecognitionFailure(f"Recognition inference failed: {e}") from e
        return utils.first_output(outputs, self.session, stage="recognition")

    def recognize_crop(
        self,
        crop: np.ndarray,
        characters_dictionary: Optional[Sequence[str]] = None,
    ) -> Tuple[str, float]:
        """Recognize text in a single crop.

        Args:
            crop: Text image patch (H, W, 3) RGB
            characters_dictionary: Overrides the configured dictionary

        Returns:
            Tuple of (text, confidence)
        """
        tensor = prepare_recognition_input(crop, self.options.image_height)
        preds = self._run_session(tensor)
        if preds is None:
            raise RecognitionFailure("Recognition model returned no output tensor")

        dictionary = characters_dictionary or self.options.characters_dictionary
        return CTCGreedyDecoder(dictionary)(preds)

    def process_box(
        self,
        image: np.ndarray,
        box: Box,
        index: int,
        characters_dictionary: Optional[Sequence[str]] = None,
    ) -> RecognitionResult:
        start = time.perf_counter()
        crop = image_ops.crop(image, box)
        text, confidence = self.recognize_crop(crop, characters_dictionary)

        if self.debugging.debug:
            utils.save_debug_image(
                crop, f"crop_{index:03d}.png", f"{self.debugging.debug_folder}/crops"
            )
        self._log(
            f"Box {index + 1}: [x:{box.x}, y:{box.y}, w:{box.width}, h:{box.height}] "
            f"-> {text!r} ({(time.perf_counter() - start) * 1000:.1f}ms)"
        )
        return RecognitionResult(text=text, box=box, confidence=confidence)

    def __call__(
        self,
        image: np.ndarray,
        boxes: Sequence[Box],
        characters_dictionary: Optional[Sequence[str]] = None,
    ) -> List[RecognitionResult]:
        """Recognize text in every box concurrently.

        Args:
            image: Image the boxes refer to (H, W, 3) RGB
            boxes: Detected boxes
            characters_dictionary: Overrides the configured dictionary

        Returns:
            Results for the boxes that succeeded, in input order
        """
        if not boxes:
            return []

        self._log(f"Starting text recognition for {len(boxes)} boxes")
        results: List[Optional[RecognitionResult]] = [None] * len(boxes)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_index = {
                executor.submit(self.process_box, image, box, i, characters_dictionary): i
                for i, box in enumerate(boxes)
            }

            for future in as_completed(future_to_index):
                idx = future_to_index[future]
                try:
                    results[idx] = future.result()
                except Exception as exc:
                    logger.error(f"Error processing box {idx + 1}: {exc}")

        return [r for r in results if r is not None]

    def __repr__(self):
        return f"TextRecognizer(session={self.session!r}, image_height={self.options.image_height})"
