"""
Text Detection Module - Stage 1 of OCR Pipeline

Finds text regions with a DB-style probability map model and optionally
corrects page skew before the final detection pass.
"""

import threading
from typing import List, Optional, Tuple

import numpy as np
from loguru import logger

from . import image_ops, utils
from .config import DebuggingOptions, DetectionOptions
from .deskew import SkewEstimator
from .errors import DetectionFailure
from .postprocess import DetectionPostprocessor
from .preprocess import prepare_detection_input
from .types import Box, DetectionInput


class TextDetector:
    """Text detection stage.

    Takes an RGB image and returns text boxes in its pixel coordinates.
    The session is any object implementing ``get_input_feed`` and ``run``.
    """

    def __init__(
        self,
        session,
        options: Optional[DetectionOptions] = None,
        debugging: Optional[DebuggingOptions] = None,
    ):
        """Initialize text detector.

        Args:
            session: Detection inference session
            options: Detection configuration (uses defaults if None)
            debugging: Logging/debug dump configuration (uses defaults if None)
        """
        self.session = session
        self.options = options or DetectionOptions()
        self.debugging = debugging or DebuggingOptions()
        self._lock = None if getattr(session, "reentrant", False) else threading.Lock()

        self.postprocess_op = DetectionPostprocessor(
            minimum_area_threshold=self.options.minimum_area_threshold,
            padding_vertical=self.options.padding_vertical,
            padding_horizontal=self.options.padding_horizontal,
        )
        self.skew_estimator = SkewEstimator(
            minimum_area_threshold=self.options.minimum_area_threshold,
            verbose=self.debugging.verbose,
        )

    def _log(self, message: str) -> None:
        logger.log("INFO" if self.debugging.verbose else "DEBUG", "[TextDetector] " + message)

    def preprocess(self, image: np.ndarray) -> DetectionInput:
        det_input = prepare_detection_input(
            image,
            max_side_length=self.options.max_side_length,
            mean=self.options.mean,
            std=self.options.std,
        )
        self._log(
            f"Detection preprocessed: original({det_input.original_width}x{det_input.original_height}), "
            f"model_input({det_input.width}x{det_input.height}), "
            f"resize_ratio: {det_input.resize_ratio:.4f}"
        )
        return det_input

    def predict_map(self, det_input: DetectionInput) -> Optional[np.ndarray]:
        """Run the detection model.

        Returns:
            The probability map, or None when the model produced no output

        Raises:
            DetectionFailure: If inference raises
        """
        self._log("Running detection inference...")
        input_feed = self.session.get_input_feed(det_input.tensor)
        try:
            if self._lock is None:
                outputs = self.session.run(input_feed)
            else:
                with self._lock:
                    outputs = self.session.run(input_feed)
        except Exception as e:
            raise DetectionFailure(f"Detection inference failed: {e}") from e

        return utils.first_output(outputs, self.session, stage="detection")

    def probability_map(self, image: np.ndarray) -> Tuple[Optional[np.ndarray], DetectionInput]:
        det_input = self.preprocess(image)
        return self.predict_map(det_input), det_input

    def detect(self, image: np.ndarray) -> List[Box]:
        """Detect text boxes in an image without deskewing.

        Args:
            image: Input image (H, W, 3) RGB

        Returns:
            Unordered list of boxes
        """
        prob_map, det_input = self.probability_map(image)
        if prob_map is None:
            return []

        try:
            boxes = self.postprocess_op(prob_map, det_input)
        except Exception as e:
            raise DetectionFailure(f"Detection postprocessing failed: {e}") from e

        if self.debugging.debug:
            gray = image_ops.probability_map_to_gray(prob_map, det_input.width, det_input.height)
            utils.save_debug_image(gray, "detection-debug.png", self.debugging.debug_folder)
            utils.save_debug_image(
                utils.draw_boxes(image, boxes), "boxes-debug.png", self.debugging.debug_folder
            )

        self._log(f"Detected {len(boxes)} text boxes in image")
        return boxes

    def estimate_skew(self, image: np.ndarray) -> float:
        """Run a detection pass and estimate the text skew from its map."""
        prob_map, det_input = self.probability_map(image)
        if prob_map is None:
            self._log("Skew calculation failed: no detection output from model.")
            return 0.0

        gray = image_ops.probability_map_to_gray(prob_map, det_input.width, det_input.height)
        if self.debugging.debug:
            utils.save_debug_image(
                gray, "deskew-probability-map-debug.png", self.debugging.debug_folder
            )
        return self.skew_estimator(gray)

    def deskew(self, image: np.ndarray) -> Tuple[np.ndarray, float]:
        """Estimate the skew and rotate the whole image to undo it.

        Returns:
            Tuple of (rotated image, estimated angle)
        """
        angle = self.estimate_skew(image)
        self._log(f"Detected skew angle: {angle:.2f} deg. Rotating image by {-angle:.2f} deg.")

        rotated = image_ops.rotate(image, -angle)
        if self.debugging.debug:
            utils.save_debug_image(rotated, "deskewed-image-debug.png", self.debugging.debug_folder)
        return rotated, angle

    def __call__(self, image: np.ndarray) -> Tuple[List[Box], np.ndarray]:
        """Detect text boxes, deskewing first when enabled.

        Returns:
            Tuple of (boxes, image the boxes refer to)

        Raises:
            DetectionFailure: If any step of detection or deskewing fails
        """
        try:
            if self.options.auto_deskew:
                self._log("Auto-deskew enabled. Performing initial pass for angle detection.")
                image, _ = self.deskew(image)
            return self.detect(image), image
        except DetectionFailure:
            raise
        except Exception as e:
            raise DetectionFailure(f"Text detection failed: {e}") from e

    def __repr__(self):
        return f"TextDetector(session={self.session!r}, options={self.options})"
