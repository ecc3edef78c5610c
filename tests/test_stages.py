"""
Tests for the detection and recognition stages and the ONNX session wrapper.
"""

import threading
from unittest.mock import patch

import numpy as np
import onnxruntime
import pytest

from onnx_paddle_ocr.config import DebuggingOptions, DetectionOptions, RecognitionOptions, SessionOptions
from onnx_paddle_ocr.errors import DetectionFailure
from onnx_paddle_ocr.onnx_base import OPTIMIZATION_LEVELS, ONNXInferenceBase
from onnx_paddle_ocr.text_detector import TextDetector
from onnx_paddle_ocr.text_recognizer import TextRecognizer
from onnx_paddle_ocr.types import Box

from tests.conftest import DICTIONARY, FakeSession, dark_pixels_detection, fixed_recognition, image_with_rects


class TestTextDetector:
    """Tests for TextDetector."""

    def test_detects_boxes(self, detection_session, one_line_image):
        detector = TextDetector(detection_session)

        boxes, working = detector(one_line_image)

        assert boxes == [Box(28, 22, 184, 36)]
        assert working is one_line_image
        assert detection_session.calls == 1

    def test_inference_error_becomes_detection_failure(self, one_line_image):
        def broken(tensor):
            raise RuntimeError("bad input")

        detector = TextDetector(FakeSession(broken))

        with pytest.raises(DetectionFailure):
            detector.detect(one_line_image)

    def test_deskew_error_becomes_detection_failure(self, detection_session, one_line_image):
        detector = TextDetector(detection_session, DetectionOptions(auto_deskew=True))

        with patch.object(detector, "skew_estimator", side_effect=TypeError("bad hough output")):
            with pytest.raises(DetectionFailure):
                detector(one_line_image)

    def test_preprocess_error_becomes_detection_failure(self, detection_session, one_line_image):
        detector = TextDetector(detection_session)

        with patch(
            "onnx_paddle_ocr.text_detector.prepare_detection_input",
            side_effect=ValueError("cannot resize"),
        ):
            with pytest.raises(DetectionFailure):
                detector(one_line_image)

        assert detection_session.calls == 0

    def test_deskew_enabled_returns_rotated_image(self, detection_session, one_line_image):
        detector = TextDetector(detection_session, DetectionOptions(auto_deskew=True))

        boxes, working = detector(one_line_image)

        assert working is not one_line_image
        assert working.shape == one_line_image.shape
        assert len(boxes) == 1
        assert detection_session.calls == 2

    def test_debug_images_are_written(self, detection_session, one_line_image, tmp_path):
        debugging = DebuggingOptions(debug=True, debug_folder=str(tmp_path / "out"))
        detector = TextDetector(detection_session, debugging=debugging)

        detector.detect(one_line_image)

        assert (tmp_path / "out" / "detection-debug.png").exists()
        assert (tmp_path / "out" / "boxes-debug.png").exists()

    def test_reentrant_session_is_not_locked(self):
        session = FakeSession(dark_pixels_detection)
        session.reentrant = True

        assert TextDetector(session)._lock is None
        assert TextDetector(FakeSession(dark_pixels_detection))._lock is not None


class TestTextRecognizer:
    """Tests for TextRecognizer."""

    @pytest.fixture
    def options(self):
        return RecognitionOptions(characters_dictionary=list(DICTIONARY))

    def test_results_keep_box_order(self, recognition_session, options):
        image = image_with_rects([(40, 10, 160, 20), (40, 60, 40, 20)])
        boxes = [Box(28, 52, 64, 36), Box(28, 2, 184, 36)]

        results = TextRecognizer(recognition_session, options)(image, boxes)

        assert [r.box for r in results] == boxes
        assert all(r.text == "hello" for r in results)
        assert recognition_session.calls == 2

    def test_box_outside_image_is_dropped(self, recognition_session, options, one_line_image):
        boxes = [Box(500, 500, 10, 10), Box(28, 22, 184, 36)]

        results = TextRecognizer(recognition_session, options)(one_line_image, boxes)

        assert [r.box for r in results] == [Box(28, 22, 184, 36)]

    def test_missing_output_drops_box(self, options, one_line_image):
        session = FakeSession(fixed_recognition())
        session.run = lambda feed: {"other": np.zeros((1, 1, 1))}

        results = TextRecognizer(session, options)(one_line_image, [Box(28, 22, 184, 36)])

        assert results == []

    def test_no_boxes(self, recognition_session, options, one_line_image):
        assert TextRecognizer(recognition_session, options)(one_line_image, []) == []
        assert recognition_session.calls == 0

    def test_non_reentrant_session_is_serialized(self, options, one_line_image):
        active = []
        overlap = []
        guard = threading.Lock()
        logits = fixed_recognition()

        def tracking(tensor):
            with guard:
                active.append(1)
                if len(active) > 1:
                    overlap.append(True)
            result = logits(tensor)
            with guard:
                active.pop()
            return result

        boxes = [Box(28, 22, 184, 36)] * 8

        results = TextRecognizer(FakeSession(tracking), options)(one_line_image, boxes)

        assert len(results) == 8
        assert overlap == []


class TestONNXInferenceBase:
    """Tests for provider and session option selection."""

    def test_cpu_always_available(self):
        with patch("onnx_paddle_ocr.onnx_base.C.get_available_providers", return_value=["CPUExecutionProvider"]):
            assert ONNXInferenceBase._get_providers(["cuda", "cpu"]) == ["CPUExecutionProvider"]

    def test_requested_order_kept(self):
        available = ["CUDAExecutionProvider", "CPUExecutionProvider"]
        with patch("onnx_paddle_ocr.onnx_base.C.get_available_providers", return_value=available):
            assert ONNXInferenceBase._get_providers(["cuda"]) == available

    def test_session_options(self):
        sess_opt = ONNXInferenceBase._get_session_options(
            SessionOptions(intra_op_num_threads=2, enable_mem_pattern=False)
        )

        assert sess_opt.intra_op_num_threads == 2
        assert sess_opt.enable_mem_pattern is False

    def test_optimization_levels_match_config_choices(self):
        assert set(OPTIMIZATION_LEVELS) == {"disabled", "basic", "extended", "all"}

        sess_opt = ONNXInferenceBase._get_session_options(SessionOptions(graph_optimization_level="basic"))

        assert sess_opt.graph_optimization_level == onnxruntime.GraphOptimizationLevel.ORT_ENABLE_BASIC
