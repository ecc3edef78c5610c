"""
Pytest configuration and fixtures for onnx_paddle_ocr tests.

Inference sessions are replaced by small fakes implementing the session
contract used by the stages (``input_names``, ``output_names``,
``get_input_feed``, ``run``, ``release``), so no model files are needed.
"""

from typing import Callable, Sequence

import cv2
import numpy as np
import pytest

from onnx_paddle_ocr.cache import ResultCache
from onnx_paddle_ocr.config import ModelSources, OcrConfig
from onnx_paddle_ocr.models import ResourceLoader
from onnx_paddle_ocr.pipeline import OcrPipeline


# =============================================================================
# Fake Sessions
# =============================================================================

# Class 0 is the CTC blank; the trailing empty entry is the space sentinel
DICTIONARY_TEXT = "blank\n" + "\n".join("abcdefghijklmnopqrstuvwxyz") + "\n"
DICTIONARY = DICTIONARY_TEXT.split("\n")


class FakeSession:
    """Stand-in for an inference session driven by a plain function."""

    reentrant = False

    def __init__(self, fn: Callable[[np.ndarray], np.ndarray], name: str = "fake"):
        self.fn = fn
        self.name = name
        self.input_names = ["x"]
        self.output_names = ["out"]
        self.calls = 0
        self.released = False

    def get_input_feed(self, image_array: np.ndarray):
        return {self.input_names[0]: image_array}

    def run(self, input_feed):
        self.calls += 1
        return {self.output_names[0]: self.fn(input_feed[self.input_names[0]])}

    def release(self):
        self.released = True

    def __repr__(self):
        return f"FakeSession({self.name})"


def dark_pixels_detection(tensor: np.ndarray) -> np.ndarray:
    """Probability 1 wherever the normalized red channel is below the mean."""
    return (tensor[0, 0] < 0).astype(np.float32)[np.newaxis, np.newaxis]


def logits_for(text: str, dictionary: Sequence[str] = DICTIONARY, score: float = 0.9) -> np.ndarray:
    """[1, T, C] scores that greedy-decode to ``text`` with the given confidence."""
    steps = []
    previous = None
    for ch in text:
        index = len(dictionary) - 1 if ch == " " else dictionary.index(ch)
        if index == previous:
            steps.append(0)
        steps.append(index)
        previous = index

    num_classes = len(dictionary)
    logits = np.full((1, len(steps), num_classes), (1 - score) / (num_classes - 1), dtype=np.float32)
    for t, index in enumerate(steps):
        logits[0, t, index] = score
    return logits


def fixed_recognition(text: str = "hello") -> Callable[[np.ndarray], np.ndarray]:
    logits = logits_for(text)
    return lambda tensor: logits


# =============================================================================
# Images
# =============================================================================

def blank_image(width: int = 320, height: int = 96) -> np.ndarray:
    return np.full((height, width, 3), 255, dtype=np.uint8)


def image_with_rects(rects, width: int = 320, height: int = 96) -> np.ndarray:
    """White RGB image with black filled (x, y, w, h) rectangles."""
    img = blank_image(width, height)
    for x, y, w, h in rects:
        img[y:y + h, x:x + w] = 0
    return img


def encode_png(img: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", cv2.cvtColor(img, cv2.COLOR_RGB2BGR))
    assert ok
    return buf.tobytes()


@pytest.fixture
def one_line_image() -> np.ndarray:
    return image_with_rects([(40, 30, 160, 20)])


@pytest.fixture
def two_line_image() -> np.ndarray:
    return image_with_rects([(40, 10, 160, 20), (40, 60, 40, 20)])


@pytest.fixture
def one_line_png(one_line_image) -> bytes:
    return encode_png(one_line_image)


# =============================================================================
# Pipeline Fixtures
# =============================================================================

@pytest.fixture
def detection_session() -> FakeSession:
    return FakeSession(dark_pixels_detection, name="det")


@pytest.fixture
def recognition_session() -> FakeSession:
    return FakeSession(fixed_recognition("hello"), name="rec")


@pytest.fixture
def sessions(detection_session, recognition_session):
    """Model bytes -> session; unknown bytes get a fresh detection session."""
    return {b"det": detection_session, b"rec": recognition_session}


@pytest.fixture
def session_factory(sessions):
    created = []

    def factory(model_bytes, options):
        session = sessions.get(model_bytes)
        if session is None:
            session = FakeSession(dark_pixels_detection, name=model_bytes.decode())
            sessions[model_bytes] = session
        created.append(session)
        return session

    factory.created = created
    return factory


@pytest.fixture
def ocr_config() -> OcrConfig:
    return OcrConfig(
        model=ModelSources(
            detection=b"det",
            recognition=b"rec",
            characters_dictionary=DICTIONARY_TEXT.encode("utf-8"),
        )
    )


@pytest.fixture
def make_pipeline(ocr_config, session_factory, tmp_path):
    """Build pipelines over fake sessions with a fresh result cache each."""
    built = []

    def make(config=None, cache=None, initialize=True):
        ocr = OcrPipeline(
            config or ocr_config,
            cache=cache if cache is not None else ResultCache(),
            session_factory=session_factory,
            resource_loader=ResourceLoader(cache_dir=tmp_path / "models"),
        )
        if initialize:
            ocr.initialize()
        built.append(ocr)
        return ocr

    yield make
    for ocr in built:
        ocr.destroy()


@pytest.fixture
def pipeline(make_pipeline):
    """Initialized pipeline over fake sessions."""
    return make_pipeline()
