"""
High-level OCR Pipeline
Combines detection, recognition and reading-order assembly behind one object
that owns the inference sessions.
"""

import copy
import time
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Union

import numpy as np
from loguru import logger

from . import image_ops
from .cache import ResultCache, default_cache, fingerprint
from .config import OcrConfig, ResourceSource, SessionOptions
from .dictionary import parse_dictionary
from .errors import DetectionFailure, NotInitializedError, PipelineDestroyedError
from .models import CHARACTERS_DICTIONARY, DETECTION_MODEL, RECOGNITION_MODEL, ResourceLoader, loader
from .onnx_base import ONNXInferenceBase
from .reading_order import assemble
from .text_detector import TextDetector
from .text_recognizer import TextRecognizer
from .types import FlattenedOcrResult, OcrResult

SessionFactory = Callable[[bytes, SessionOptions], Any]
DictionarySource = Union[ResourceSource, Sequence[str]]


class PipelineState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    DESTROYED = "destroyed"


class OcrPipeline:
    """
    Complete OCR pipeline: detection, recognition and line assembly.

    Usage:
        with OcrPipeline() as ocr:
            result = ocr.recognize(open("page.png", "rb").read())
            print(result.text)
    """

    def __init__(
        self,
        config: Optional[OcrConfig] = None,
        cache: Optional[ResultCache] = None,
        session_factory: Optional[SessionFactory] = None,
        resource_loader: Optional[ResourceLoader] = None,
    ):
        """
        Initialize OCR pipeline (no models are loaded until initialize()).

        Args:
            config: Pipeline configuration (uses defaults if None)
            cache: Result cache (default: the per-process ``default_cache``)
            session_factory: Builds an inference session from model bytes and
                session options (default: ONNXInferenceBase)
            resource_loader: Resolves model and dictionary sources
                (default: the shared loader with the on-disk download cache)
        """
        self.config = config or OcrConfig()
        self.cache = cache if cache is not None else default_cache
        self.session_factory = session_factory or ONNXInferenceBase
        self.resource_loader = resource_loader or loader

        self.state = PipelineState.UNINITIALIZED
        self.detection_session = None
        self.recognition_session = None
        self.recognition_options = replace(self.config.recognition)
        self.text_detector: Optional[TextDetector] = None
        self.text_recognizer: Optional[TextRecognizer] = None

    def _log(self, message: str) -> None:
        logger.log("INFO" if self.config.debugging.verbose else "DEBUG", "[OcrPipeline] " + message)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Load both models and the character dictionary.

        Raises:
            PipelineDestroyedError: If the pipeline was destroyed
            ResourceLoadError: If a model or the dictionary cannot be fetched
            InvalidDictionaryError: If the dictionary is empty or not UTF-8
        """
        if self.state is PipelineState.DESTROYED:
            raise PipelineDestroyedError()
        if self.state is PipelineState.INITIALIZED:
            return

        self._log("Initializing OcrPipeline...")
        sources = self.config.model
        try:
            self.detection_session = self._create_session(sources.detection, DETECTION_MODEL)
            self._log(f"Detection model loaded: {self.detection_session!r}")

            self.recognition_session = self._create_session(sources.recognition, RECOGNITION_MODEL)
            self._log(f"Recognition model loaded: {self.recognition_session!r}")

            if sources.characters_dictionary is None and self.recognition_options.characters_dictionary:
                dictionary = parse_dictionary(self.recognition_options.characters_dictionary)
            else:
                dictionary = self._load_dictionary(sources.characters_dictionary)
        except Exception:
            logger.exception("Failed to initialize OcrPipeline")
            self._release_sessions()
            raise

        self.recognition_options.characters_dictionary = dictionary
        self._log(f"Character dictionary loaded with {len(dictionary)} entries.")

        self.text_detector = TextDetector(
            self.detection_session, self.config.detection, self.config.debugging
        )
        self.text_recognizer = TextRecognizer(
            self.recognition_session, self.recognition_options, self.config.debugging
        )
        self.state = PipelineState.INITIALIZED

    def is_initialized(self) -> bool:
        return self.state is PipelineState.INITIALIZED

    def destroy(self) -> None:
        """Release both inference sessions. Safe to call more than once."""
        if self.state is PipelineState.DESTROYED:
            return
        self._release_sessions()
        self.text_detector = None
        self.text_recognizer = None
        self.state = PipelineState.DESTROYED
        self._log("OcrPipeline destroyed.")

    def _require_initialized(self) -> None:
        if self.state is PipelineState.DESTROYED:
            raise PipelineDestroyedError()
        if self.state is not PipelineState.INITIALIZED:
            raise NotInitializedError()

    def _release_sessions(self) -> None:
        for session in (self.detection_session, self.recognition_session):
            if session is not None:
                _release(session)
        self.detection_session = None
        self.recognition_session = None

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def _create_session(self, source: Optional[ResourceSource], default):
        model_bytes = self.resource_loader.load(source, default)
        return self.session_factory(model_bytes, self.config.session)

    def _load_dictionary(self, source: Optional[DictionarySource]) -> List[str]:
        if isinstance(source, (list, tuple)):
            return parse_dictionary(source)
        return parse_dictionary(self.resource_loader.load(source, CHARACTERS_DICTIONARY))

    def change_detection_model(self, source: ResourceSource) -> None:
        """Replace the detection model; the cache and recognizer are kept."""
        self._require_initialized()
        self._log("Changing detection model...")
        model_bytes = self.resource_loader.load(source, DETECTION_MODEL)
        session = self.session_factory(model_bytes, self.config.session)

        _release(self.detection_session)
        self.detection_session = session
        self.text_detector = TextDetector(
            self.detection_session, self.config.detection, self.config.debugging
        )
        self._log("Detection model changed successfully.")

    def change_recognition_model(self, source: ResourceSource) -> None:
        """Replace the recognition model; the cache and detector are kept."""
        self._require_initialized()
        self._log("Changing recognition model...")
        model_bytes = self.resource_loader.load(source, RECOGNITION_MODEL)
        session = self.session_factory(model_bytes, self.config.session)

        _release(self.recognition_session)
        self.recognition_session = session
        self.text_recognizer = TextRecognizer(
            self.recognition_session, self.recognition_options, self.config.debugging
        )
        self._log("Recognition model changed successfully.")

    def change_text_dictionary(self, source: DictionarySource) -> None:
        """Replace the character dictionary used by the recognizer."""
        self._require_initialized()
        self._log("Changing text dictionary...")
        dictionary = self._load_dictionary(source)
        self.recognition_options.characters_dictionary = dictionary
        self._log(f"Character dictionary changed successfully with {len(dictionary)} entries.")

    def clear_model_cache(self) -> None:
        """Delete downloaded model files from the on-disk cache."""
        self.resource_loader.clear_cache()

    # ------------------------------------------------------------------
    # OCR
    # ------------------------------------------------------------------

    def recognize(
        self,
        image: Any,
        *,
        flatten: bool = False,
        dictionary: Optional[DictionarySource] = None,
        no_cache: bool = False,
    ) -> Union[OcrResult, FlattenedOcrResult]:
        """
        Detect and recognize all text in an image.

        Args:
            image: Encoded bytes, a numpy array (gray, RGB or RGBA), or a Pillow image
            flatten: Return one reading-ordered list instead of lines
            dictionary: Character dictionary for this call only (skips the cache)
            no_cache: Neither read nor write the result cache

        Returns:
            OcrResult, or FlattenedOcrResult when ``flatten`` is set. Results
            are independent copies; changing one does not touch the cache.

        Raises:
            NotInitializedError: If initialize() has not run or destroy() has
            InvalidDictionaryError: If ``dictionary`` is empty or not UTF-8
        """
        self._require_initialized()

        characters_dictionary = None
        if dictionary is not None:
            characters_dictionary = self._load_dictionary(dictionary)
        use_cache = characters_dictionary is None and not no_cache

        # Encoded input is looked up before it is decoded
        key = None
        if use_cache and image_ops.is_encoded(image):
            key = fingerprint(image)
            cached = self._cached(key)
            if cached is not None:
                return cached.flatten() if flatten else cached

        rgb = self._decode(image)
        if rgb is None:
            result = OcrResult(text="", lines=[], confidence=0.0)
            return result.flatten() if flatten else result

        if use_cache and key is None:
            key = fingerprint(rgb)
            cached = self._cached(key)
            if cached is not None:
                return cached.flatten() if flatten else cached

        result = self._run(rgb, characters_dictionary)
        if result is None:
            result = OcrResult(text="", lines=[], confidence=0.0)
        elif use_cache:
            self.cache.set(key, copy.deepcopy(result))

        return result.flatten() if flatten else result

    def _cached(self, key: str) -> Optional[OcrResult]:
        cached = self.cache.get(key)
        if cached is None:
            return None
        self._log(f"Cache hit for image {key}")
        return copy.deepcopy(cached)

    def _decode(self, image: Any) -> Optional[np.ndarray]:
        try:
            return image_ops.to_rgb_array(image)
        except (ValueError, TypeError) as e:
            logger.error(f"Could not decode input image: {e}")
            return None

    def _run(self, img: np.ndarray, characters_dictionary: Optional[List[str]]) -> Optional[OcrResult]:
        start = time.perf_counter()
        try:
            boxes, working_image = self.text_detector(img)
        except DetectionFailure as e:
            logger.error(f"Text detection failed: {e}")
            return None
        det_elapsed = time.perf_counter() - start

        results = self.text_recognizer(working_image, boxes, characters_dictionary)
        result = assemble(results)

        self._log(
            f"Recognized {len(results)}/{len(boxes)} boxes in {len(result.lines)} lines "
            f"(detection {det_elapsed * 1000:.1f}ms, total {(time.perf_counter() - start) * 1000:.1f}ms)"
        )
        return result

    def deskew_image(self, image: Any) -> np.ndarray:
        """Estimate the skew of an image and return it rotated upright (RGB)."""
        self._require_initialized()
        rotated, _ = self.text_detector.deskew(image_ops.to_rgb_array(image))
        return rotated

    # ------------------------------------------------------------------

    def __enter__(self) -> "OcrPipeline":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.destroy()

    def __repr__(self):
        return (
            f"OcrPipeline(\n"
            f"  state={self.state.value},\n"
            f"  detector={self.text_detector},\n"
            f"  recognizer={self.text_recognizer},\n"
            f"  cache={self.cache}\n"
            f")"
        )


def _release(session) -> None:
    release = getattr(session, "release", None)
    if release is None:
        return
    try:
        release()
    except Exception as e:
        logger.warning(f"Failed to release inference session: {e}")
