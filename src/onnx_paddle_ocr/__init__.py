"""
ONNX Paddle OCR
Text detection, recognition and line assembly with PaddleOCR ONNX models
"""

from .cache import ResultCache, default_cache, fingerprint
from .config import (
    DebuggingOptions,
    DetectionOptions,
    ModelSources,
    OcrConfig,
    RecognitionOptions,
    SessionOptions,
)
from .errors import (
    DetectionFailure,
    InvalidCropError,
    InvalidDictionaryError,
    NotInitializedError,
    OcrError,
    PipelineDestroyedError,
    RecognitionFailure,
    ResourceLoadError,
)
from .pipeline import OcrPipeline, PipelineState
from .types import Box, FlattenedOcrResult, OcrResult, RecognitionResult

__version__ = "0.1.0"
__all__ = [
    'OcrPipeline',
    'PipelineState',
    'OcrConfig',
    'ModelSources',
    'DetectionOptions',
    'RecognitionOptions',
    'SessionOptions',
    'DebuggingOptions',
    'Box',
    'RecognitionResult',
    'OcrResult',
    'FlattenedOcrResult',
    'ResultCache',
    'default_cache',
    'fingerprint',
    'OcrError',
    'NotInitializedError',
    'PipelineDestroyedError',
    'InvalidDictionaryError',
    'InvalidCropError',
    'DetectionFailure',
    'RecognitionFailure',
    'ResourceLoadError',
]
