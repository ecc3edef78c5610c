"""Exceptions raised by the OCR pipeline."""


class OcrError(Exception):
    """Base class for all OCR pipeline errors."""
    pass


class NotInitializedError(OcrError):
    """Raised when an OCR operation runs before initialize() or after destroy()."""

    def __init__(self, message: str = "OcrPipeline is not initialized. Call initialize() first."):
        super().__init__(message)


class PipelineDestroyedError(NotInitializedError):
    """Raised when a destroyed pipeline is used or re-initialized."""

    def __init__(self, message: str = "OcrPipeline has been destroyed and cannot be reused."):
        super().__init__(message)


class InvalidDictionaryError(OcrError):
    """Raised when a character dictionary is empty or cannot be decoded."""
    pass


class InvalidCropError(OcrError):
    """Raised when a text box yields an empty crop."""
    pass


class DetectionFailure(OcrError):
    """Raised when detection inference or postprocessing fails."""
    pass


class RecognitionFailure(OcrError):
    """Raised when recognition inference or decoding fails."""
    pass


class ResourceLoadError(OcrError):
    """Raised when a model or dictionary resource cannot be fetched."""
    pass
