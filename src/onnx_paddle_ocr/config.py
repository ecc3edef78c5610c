"""Configuration classes for the OCR pipeline."""

from dataclasses import dataclass, field, fields, is_dataclass, replace
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple, Union

ResourceSource = Union[bytes, bytearray, memoryview, str, Path]


@dataclass
class DetectionOptions:
    """Configuration for text detection stage."""
    auto_deskew: bool = False  # Estimate skew and rotate before detecting boxes
    mean: Tuple[float, float, float] = (0.485, 0.456, 0.406)  # Per-channel mean [R, G, B]
    std: Tuple[float, float, float] = (0.229, 0.224, 0.225)  # Per-channel std [R, G, B]
    max_side_length: int = 640  # Longest side after downscaling
    padding_vertical: float = 0.4  # Fraction of box height added above and below
    padding_horizontal: float = 0.6  # Fraction of box height added left and right
    minimum_area_threshold: int = 25  # Contours at or below this area are dropped


@dataclass
class RecognitionOptions:
    """Configuration for text recognition stage."""
    image_height: int = 48  # Fixed input height for the recognition model
    characters_dictionary: List[str] = field(default_factory=list)  # Index = class id


@dataclass
class SessionOptions:
    """ONNX Runtime session configuration."""
    execution_providers: List[str] = field(default_factory=lambda: ["cuda", "cpu"])
    graph_optimization_level: str = "all"  # 'disabled', 'basic', 'extended' or 'all'
    enable_cpu_mem_arena: bool = True
    enable_mem_pattern: bool = True
    execution_mode: str = "sequential"  # 'sequential' or 'parallel'
    inter_op_num_threads: int = 0  # 0 lets onnxruntime decide
    intra_op_num_threads: int = 0


@dataclass
class DebuggingOptions:
    """Verbose logging and intermediate image dumps."""
    verbose: bool = False  # Log pipeline steps at INFO instead of DEBUG
    debug: bool = False  # Write intermediate images to debug_folder
    debug_folder: str = "out"


@dataclass
class ModelSources:
    """Where to load models and the dictionary from.

    Each entry may be raw bytes, a local path, or an http(s) URL.
    ``None`` selects the default model download.
    """
    detection: Optional[ResourceSource] = None
    recognition: Optional[ResourceSource] = None
    characters_dictionary: Optional[ResourceSource] = None


@dataclass
class OcrConfig:
    """Full configuration for OcrPipeline."""
    model: ModelSources = field(default_factory=ModelSources)
    detection: DetectionOptions = field(default_factory=DetectionOptions)
    recognition: RecognitionOptions = field(default_factory=RecognitionOptions)
    debugging: DebuggingOptions = field(default_factory=DebuggingOptions)
    session: SessionOptions = field(default_factory=SessionOptions)

    @classmethod
    def merged(cls, overrides: Optional[Mapping[str, Any]] = None) -> "OcrConfig":
        """Build a config from defaults with a nested mapping of overrides.

        Example:
            OcrConfig.merged({"detection": {"auto_deskew": True}})
        """
        return _merge(cls(), overrides or {})


def _merge(instance: Any, overrides: Mapping[str, Any]) -> Any:
    known = {f.name for f in fields(instance)}
    changes = {}
    for key, value in overrides.items():
        if key not in known:
            raise KeyError(f"Unknown option '{key}' for {type(instance).__name__}")
        current = getattr(instance, key)
        if is_dataclass(current) and isinstance(value, Mapping):
            changes[key] = _merge(current, value)
        else:
            changes[key] = value
    return replace(instance, **changes)
