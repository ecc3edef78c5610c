"""Base class for ONNX Runtime inference with GPU/TensorRT support."""

from typing import Dict, List, Optional

import numpy as np
import onnxruntime
from onnxruntime.capi import _pybind_state as C

from .config import SessionOptions

PROVIDER_NAMES = {
    "tensorrt": "TensorrtExecutionProvider",
    "cuda": "CUDAExecutionProvider",
    "dml": "DmlExecutionProvider",
    "coreml": "CoreMLExecutionProvider",
    "cpu": "CPUExecutionProvider",
}

OPTIMIZATION_LEVELS = {
    "disabled": onnxruntime.GraphOptimizationLevel.ORT_DISABLE_ALL,
    "basic": onnxruntime.GraphOptimizationLevel.ORT_ENABLE_BASIC,
    "extended": onnxruntime.GraphOptimizationLevel.ORT_ENABLE_EXTENDED,
    "all": onnxruntime.GraphOptimizationLevel.ORT_ENABLE_ALL,
}

EXECUTION_MODES = {
    "sequential": onnxruntime.ExecutionMode.ORT_SEQUENTIAL,
    "parallel": onnxruntime.ExecutionMode.ORT_PARALLEL,
}


class ONNXInferenceBase:
    """ONNX Runtime session over an in-memory model.

    Implements the inference capability used by the OCR stages:
    ``run(named inputs) -> named outputs`` and ``release()``.
    """

    # InferenceSession.run may be called from several threads at once
    reentrant = True

    def __init__(self, model_bytes: bytes, options: Optional[SessionOptions] = None):
        """Initialize ONNX Runtime session.

        Args:
            model_bytes: Serialized ONNX model
            options: Session configuration (uses defaults if None)
        """
        if options is None:
            options = SessionOptions()

        self.session = onnxruntime.InferenceSession(
            bytes(model_bytes),
            sess_options=self._get_session_options(options),
            providers=self._get_providers(options.execution_providers),
        )

        # Cache input/output names
        self.input_names = [node.name for node in self.session.get_inputs()]
        self.output_names = [node.name for node in self.session.get_outputs()]

    @staticmethod
    def _get_session_options(options: SessionOptions) -> onnxruntime.SessionOptions:
        sess_opt = onnxruntime.SessionOptions()
        sess_opt.log_severity_level = 3
        sess_opt.enable_cpu_mem_arena = options.enable_cpu_mem_arena
        sess_opt.enable_mem_pattern = options.enable_mem_pattern
        sess_opt.graph_optimization_level = OPTIMIZATION_LEVELS.get(
            options.graph_optimization_level,
            onnxruntime.GraphOptimizationLevel.ORT_ENABLE_ALL,
        )
        sess_opt.execution_mode = EXECUTION_MODES.get(
            options.execution_mode,
            onnxruntime.ExecutionMode.ORT_SEQUENTIAL,
        )
        if options.inter_op_num_threads > 0:
            sess_opt.inter_op_num_threads = options.inter_op_num_threads
        if options.intra_op_num_threads > 0:
            sess_opt.intra_op_num_threads = options.intra_op_num_threads
        return sess_opt

    @staticmethod
    def _get_providers(requested: List[str]) -> List[str]:
        """Requested execution providers that are actually available.

        CPU is always appended as the fallback.
        """
        available_providers = C.get_available_providers()
        providers = []

        for name in requested:
            provider = PROVIDER_NAMES.get(name.lower(), name)
            if provider in available_providers and provider not in providers:
                providers.append(provider)

        if "CPUExecutionProvider" not in providers:
            providers.append("CPUExecutionProvider")

        return providers

    def get_input_feed(self, image_array: np.ndarray) -> Dict[str, np.ndarray]:
        """Map a single input tensor to the model's first input name."""
        return {self.input_names[0]: image_array}

    def run(self, input_feed: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        """Run inference on input data.

        Args:
            input_feed: Dictionary mapping input names to numpy arrays

        Returns:
            Dictionary mapping output names to arrays
        """
        if self.session is None:
            raise RuntimeError("Inference session has been released")
        outputs = self.session.run(self.output_names, input_feed=input_feed)
        return dict(zip(self.output_names, outputs))

    def release(self) -> None:
        """Drop the underlying session so onnxruntime can free its memory."""
        self.session = None

    def __repr__(self):
        return f"ONNXInferenceBase(inputs={self.input_names}, outputs={self.output_names})"
