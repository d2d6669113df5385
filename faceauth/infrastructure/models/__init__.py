"""Model runtime adapters."""
from .onnx import OnnxDetectionModel, OnnxRecognitionModel

__all__ = ["OnnxDetectionModel", "OnnxRecognitionModel"]
