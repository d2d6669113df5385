"""Face detection services."""
from .blaze_face import BlazeFaceDetector

__all__ = ["BlazeFaceDetector"]
