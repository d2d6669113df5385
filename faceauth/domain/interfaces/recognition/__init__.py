"""Model interfaces package."""
from .models import DetectionModel, RecognitionModel

__all__ = ["DetectionModel", "RecognitionModel"]
