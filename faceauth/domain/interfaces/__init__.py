"""Collaborator interfaces package."""
from .capture import ImageSource
from .progress import ProgressReporter
from .recognition import DetectionModel, RecognitionModel
from .storage import IdentityRepository

__all__ = [
    "DetectionModel",
    "IdentityRepository",
    "ImageSource",
    "ProgressReporter",
    "RecognitionModel",
]
