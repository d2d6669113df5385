"""Capture interfaces package."""
from .image_source import ImageSource

__all__ = ["ImageSource"]
