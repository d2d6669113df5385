"""Image source implementations."""
from .sources import CameraImageSource, DirectoryImageSource, InMemoryImageSource

__all__ = ["CameraImageSource", "DirectoryImageSource", "InMemoryImageSource"]
