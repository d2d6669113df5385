"""
Image processing utility functions.
"""
import cv2
import numpy as np

from faceauth.core.exceptions import DecodeError


def bytes_to_rgb_array(image_bytes: bytes) -> np.ndarray:
    """Convert encoded image bytes to an RGB numpy array.

    Args:
        image_bytes: Raw encoded image bytes (PNG, JPEG, ...)

    Returns:
        numpy.ndarray: uint8 image of shape (height, width, 3) in RGB order

    Raises:
        DecodeError: If the image cannot be decoded
    """
    if not image_bytes:
        raise DecodeError("Empty image payload")

    np_array = np.frombuffer(image_bytes, np.uint8)
    try:
        img = cv2.imdecode(np_array, cv2.IMREAD_COLOR)
    except cv2.error as e:
        raise DecodeError(f"Failed to decode image bytes: {e}") from e

    if img is None or img.size == 0:
        raise DecodeError("Failed to decode image bytes")

    return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)


def rgb_array_to_png(pixels: np.ndarray) -> bytes:
    """Encode an RGB numpy array as PNG bytes."""
    ok, buffer = cv2.imencode(".png", cv2.cvtColor(pixels, cv2.COLOR_RGB2BGR))
    if not ok:
        raise DecodeError("Failed to encode image as PNG")
    return buffer.tobytes()
