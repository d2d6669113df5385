"""
Image-to-tensor preparation shared by every capture path.

A single `ImagePreprocessor` instance, built from one `Settings` object, is
used for enrollment and verification alike. Camera frames and gallery files
must go through exactly the same decode, padding, resize and normalization
steps; any divergence shows up as embeddings of the same person that no longer
match across capture paths.

Pixel buffers are RGB uint8 arrays of shape (height, width, 3). Tensors are
float32 arrays of shape (size, size, 3).
"""
from typing import NamedTuple, Tuple

import cv2
import numpy as np

from faceauth.core.config import Settings
from faceauth.core.utils.image import bytes_to_rgb_array

# (value - offset) / scale
DETECTION_NORMALIZATION = (0.0, 255.0)     # -> [0, 1]
RECOGNITION_NORMALIZATION = (127.5, 128.0)  # -> [-1, 1]


class Box(NamedTuple):
    """Axis-aligned rectangle in pixel coordinates."""
    x: float
    y: float
    width: float
    height: float

    def clamp(self, bounds_width: float, bounds_height: float) -> "Box":
        """Intersect the box with [0, bounds_width] x [0, bounds_height]."""
        x = min(max(0.0, self.x), bounds_width)
        y = min(max(0.0, self.y), bounds_height)
        right = min(max(0.0, self.x + self.width), bounds_width)
        bottom = min(max(0.0, self.y + self.height), bounds_height)
        return Box(x, y, max(0.0, right - x), max(0.0, bottom - y))


def pad_box(box: Box, ratio: float, bounds_width: float, bounds_height: float) -> Box:
    """Expand each side by `ratio` of the box size, then clamp to bounds."""
    pad_x = box.width * ratio
    pad_y = box.height * ratio
    padded = Box(box.x - pad_x, box.y - pad_y, box.width + 2 * pad_x, box.height + 2 * pad_y)
    return padded.clamp(bounds_width, bounds_height)


def pad_to_square(box: Box, padding_ratio: float, bounds_width: float, bounds_height: float) -> Box:
    """Pad each side, clamp, then grow the shorter side so width == height.

    The square is centred on the padded box and shifted (never shrunk) to stay
    inside the bounds; it only shrinks when the bounds themselves are smaller.
    """
    padded = pad_box(box, padding_ratio, bounds_width, bounds_height)
    side = min(max(padded.width, padded.height), bounds_width, bounds_height)
    x = padded.x - (side - padded.width) / 2
    y = padded.y - (side - padded.height) / 2
    x = min(max(0.0, x), bounds_width - side)
    y = min(max(0.0, y), bounds_height - side)
    return Box(x, y, side, side)


class ImagePreprocessor:
    """Decode, crop, pad, resize and normalize pixel buffers into model tensors."""

    def __init__(self, config: Settings) -> None:
        self.config = config

    def decode(self, image_bytes: bytes) -> Tuple[np.ndarray, int, int]:
        """
        Decode encoded image bytes.

        Returns:
            (pixels, width, height)

        Raises:
            DecodeError: If the bytes are not a decodable image
        """
        pixels = bytes_to_rgb_array(image_bytes)
        height, width = pixels.shape[:2]
        return pixels, width, height

    @staticmethod
    def resize_nearest(pixels: np.ndarray, target_width: int, target_height: int) -> np.ndarray:
        """Nearest-neighbour resize (source index = floor(dst * src / dst_size))."""
        return cv2.resize(
            pixels,
            (int(target_width), int(target_height)),
            interpolation=cv2.INTER_NEAREST,
        )

    def resize_normalize(
        self,
        pixels: np.ndarray,
        width: int,
        height: int,
        target_size: int,
        mean_offset: float,
        scale: float,
    ) -> np.ndarray:
        """Resize to target_size x target_size and apply (value - mean_offset) / scale."""
        if width <= 0 or height <= 0:
            raise ValueError(f"Cannot resize an empty {width}x{height} image")
        resized = self.resize_nearest(pixels[:height, :width], target_size, target_size)
        tensor = (resized.astype(np.float32) - np.float32(mean_offset)) / np.float32(scale)
        return np.ascontiguousarray(tensor, dtype=np.float32)

    @staticmethod
    def crop(
        pixels: np.ndarray,
        width: int,
        height: int,
        x: float,
        y: float,
        crop_width: float,
        crop_height: float,
    ) -> Tuple[np.ndarray, int, int]:
        """Copy a rectangle out of the image after clamping it to the image bounds."""
        x0 = int(min(max(0, np.floor(x)), width))
        y0 = int(min(max(0, np.floor(y)), height))
        w = int(max(0, min(np.floor(crop_width), width - x0)))
        h = int(max(0, min(np.floor(crop_height), height - y0)))
        cropped = pixels[y0:y0 + h, x0:x0 + w].copy()
        return cropped, w, h

    @staticmethod
    def letterbox(pixels: np.ndarray, width: int, height: int) -> Tuple[np.ndarray, int, int, int]:
        """Centre the image on a black square canvas.

        Returns:
            (canvas, side, offset_x, offset_y)
        """
        side = max(width, height)
        offset_x = (side - width) // 2
        offset_y = (side - height) // 2
        canvas = np.zeros((side, side, 3), dtype=pixels.dtype)
        canvas[offset_y:offset_y + height, offset_x:offset_x + width] = pixels[:height, :width]
        return canvas, side, offset_x, offset_y

    def resize_to_fit(self, pixels: np.ndarray, width: int, height: int, size: int) -> Tuple[np.ndarray, int, int]:
        """Aspect-preserving resize so the longer side equals `size`."""
        scale = size / max(width, height)
        new_width = max(1, int(round(width * scale)))
        new_height = max(1, int(round(height * scale)))
        return self.resize_nearest(pixels, new_width, new_height), new_width, new_height

    def detection_tensor(self, pixels: np.ndarray, width: int, height: int) -> Tuple[np.ndarray, float, int, int]:
        """Letterbox and normalize an image for the detector.

        Returns:
            (tensor, scale, offset_x, offset_y) where a detector coordinate `d`
            maps back to the source image as `d * scale - offset`.
        """
        canvas, side, offset_x, offset_y = self.letterbox(pixels, width, height)
        mean_offset, norm_scale = DETECTION_NORMALIZATION
        tensor = self.resize_normalize(
            canvas, side, side, self.config.DETECTION_SIZE, mean_offset, norm_scale
        )
        return tensor, side / self.config.DETECTION_SIZE, offset_x, offset_y

    def recognition_tensor(self, pixels: np.ndarray, width: int, height: int) -> np.ndarray:
        """Resize and normalize a face crop for the recognizer."""
        mean_offset, norm_scale = RECOGNITION_NORMALIZATION
        return self.resize_normalize(
            pixels, width, height, self.config.RECOGNITION_SIZE, mean_offset, norm_scale
        )
