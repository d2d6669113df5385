"""
Heuristic liveness checks on a detected face.

This is a coarse presentation-attack filter. It catches blank panels, flat
printouts and non-face textures; it does NOT replace active or 3D liveness
detection and callers must not treat a pass as proof of a live person.

Checks run cheapest first and stop at the first failure:

1. Skin-tone ratio over a sparse disk at the face centre.
2. Luminance variance over a sparse grid across the face (too flat or too noisy).

Both checks run on a fixed-size reduction of the image so the result does not
depend on the source resolution.
"""
from typing import Tuple

import numpy as np

from faceauth.core.config import Settings
from faceauth.core.exceptions import NotLiveFaceError
from faceauth.core.logging import get_logger
from faceauth.domain.entities.face import FaceRegion
from faceauth.services.preprocessing import ImagePreprocessor

logger = get_logger(__name__)

MAX_SAMPLE_RADIUS = 15


def skin_mask(pixels: np.ndarray) -> np.ndarray:
    """Classify RGB pixels as skin if any of the RGB, YCbCr or HSV rules match.

    Args:
        pixels: (..., 3) array of RGB values in [0, 255]

    Returns:
        Boolean array with the leading shape of `pixels`
    """
    rgb = np.asarray(pixels, dtype=np.float64)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    max_c = np.maximum(np.maximum(r, g), b)
    min_c = np.minimum(np.minimum(r, g), b)
    delta = max_c - min_c

    rgb_rule = (
        (r > 95) & (g > 40) & (b > 20)
        & (delta > 15)
        & (np.abs(r - g) > 15) & (r > g) & (r > b)
    )

    y = 0.299 * r + 0.587 * g + 0.114 * b
    cb = -0.169 * r - 0.331 * g + 0.5 * b + 128
    cr = 0.5 * r - 0.419 * g - 0.081 * b + 128
    ycbcr_rule = (y > 80) & (cb >= 85) & (cb <= 135) & (cr >= 135) & (cr <= 180)

    safe_delta = np.where(delta == 0, 1.0, delta)
    hue = np.select(
        [delta == 0, max_c == r, max_c == g],
        [
            0.0,
            60.0 * np.mod((g - b) / safe_delta, 6.0),
            60.0 * ((b - r) / safe_delta + 2.0),
        ],
        default=60.0 * ((r - g) / safe_delta + 4.0),
    )
    hue = np.where(hue < 0, hue + 360.0, hue)
    saturation = np.where(max_c == 0, 0.0, delta / np.where(max_c == 0, 1.0, max_c))
    value = max_c / 255.0
    hsv_rule = (hue >= 0) & (hue <= 50) & (saturation >= 0.15) & (saturation <= 0.7) & (value >= 0.3)

    return rgb_rule | ycbcr_rule | hsv_rule


def luminance(pixels: np.ndarray) -> np.ndarray:
    rgb = np.asarray(pixels, dtype=np.float64)
    return 0.299 * rgb[..., 0] + 0.587 * rgb[..., 1] + 0.114 * rgb[..., 2]


class HeuristicLivenessValidator:
    """Skin-tone and color-variance checks on a candidate face region."""

    def __init__(self, preprocessor: ImagePreprocessor, config: Settings) -> None:
        self.preprocessor = preprocessor
        self.config = config

    def _reduce(
        self, pixels: np.ndarray, width: int, height: int, region: FaceRegion
    ) -> Tuple[np.ndarray, int, int, int, int, int, int]:
        """Shrink the image to LIVENESS_SIZE and map the region into it."""
        small, small_w, small_h = self.preprocessor.resize_to_fit(
            pixels, width, height, self.config.LIVENESS_SIZE
        )
        scale_x = small_w / width
        scale_y = small_h / height
        x = max(0, int(np.floor(region.x * scale_x)))
        y = max(0, int(np.floor(region.y * scale_y)))
        w = max(0, min(int(np.floor(region.width * scale_x)), small_w - x))
        h = max(0, min(int(np.floor(region.height * scale_y)), small_h - y))
        return small, small_w, small_h, x, y, w, h

    def skin_ratio(self, pixels: np.ndarray, width: int, height: int, x: int, y: int, w: int, h: int) -> float:
        """Fraction of skin pixels in a sparse disk at the region centre."""
        center_x = x + w // 2
        center_y = y + h // 2
        radius = max(0, min(MAX_SAMPLE_RADIUS, w // 6))
        step = max(1, self.config.LIVENESS_SAMPLE_STEP)

        offsets = np.arange(-(radius // step) * step, radius + 1, step)
        dx, dy = np.meshgrid(offsets, offsets)
        in_disk = dx ** 2 + dy ** 2 <= radius ** 2
        px = center_x + dx[in_disk]
        py = center_y + dy[in_disk]
        inside = (px >= 0) & (px < width) & (py >= 0) & (py < height)
        if not np.any(inside):
            return 0.0

        samples = pixels[py[inside], px[inside]]
        return float(np.mean(skin_mask(samples)))

    @staticmethod
    def color_variance(pixels: np.ndarray, width: int, height: int, x: int, y: int, w: int, h: int) -> float:
        """Luminance variance over a sparse grid across the region."""
        step = max(2, min(w, h) // 20)
        xs = np.arange(x, x + w, step)
        ys = np.arange(y, y + h, step)
        xs = xs[(xs >= 0) & (xs < width)]
        ys = ys[(ys >= 0) & (ys < height)]
        if xs.size == 0 or ys.size == 0:
            return 0.0
        samples = pixels[np.ix_(ys, xs)]
        return float(np.var(luminance(samples)))

    def validate(self, pixels: np.ndarray, width: int, height: int, region: FaceRegion) -> None:
        """
        Run the liveness heuristics on a detected face.

        Args:
            pixels: Original RGB image
            width: Image width
            height: Image height
            region: Detected face in original-image pixels

        Raises:
            NotLiveFaceError: On the first failed check
        """
        small, small_w, small_h, x, y, w, h = self._reduce(pixels, width, height, region)

        ratio = self.skin_ratio(small, small_w, small_h, x, y, w, h)
        if ratio < self.config.MIN_SKIN_RATIO:
            logger.info("Liveness rejected", check="skin_ratio", value=round(ratio, 3))
            raise NotLiveFaceError("skin_ratio", ratio)

        variance = self.color_variance(small, small_w, small_h, x, y, w, h)
        if variance < self.config.MIN_COLOR_VARIANCE:
            logger.info("Liveness rejected", check="color_variance_low", value=round(variance, 1))
            raise NotLiveFaceError("color_variance_low", variance)
        if variance > self.config.MAX_COLOR_VARIANCE:
            logger.info("Liveness rejected", check="color_variance_high", value=round(variance, 1))
            raise NotLiveFaceError("color_variance_high", variance)

        logger.debug("Liveness passed", skin_ratio=round(ratio, 3), color_variance=round(variance, 1))
