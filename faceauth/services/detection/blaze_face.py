"""
Anchor-based single-shot face detection.

Wraps an external BlazeFace-style `DetectionModel`: the model sees a letterboxed
square tensor and returns one raw score and one box regression per anchor.
This module turns that into a single `FaceRegion` in source-image pixels.

Box decoding:
    Exported detectors disagree on how the four box values of an anchor are
    encoded. The decoder tries an ordered list of strategies and keeps the first
    one that yields a non-degenerate box:

    1. anchor-relative centre offset + exponential size
    2. normalized absolute centre + size
    3. normalized opposite corners

Note:
    The chain is a calibration safeguard, not verified ground truth. The anchor
    layout (grid, stride, base size) must be checked against the deployed model;
    see the ANCHOR_* settings.
"""
import math
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from faceauth.core.config import Settings
from faceauth.core.exceptions import (
    LowDetectionConfidenceError,
    ModelNotLoadedError,
    NoFaceDetectedError,
)
from faceauth.core.logging import get_logger
from faceauth.domain.entities.face import FaceRegion
from faceauth.domain.interfaces.recognition.models import DetectionModel
from faceauth.services.preprocessing import Box, ImagePreprocessor, pad_box

logger = get_logger(__name__)

# Decoder: (v0, v1, v2, v3, anchor_index) -> (cx, cy, w, h) in detection pixels
BoxDecoder = Callable[[float, float, float, float, int], Tuple[float, float, float, float]]


def sigmoid(x: np.ndarray) -> np.ndarray:
    # Clip keeps exp() finite for extreme logits.
    return 1.0 / (1.0 + np.exp(-np.clip(x, -80.0, 80.0)))


class BlazeFaceDetector:
    """Decode the best face out of an anchor-based detector.

    Example:
        ```python
        detector = BlazeFaceDetector(model, preprocessor, settings)
        region = detector.detect(pixels, width, height)
        ```
    """

    def __init__(self, model: DetectionModel, preprocessor: ImagePreprocessor, config: Settings) -> None:
        self.model = model
        self.preprocessor = preprocessor
        self.config = config
        self.decoders: List[Tuple[str, BoxDecoder]] = [
            ("anchor_relative", self._decode_anchor_relative),
            ("normalized_center", self._decode_normalized_center),
            ("normalized_corners", self._decode_normalized_corners),
        ]

    def anchor_center(self, index: int) -> Tuple[float, float]:
        """Centre of an anchor in detection-tensor pixels."""
        grid = self.config.ANCHOR_GRID
        stride = self.config.ANCHOR_STRIDE
        anchor_x = ((index % grid) + 0.5) * stride
        anchor_y = ((index // grid) % grid + 0.5) * stride
        return anchor_x, anchor_y

    def _decode_anchor_relative(self, v0, v1, v2, v3, index):
        size = self.config.DETECTION_SIZE
        base = self.config.ANCHOR_BASE_SIZE
        anchor_x, anchor_y = self.anchor_center(index)
        with np.errstate(over="ignore"):
            w = float(np.exp(v2)) * base
            h = float(np.exp(v3)) * base
        return anchor_x + v0 * size, anchor_y + v1 * size, w, h

    def _decode_normalized_center(self, v0, v1, v2, v3, index):
        size = self.config.DETECTION_SIZE
        return v0 * size, v1 * size, abs(v2) * size, abs(v3) * size

    def _decode_normalized_corners(self, v0, v1, v2, v3, index):
        size = self.config.DETECTION_SIZE
        x1, x2 = min(v0, v2) * size, max(v0, v2) * size
        y1, y2 = min(v1, v3) * size, max(v1, v3) * size
        return (x1 + x2) / 2, (y1 + y2) / 2, x2 - x1, y2 - y1

    def _is_degenerate(self, w: float, h: float) -> bool:
        min_size = self.config.MIN_FACE_SIZE_PX
        return not (math.isfinite(w) and math.isfinite(h)) or w < min_size or h < min_size

    def decode_box(self, values: Sequence[float], index: int) -> Optional[Box]:
        """Decode one anchor's regression into a box clamped to the detection canvas.

        Returns:
            The first non-degenerate box, or None if every strategy fails
        """
        v0, v1, v2, v3 = (float(v) for v in values[:4])
        size = float(self.config.DETECTION_SIZE)

        for name, decoder in self.decoders:
            cx, cy, w, h = decoder(v0, v1, v2, v3, index)
            if not (math.isfinite(cx) and math.isfinite(cy)) or self._is_degenerate(w, h):
                continue
            box = Box(cx - w / 2, cy - h / 2, w, h).clamp(size, size)
            if self._is_degenerate(box.width, box.height):
                continue
            logger.debug("Decoded face box", strategy=name, anchor=index, box=tuple(round(b, 1) for b in box))
            return box

        return None

    def decode(self, scores: np.ndarray, boxes: np.ndarray) -> Tuple[Box, float]:
        """Pick the best anchor and decode its padded box in detection-tensor pixels.

        Raises:
            NoFaceDetectedError: If the output is empty or no box decodes
            LowDetectionConfidenceError: If the best anchor is below FACE_CONFIDENCE_MIN
        """
        raw = np.asarray(scores, dtype=np.float64).reshape(-1)
        if raw.size == 0:
            raise NoFaceDetectedError("Detector returned no anchors")

        confidences = sigmoid(np.where(np.isnan(raw), -np.inf, raw))
        best_index = int(np.argmax(confidences))
        best_confidence = float(confidences[best_index])

        if not best_confidence >= self.config.FACE_CONFIDENCE_MIN:
            raise LowDetectionConfidenceError(best_confidence, self.config.FACE_CONFIDENCE_MIN)

        regression = np.asarray(boxes, dtype=np.float64).reshape(raw.size, -1)
        if regression.shape[1] < 4:
            raise NoFaceDetectedError(
                "Detector box output has fewer than 4 values per anchor",
                {"values_per_anchor": int(regression.shape[1])},
            )

        box = self.decode_box(regression[best_index], best_index)
        if box is None:
            raise NoFaceDetectedError(
                "No face detected. Please show your face clearly.",
                {"anchor": best_index, "confidence": best_confidence},
            )

        size = float(self.config.DETECTION_SIZE)
        padded = pad_box(box, self.config.ALIGNMENT_PADDING, size, size)
        return padded, best_confidence

    def detect(self, pixels: np.ndarray, width: int, height: int) -> FaceRegion:
        """
        Detect the most confident face in an RGB image.

        Args:
            pixels: RGB uint8 image
            width: Image width in pixels
            height: Image height in pixels

        Returns:
            FaceRegion in source-image pixel coordinates

        Raises:
            ModelNotLoadedError: If the detection model is not loaded
            NoFaceDetectedError: If no face can be decoded
            LowDetectionConfidenceError: If the best face is not confident enough
        """
        if not self.model.is_loaded:
            raise ModelNotLoadedError("Detection model not loaded")

        tensor, scale, offset_x, offset_y = self.preprocessor.detection_tensor(pixels, width, height)
        output = self.model.run(tensor)
        box, confidence = self.decode(output.scores, output.boxes)

        # Undo the resize, then the letterbox offset.
        projected = Box(
            box.x * scale - offset_x,
            box.y * scale - offset_y,
            box.width * scale,
            box.height * scale,
        ).clamp(float(width), float(height))

        if projected.width <= 0 or projected.height <= 0:
            raise NoFaceDetectedError("Detected face lies outside the image")

        logger.debug(
            "Face detected",
            confidence=round(confidence, 3),
            region=tuple(round(v, 1) for v in projected),
        )
        return FaceRegion(
            x=projected.x,
            y=projected.y,
            width=projected.width,
            height=projected.height,
            confidence=confidence,
        )
