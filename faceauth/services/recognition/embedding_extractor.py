"""
Image-to-embedding pipeline.

Orchestrates detection, liveness, canonical re-crop and the external
recognition model, and quality-checks what the recognizer returns.

The face crop is never taken from the original-resolution image. The whole
image is first resized to a fixed canonical size and the face box recomputed
inside it, so the crop geometry is the same whatever resolution or aspect
ratio the capture path produced.

Example:
    ```python
    extractor = EmbeddingExtractor(detector, liveness, recognizer, preprocessor, settings)
    with open("probe.png", "rb") as f:
        result = extractor.extract(f.read())
    ```
"""
import numpy as np

from faceauth.core.config import Settings
from faceauth.core.exceptions import DegenerateEmbeddingError, ModelNotLoadedError
from faceauth.core.logging import get_logger
from faceauth.core.utils.scoring import l2_normalize
from faceauth.domain.interfaces.recognition.models import RecognitionModel
from faceauth.domain.value_objects.recognition import ExtractionResult
from faceauth.services.detection.blaze_face import BlazeFaceDetector
from faceauth.services.liveness import HeuristicLivenessValidator
from faceauth.services.preprocessing import Box, ImagePreprocessor, pad_to_square

logger = get_logger(__name__)

# Components closer than this are treated as equal.
EQUALITY_TOLERANCE = 1e-4


class EmbeddingExtractor:
    """Turns one encoded image into a unit-norm face embedding."""

    def __init__(
        self,
        detector: BlazeFaceDetector,
        liveness: HeuristicLivenessValidator,
        model: RecognitionModel,
        preprocessor: ImagePreprocessor,
        config: Settings,
    ) -> None:
        self.detector = detector
        self.liveness = liveness
        self.model = model
        self.preprocessor = preprocessor
        self.config = config

    def validate_embedding(self, raw: np.ndarray) -> np.ndarray:
        """
        Quality-check a raw recognizer output and L2-normalize it.

        Raises:
            DegenerateEmbeddingError: If the vector is the wrong length, non-finite,
                all zero, all equal or has too little variance
        """
        embedding = np.asarray(raw, dtype=np.float64).reshape(-1)

        if embedding.size != self.config.EMBEDDING_SIZE:
            raise DegenerateEmbeddingError(
                f"Unexpected embedding size {embedding.size}",
                {"size": int(embedding.size), "expected": self.config.EMBEDDING_SIZE},
            )
        if not np.all(np.isfinite(embedding)):
            raise DegenerateEmbeddingError("Embedding contains invalid values")
        if np.all(np.abs(embedding) < EQUALITY_TOLERANCE):
            raise DegenerateEmbeddingError("All zeros embedding")

        normalized = l2_normalize(embedding)

        if np.all(np.abs(normalized - normalized[0]) < EQUALITY_TOLERANCE):
            raise DegenerateEmbeddingError("No variance in embedding")
        variance = float(np.var(normalized))
        if variance < self.config.MIN_EMBEDDING_VARIANCE:
            raise DegenerateEmbeddingError(
                f"Low embedding variance: {variance:.6f}",
                {"variance": variance, "required": self.config.MIN_EMBEDDING_VARIANCE},
            )
        return normalized

    def extract(self, image_bytes: bytes) -> ExtractionResult:
        """
        Extract the embedding of the most confident face in an image.

        Args:
            image_bytes: Encoded image (PNG, JPEG, ...)

        Returns:
            ExtractionResult with the unit embedding and detector confidence

        Raises:
            ModelNotLoadedError: If the recognition model is not loaded
            DecodeError: If the image cannot be decoded
            NoFaceDetectedError: If no face is found
            LowDetectionConfidenceError: If the face is not confident enough
            NotLiveFaceError: If the liveness heuristics reject the face
            DegenerateEmbeddingError: If the recognizer output is unusable
        """
        if not self.model.is_loaded:
            raise ModelNotLoadedError("Recognition model not loaded")

        pixels, width, height = self.preprocessor.decode(image_bytes)

        region = self.detector.detect(pixels, width, height)
        self.liveness.validate(pixels, width, height, region)

        canonical, canon_w, canon_h = self.preprocessor.resize_to_fit(
            pixels, width, height, self.config.CANONICAL_SIZE
        )
        scaled = region.scaled(canon_w / width, canon_h / height)
        square = pad_to_square(
            Box(scaled.x, scaled.y, scaled.width, scaled.height),
            self.config.ALIGNMENT_PADDING,
            float(canon_w),
            float(canon_h),
        )
        crop, crop_w, crop_h = self.preprocessor.crop(
            canonical, canon_w, canon_h, square.x, square.y, square.width, square.height
        )
        if crop_w == 0 or crop_h == 0:
            raise DegenerateEmbeddingError("Face crop is empty")

        tensor = self.preprocessor.recognition_tensor(crop, crop_w, crop_h)
        raw = self.model.run(tensor)
        embedding = self.validate_embedding(raw)

        logger.debug(
            "Embedding extracted",
            confidence=round(region.confidence, 3),
            crop_size=crop_w,
            source_size=(width, height),
        )
        return ExtractionResult(embedding=embedding, confidence=region.confidence, face_region=region)
