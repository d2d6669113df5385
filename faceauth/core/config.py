"""Configuration settings for the face enrollment and verification engine."""
from typing import List

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    These settings are loaded from environment variables with the following precedence:
    1. Environment variables
    2. .env file
    3. Default values

    The numeric thresholds below were tuned for a BlazeFace short-range detector
    and a 512-d FaceNet recognizer. They are deployment calibration, not constants
    of nature: recalibrate them whenever either model changes.

    Attributes:
        VERIFICATION_THRESHOLD: Operating threshold a best match must reach (0-1)
        ABSOLUTE_MIN_THRESHOLD: Floor below which a match is not even considered
        MIN_CONFIDENCE_GAP: Required margin between best and runner-up identity
    """
    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="",
        env_nested_delimiter="__"
    )

    # Core Settings
    PROJECT_NAME: str = "Face Attendance Authentication Service"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"

    # CORS Settings
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    @property
    def cors_origins(self) -> List[str]:
        """Get list of allowed origins."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    # Model Settings
    DETECTION_MODEL_PATH: str = "models/blaze_face_short_range.onnx"
    RECOGNITION_MODEL_PATH: str = "models/facenet_512.onnx"
    ONNX_PROVIDERS: str = "CPUExecutionProvider"

    @property
    def onnx_providers(self) -> List[str]:
        """Get list of onnxruntime execution providers."""
        return [p.strip() for p in self.ONNX_PROVIDERS.split(",") if p.strip()]

    # Tensor geometry
    DETECTION_SIZE: int = 128
    RECOGNITION_SIZE: int = 160
    CANONICAL_SIZE: int = 512  # Whole-image size used before cropping for recognition
    EMBEDDING_SIZE: int = 512

    # Detector anchor layout (calibrate per exported detector)
    ANCHOR_GRID: int = 16
    ANCHOR_STRIDE: float = 8.0
    ANCHOR_BASE_SIZE: float = 32.0
    MIN_FACE_SIZE_PX: float = 10.0
    FACE_CONFIDENCE_MIN: float = 0.65
    ALIGNMENT_PADDING: float = 0.30

    # Liveness heuristics
    LIVENESS_SIZE: int = 128
    LIVENESS_SAMPLE_STEP: int = 2
    MIN_SKIN_RATIO: float = 0.20
    MIN_COLOR_VARIANCE: float = 60.0
    MAX_COLOR_VARIANCE: float = 6000.0

    # Embedding quality
    MIN_EMBEDDING_VARIANCE: float = 0.0005

    # Enrollment
    MIN_ENROLLMENT_SAMPLES: int = 3
    MAX_ENROLLMENT_SAMPLES: int = 10
    ENROLLMENT_CONSISTENCY_MIN: float = 0.25
    MIN_INTER_IDENTITY_DISTANCE: float = 0.15

    # Verification
    PROBE_COUNT: int = 3
    PROBE_CONSISTENCY_MIN: float = 0.50
    MAX_EMBEDDING_DISTANCE: float = 1.2
    TOP_K_SCORES: int = 5
    ABSOLUTE_MIN_THRESHOLD: float = 0.20
    VERIFICATION_THRESHOLD: float = 0.30
    MIN_CONFIDENCE_GAP: float = 0.15
    SUSPICIOUS_MATCH_CEILING: float = 0.99

    # Storage
    IDENTITY_STORE_PATH: str = "data/enrolled_identities.json"

    # Optional settings with defaults
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    @model_validator(mode="after")
    def check_thresholds(self) -> "Settings":
        """Reject threshold combinations that would weaken the acceptance policy."""
        if self.VERIFICATION_THRESHOLD < self.ABSOLUTE_MIN_THRESHOLD:
            raise ValueError("VERIFICATION_THRESHOLD must not be below ABSOLUTE_MIN_THRESHOLD")
        if self.MIN_ENROLLMENT_SAMPLES < 2:
            raise ValueError("MIN_ENROLLMENT_SAMPLES must be at least 2 for a consistency check")
        if self.MAX_ENROLLMENT_SAMPLES < self.MIN_ENROLLMENT_SAMPLES:
            raise ValueError("MAX_ENROLLMENT_SAMPLES must not be below MIN_ENROLLMENT_SAMPLES")
        if self.PROBE_COUNT < 2:
            raise ValueError("PROBE_COUNT must be at least 2 for a consistency check")
        if self.MAX_EMBEDDING_DISTANCE <= 0:
            raise ValueError("MAX_EMBEDDING_DISTANCE must be positive")
        return self


settings = Settings()
