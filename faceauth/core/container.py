"""Service container for dependency injection."""
import asyncio
from typing import Optional

from faceauth.core.config import Settings, settings
from faceauth.core.logging import get_logger
from faceauth.infrastructure.models import OnnxDetectionModel, OnnxRecognitionModel
from faceauth.infrastructure.storage import JsonFileIdentityRepository
from faceauth.services.engine import FaceAuthEngine

logger = get_logger(__name__)


def build_engine(config: Settings) -> FaceAuthEngine:
    """Wire a FaceAuthEngine from settings with the ONNX models and JSON store."""
    return FaceAuthEngine(
        detection_model=OnnxDetectionModel(config.DETECTION_MODEL_PATH, providers=config.onnx_providers),
        recognition_model=OnnxRecognitionModel(config.RECOGNITION_MODEL_PATH, providers=config.onnx_providers),
        repository=JsonFileIdentityRepository(config.IDENTITY_STORE_PATH),
        config=config,
    )


class ServiceContainer:
    """Container for application services.

    Owns the engine instance used by the HTTP layer. The engine is still an
    explicit object: tests and embedders can install their own with `engine=`.

    Example:
        ```python
        container = ServiceContainer()
        await container.initialize()
        engine = container.engine
        ```
    """

    def __init__(self, engine: Optional[FaceAuthEngine] = None) -> None:
        """Initialize container, optionally with a pre-built engine."""
        self.engine: Optional[FaceAuthEngine] = engine

    async def initialize(self, config: Optional[Settings] = None) -> bool:
        """Build (if needed) and initialize the engine.

        Returns:
            Whether the engine is ready. A failed load leaves the engine in place
            so a later initialize can retry.
        """
        if self.engine is None:
            self.engine = build_engine(config or settings)
        ready = await asyncio.to_thread(self.engine.initialize)
        if not ready:
            logger.error("Face authentication engine failed to initialize")
        return ready

    async def cleanup(self) -> None:
        """Drop the engine reference."""
        self.engine = None


# Global container instance
container = ServiceContainer()
