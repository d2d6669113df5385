"""FastAPI dependency providers."""
from fastapi import HTTPException

from faceauth.core.container import container
from faceauth.services.engine import FaceAuthEngine


async def get_engine() -> FaceAuthEngine:
    """Provide the initialized face authentication engine.

    Raises:
        HTTPException: 503 if the engine is missing or its models are not loaded
    """
    engine = container.engine
    if engine is None or not engine.is_ready:
        raise HTTPException(status_code=503, detail="Face authentication engine not initialized")
    return engine
