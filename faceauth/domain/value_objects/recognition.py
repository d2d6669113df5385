"""Face recognition value objects."""
import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from faceauth.domain.entities.face import FaceRegion


class DetectionOutput(BaseModel):
    """Raw output of the external detection model."""
    scores: np.ndarray = Field(..., description="Per-anchor raw (pre-sigmoid) face scores")
    boxes: np.ndarray = Field(..., description="Per-anchor box regression values")

    model_config = ConfigDict(arbitrary_types_allowed=True)


class ExtractionResult(BaseModel):
    """Result of turning one image into an embedding."""
    embedding: np.ndarray = Field(..., description="Unit-norm face embedding")
    confidence: float = Field(..., description="Detector confidence of the face", ge=0.0, le=1.0)
    face_region: FaceRegion = Field(..., description="Detected face in source-image pixels")

    model_config = ConfigDict(arbitrary_types_allowed=True)
