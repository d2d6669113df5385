"""Enrolled identity entity."""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

# Tolerance on the unit norm of every stored embedding.
MIN_STORED_NORM = 0.99
MAX_STORED_NORM = 1.01


class EnrollmentSource(str, Enum):
    """Where the enrollment images came from."""
    CAMERA = "camera"
    GALLERY = "gallery"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IdentityRecord(BaseModel):
    """Reference embeddings for one enrolled person."""
    identity_id: str = Field(..., description="Caller-assigned identity identifier", min_length=1)
    display_name: str = Field(..., description="Human readable name")
    embeddings: List[np.ndarray] = Field(..., description="Unit-norm reference embeddings")
    enrollment_source: EnrollmentSource = Field(..., description="Capture path used at enrollment")
    created_at: datetime = Field(default_factory=utc_now, description="First enrollment time")
    updated_at: datetime = Field(default_factory=utc_now, description="Last (re-)enrollment time")

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("embeddings", mode="before")
    @classmethod
    def validate_embeddings(cls, v: List[Union[np.ndarray, list]]) -> List[np.ndarray]:
        """Convert embeddings to float32 arrays and enforce the unit-norm invariant."""
        if not v:
            raise ValueError("An identity needs at least one embedding")

        arrays = [np.asarray(emb, dtype=np.float32).reshape(-1) for emb in v]
        dims = {arr.size for arr in arrays}
        if len(dims) != 1:
            raise ValueError(f"Embeddings have inconsistent lengths: {sorted(dims)}")

        for arr in arrays:
            if not np.all(np.isfinite(arr)):
                raise ValueError("Embedding contains non-finite values")
            norm = float(np.linalg.norm(arr))
            if not MIN_STORED_NORM <= norm <= MAX_STORED_NORM:
                raise ValueError(f"Embedding norm {norm:.4f} is not unit length")
        return arrays

    @field_serializer("embeddings")
    def serialize_embeddings(self, embeddings: List[np.ndarray]) -> List[List[float]]:
        return [emb.astype(float).tolist() for emb in embeddings]

    @property
    def sample_count(self) -> int:
        return len(self.embeddings)
