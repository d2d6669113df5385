"""API specific enrollment and verification models."""
from typing import List, Optional

from pydantic import BaseModel, Field

from faceauth.domain.value_objects.verification import (
    IdentitySummary,
    ProgressEvent,
    VerificationDecision,
)


class EnrollmentResponse(BaseModel):
    """Response model for the enroll endpoint."""
    identity: IdentitySummary = Field(..., description="The stored identity")
    progress: List[ProgressEvent] = Field(default_factory=list, description="Progress notifications")


class VerificationResponse(BaseModel):
    """Response model for the verify endpoint."""
    decision: VerificationDecision = Field(..., description="Accept/reject decision")
    progress: List[ProgressEvent] = Field(default_factory=list, description="Progress notifications")


class ErrorDetail(BaseModel):
    """Body of a failed engine operation."""
    error: str = Field(..., description="Error name, e.g. InsufficientSamples")
    message: str = Field(..., description="Human readable description")
    details: Optional[dict] = Field(None, description="Scores and counts for diagnostics")
