"""Verification and engine status value objects."""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from faceauth.core.exceptions import (
    RejectedAmbiguousMatchError,
    RejectedBelowThresholdError,
    RejectedLowConfidenceError,
    RejectedSuspiciousMatchError,
)
from faceauth.domain.entities.identity import EnrollmentSource


class Outcome(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class ReasonCode(str, Enum):
    """Why a verification attempt ended the way it did."""
    ACCEPTED = "ACCEPTED"
    REJECTED_LOW_CONFIDENCE = "REJECTED_LOW_CONFIDENCE"
    REJECTED_BELOW_THRESHOLD = "REJECTED_BELOW_THRESHOLD"
    REJECTED_AMBIGUOUS_MATCH = "REJECTED_AMBIGUOUS_MATCH"
    REJECTED_SUSPICIOUS_MATCH = "REJECTED_SUSPICIOUS_MATCH"


_REJECTION_ERRORS = {
    ReasonCode.REJECTED_LOW_CONFIDENCE: RejectedLowConfidenceError,
    ReasonCode.REJECTED_BELOW_THRESHOLD: RejectedBelowThresholdError,
    ReasonCode.REJECTED_AMBIGUOUS_MATCH: RejectedAmbiguousMatchError,
    ReasonCode.REJECTED_SUSPICIOUS_MATCH: RejectedSuspiciousMatchError,
}


class VerificationDecision(BaseModel):
    """Outcome of one verification attempt. Never persisted by the engine."""
    outcome: Outcome = Field(..., description="Accept or reject")
    identity_id: Optional[str] = Field(None, description="Matched identity, only set on accept")
    display_name: Optional[str] = Field(None, description="Matched identity name, only set on accept")
    best_score: float = Field(..., description="Match score of the best identity")
    runner_up_score: float = Field(..., description="Match score of the second best identity")
    reason_code: ReasonCode = Field(..., description="Policy step that decided the outcome")
    message: str = Field("", description="Human readable explanation")
    processing_time_ms: float = Field(0.0, description="Wall time of the attempt")

    @property
    def accepted(self) -> bool:
        return self.outcome == Outcome.ACCEPT

    def raise_for_outcome(self) -> None:
        """Raise the matching Rejected* error if the attempt was rejected."""
        if self.accepted:
            return
        error_cls = _REJECTION_ERRORS[self.reason_code]
        raise error_cls(self.message, self.best_score, self.runner_up_score)


class IdentitySummary(BaseModel):
    """Diagnostic view of one enrolled identity (no embeddings)."""
    identity_id: str
    display_name: str
    sample_count: int
    enrollment_source: EnrollmentSource
    updated_at: datetime


class EngineStatus(BaseModel):
    """Snapshot of what the engine has enrolled."""
    enrolled_count: int = Field(..., description="Number of enrolled identities")
    per_identity_sample_counts: Dict[str, int] = Field(default_factory=dict)
    identities: List[IdentitySummary] = Field(default_factory=list)


class ProgressEvent(BaseModel):
    """One progress notification during a long enroll/verify call."""
    step: int
    total: int
    message: str
