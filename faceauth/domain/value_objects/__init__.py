"""Value objects package."""
from .recognition import DetectionOutput, ExtractionResult
from .verification import (
    EngineStatus,
    IdentitySummary,
    Outcome,
    ProgressEvent,
    ReasonCode,
    VerificationDecision,
)

__all__ = [
    "DetectionOutput",
    "ExtractionResult",
    "EngineStatus",
    "IdentitySummary",
    "Outcome",
    "ProgressEvent",
    "ReasonCode",
    "VerificationDecision",
]
