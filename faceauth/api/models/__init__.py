"""API request/response models."""
from .auth import EnrollmentResponse, ErrorDetail, VerificationResponse

__all__ = ["EnrollmentResponse", "ErrorDetail", "VerificationResponse"]
