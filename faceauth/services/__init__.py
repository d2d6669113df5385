"""Services package."""
from .engine import FaceAuthEngine
from .enrollment import EnrollmentManager, EnrollmentState
from .verification import VerificationEngine

__all__ = ["FaceAuthEngine", "EnrollmentManager", "EnrollmentState", "VerificationEngine"]
