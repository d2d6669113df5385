"""Domain entities package."""
from .face import FaceRegion
from .identity import EnrollmentSource, IdentityRecord

__all__ = ["FaceRegion", "EnrollmentSource", "IdentityRecord"]
