"""Custom exceptions for face enrollment and verification."""
from typing import Optional


class FaceAuthError(Exception):
    """Base exception for face authentication operations."""

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize face authentication error.

        Args:
            message: Error description
            details: Additional error context (scores, counts) for caller diagnostics
        """
        super().__init__(message)
        self.details = details or {}

    @property
    def code(self) -> str:
        """Stable machine-readable error name."""
        return type(self).__name__.removesuffix("Error")


class ModelNotLoadedError(FaceAuthError):
    """Raised when an operation needs a model that has not been loaded."""
    pass


class ModelLoadError(FaceAuthError):
    """Raised when the detection or recognition model fails to load."""
    pass


class StorageError(FaceAuthError):
    """Raised when the identity repository cannot be read or written."""
    pass


class CaptureError(FaceAuthError):
    """Raised when an image source cannot deliver images (e.g. camera unavailable)."""
    pass


# Per-sample extraction failures


class ExtractionError(FaceAuthError):
    """Base exception for failures while turning one image into an embedding."""
    pass


class DecodeError(ExtractionError):
    """Raised when the provided image bytes cannot be decoded."""
    pass


class NoFaceDetectedError(ExtractionError):
    """Raised when no face is detected in the image."""
    pass


class LowDetectionConfidenceError(NoFaceDetectedError):
    """Raised when the best detector anchor does not clear the confidence floor."""

    def __init__(self, confidence: float, required: float):
        super().__init__(
            f"Face confidence too low ({confidence:.2f} < {required:.2f})",
            {"confidence": confidence, "required": required},
        )


class NotLiveFaceError(ExtractionError):
    """Raised when a detected face fails the heuristic liveness checks."""

    def __init__(self, check: str, value: float):
        super().__init__(
            f"Not a live face: {check} check failed ({value:.3f})",
            {"check": check, "value": value},
        )


class DegenerateEmbeddingError(ExtractionError):
    """Raised when the recognizer output is not a usable embedding."""
    pass


# Enrollment failures


class EnrollmentError(FaceAuthError):
    """Base exception for enrollment operations."""
    pass


class EnrollmentInProgressError(EnrollmentError):
    """Raised when an enrollment is requested while another one is running."""

    def __init__(self) -> None:
        super().__init__("Another enrollment is in progress")


class InconsistentSamplesError(EnrollmentError):
    """Raised when the enrollment samples do not look like the same person."""

    def __init__(self, average: float, required: float):
        super().__init__(
            f"Samples not consistent enough ({average:.2f} < {required:.2f})",
            {"average": average, "required": required},
        )
        self.average = average


class DuplicateIdentityError(EnrollmentError):
    """Raised when the new samples are too similar to another enrolled identity."""

    def __init__(self, conflict_id: str, similarity: float):
        super().__init__(
            f"Face too similar to enrolled identity {conflict_id!r} ({similarity:.2f})",
            {"conflict_id": conflict_id, "similarity": similarity},
        )
        self.conflict_id = conflict_id
        self.similarity = similarity


# Verification failures


class VerificationError(FaceAuthError):
    """Base exception for verification operations."""
    pass


class InsufficientSamplesError(EnrollmentError, VerificationError):
    """Raised when too few images produced a valid embedding."""

    def __init__(self, got: int, required: int):
        FaceAuthError.__init__(
            self,
            f"Only {got} samples processed successfully, need at least {required}",
            {"got": got, "required": required},
        )
        self.got = got
        self.required = required


class NoEnrolledIdentitiesError(VerificationError):
    """Raised when verification is attempted with an empty identity store."""

    def __init__(self) -> None:
        super().__init__("No enrolled identities, enroll first")


class UnstableCaptureError(VerificationError):
    """Raised when the probe samples disagree with each other."""

    def __init__(self, average: float, required: float):
        super().__init__(
            f"Unstable capture ({average:.2f} < {required:.2f}), hold still and try again",
            {"average": average, "required": required},
        )
        self.average = average


class VerificationRejectedError(VerificationError):
    """Base exception for a completed verification that did not accept."""

    def __init__(self, message: str, best_score: float, runner_up_score: float):
        super().__init__(
            message,
            {"best_score": best_score, "runner_up_score": runner_up_score},
        )
        self.best_score = best_score
        self.runner_up_score = runner_up_score


class RejectedLowConfidenceError(VerificationRejectedError):
    """Best match is below the absolute floor."""
    pass


class RejectedBelowThresholdError(VerificationRejectedError):
    """Best match clears the floor but not the operating threshold."""
    pass


class RejectedAmbiguousMatchError(VerificationRejectedError):
    """Best and runner-up identities are too close to tell apart."""
    pass


class RejectedSuspiciousMatchError(VerificationRejectedError):
    """Best match is implausibly perfect, as with a replayed image."""
    pass
