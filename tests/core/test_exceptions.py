"""Tests for the error taxonomy."""
from faceauth.core.exceptions import (
    EnrollmentError,
    ExtractionError,
    InsufficientSamplesError,
    LowDetectionConfidenceError,
    NoFaceDetectedError,
    NotLiveFaceError,
    RejectedAmbiguousMatchError,
    VerificationError,
)


def test_codes_drop_the_error_suffix():
    assert InsufficientSamplesError(1, 3).code == "InsufficientSamples"
    assert NotLiveFaceError("skin_ratio", 0.1).code == "NotLiveFace"


def test_insufficient_samples_belongs_to_both_flows():
    error = InsufficientSamplesError(2, 3)
    assert isinstance(error, EnrollmentError)
    assert isinstance(error, VerificationError)
    assert error.details == {"got": 2, "required": 3}


def test_low_confidence_is_a_missing_face():
    error = LowDetectionConfidenceError(0.4, 0.65)
    assert isinstance(error, NoFaceDetectedError)
    assert isinstance(error, ExtractionError)
    assert error.details["confidence"] == 0.4


def test_rejection_carries_scores():
    error = RejectedAmbiguousMatchError("ambiguous", 0.55, 0.52)
    assert isinstance(error, VerificationError)
    assert (error.best_score, error.runner_up_score) == (0.55, 0.52)
