"""Tests for probe scoring and the acceptance policy."""
import math

import numpy as np
import pytest

from faceauth.core.exceptions import (
    InsufficientSamplesError,
    NoEnrolledIdentitiesError,
    NoFaceDetectedError,
    RejectedBelowThresholdError,
    UnstableCaptureError,
    VerificationError,
)
from faceauth.domain.entities.identity import EnrollmentSource, IdentityRecord
from faceauth.domain.value_objects.verification import Outcome, ReasonCode
from faceauth.infrastructure.capture import InMemoryImageSource
from faceauth.infrastructure.storage import InMemoryIdentityRepository
from faceauth.services.identity_store import IdentityStore
from faceauth.services.verification import VerificationEngine


@pytest.fixture
def store():
    return IdentityStore(InMemoryIdentityRepository())


@pytest.fixture
def probe(vectors):
    return vectors.unit(seed=1)


def enroll(store, identity_id, embeddings):
    store.put(IdentityRecord(
        identity_id=identity_id,
        display_name=identity_id.title(),
        embeddings=embeddings,
        enrollment_source=EnrollmentSource.GALLERY,
    ))


def enroll_at_score(store, vectors, identity_id, probe, score, seed):
    enroll(store, identity_id, [vectors.at_score(probe, score, seed=seed + i) for i in range(5)])


def attempt(store, config, stub_extractor, probes):
    engine = VerificationEngine(stub_extractor(probes), store, config)
    return engine.verify(InMemoryImageSource([b"probe"] * len(probes)))


def test_accepts_single_clear_match(store, config, stub_extractor, vectors, probe):
    enroll_at_score(store, vectors, "alice", probe, 0.90, seed=10)

    decision = attempt(store, config, stub_extractor, [probe] * 3)

    assert decision.outcome == Outcome.ACCEPT
    assert decision.reason_code == ReasonCode.ACCEPTED
    assert decision.identity_id == "alice"
    assert decision.display_name == "Alice"
    assert decision.best_score == pytest.approx(0.90, abs=1e-4)
    assert decision.runner_up_score == 0.0
    assert decision.message == "Welcome, Alice!"
    assert decision.processing_time_ms >= 0.0
    decision.raise_for_outcome()


def test_rejects_below_operating_threshold(store, config, stub_extractor, vectors, probe):
    enroll_at_score(store, vectors, "alice", probe, 0.25, seed=10)

    decision = attempt(store, config, stub_extractor, [probe] * 3)

    assert decision.outcome == Outcome.REJECT
    assert decision.reason_code == ReasonCode.REJECTED_BELOW_THRESHOLD
    assert decision.identity_id is None
    assert decision.best_score == pytest.approx(0.25, abs=1e-4)
    with pytest.raises(RejectedBelowThresholdError):
        decision.raise_for_outcome()


def test_rejects_below_absolute_floor(store, config, stub_extractor, vectors, probe):
    enroll_at_score(store, vectors, "alice", probe, 0.10, seed=10)
    decision = attempt(store, config, stub_extractor, [probe] * 3)
    assert decision.reason_code == ReasonCode.REJECTED_LOW_CONFIDENCE


def test_rejects_ambiguous_match(store, config, stub_extractor, vectors, probe):
    enroll_at_score(store, vectors, "alice", probe, 0.55, seed=10)
    enroll_at_score(store, vectors, "bob", probe, 0.52, seed=20)

    decision = attempt(store, config, stub_extractor, [probe] * 3)

    assert decision.reason_code == ReasonCode.REJECTED_AMBIGUOUS_MATCH
    assert decision.best_score == pytest.approx(0.55, abs=1e-4)
    assert decision.runner_up_score == pytest.approx(0.52, abs=1e-4)


def test_accepts_with_clear_margin_over_runner_up(store, config, stub_extractor, vectors, probe):
    enroll_at_score(store, vectors, "alice", probe, 0.80, seed=10)
    enroll_at_score(store, vectors, "bob", probe, 0.40, seed=20)

    decision = attempt(store, config, stub_extractor, [probe] * 3)

    assert decision.accepted
    assert decision.identity_id == "alice"
    assert decision.runner_up_score == pytest.approx(0.40, abs=1e-4)


def test_rejects_suspiciously_perfect_match(store, config, stub_extractor, probe):
    enroll(store, "alice", [probe] * 3)
    decision = attempt(store, config, stub_extractor, [probe] * 3)
    assert decision.reason_code == ReasonCode.REJECTED_SUSPICIOUS_MATCH
    assert decision.best_score == pytest.approx(1.0, abs=1e-4)


def test_unstable_capture(store, config, stub_extractor, vectors, probe):
    enroll_at_score(store, vectors, "alice", probe, 0.90, seed=10)
    with pytest.raises(UnstableCaptureError):
        attempt(store, config, stub_extractor, [vectors.unit(seed=s) for s in (2, 3, 4)])


def test_first_failed_probe_aborts(store, config, stub_extractor, vectors, probe):
    enroll_at_score(store, vectors, "alice", probe, 0.90, seed=10)
    extractor = stub_extractor([probe, NoFaceDetectedError("no face"), probe])
    engine = VerificationEngine(extractor, store, config)

    with pytest.raises(NoFaceDetectedError):
        engine.verify(InMemoryImageSource([b"probe"] * 3))
    assert extractor.calls == 2


def test_source_with_too_few_images(store, config, stub_extractor, vectors, probe):
    enroll_at_score(store, vectors, "alice", probe, 0.90, seed=10)
    with pytest.raises(InsufficientSamplesError) as exc_info:
        attempt(store, config, stub_extractor, [probe] * 2)
    assert isinstance(exc_info.value, VerificationError)


def test_empty_store(store, config, stub_extractor, probe):
    extractor = stub_extractor([probe] * 3)
    with pytest.raises(NoEnrolledIdentitiesError):
        VerificationEngine(extractor, store, config).verify(InMemoryImageSource([b"probe"] * 3))
    assert extractor.calls == 0


def test_identity_score_is_mean_of_top_k(store, config, stub_extractor, vectors, probe):
    far = [vectors.unit(seed=s) for s in (50, 51, 52, 53)]
    enroll(store, "alice", [vectors.at_score(probe, 0.9, seed=10)] + far)
    engine = VerificationEngine(stub_extractor(), store, config)

    scores = engine.identity_scores([probe] * 3, store.snapshot())

    # Three 0.9 pairs and twelve zero pairs; the top five average to 0.54.
    assert scores["alice"] == pytest.approx(0.54, abs=1e-4)


def test_rank_orders_identities():
    assert VerificationEngine.rank({"a": 0.5, "b": 0.7, "c": 0.6}) == ("b", 0.7, 0.6)
    assert VerificationEngine.rank({"a": 0.5}) == ("a", 0.5, 0.0)
    assert VerificationEngine.rank({}) == (None, 0.0, 0.0)


@pytest.mark.parametrize(
    "best, runner_up, count, expected",
    [
        (0.30, 0.0, 1, ReasonCode.ACCEPTED),
        (0.99, 0.0, 1, ReasonCode.ACCEPTED),
        (0.995, 0.0, 1, ReasonCode.REJECTED_SUSPICIOUS_MATCH),
        (0.29, 0.0, 1, ReasonCode.REJECTED_BELOW_THRESHOLD),
        (0.19, 0.0, 1, ReasonCode.REJECTED_LOW_CONFIDENCE),
        (math.nan, 0.0, 1, ReasonCode.REJECTED_LOW_CONFIDENCE),
        (0.90, 0.80, 2, ReasonCode.REJECTED_AMBIGUOUS_MATCH),
        (0.90, math.nan, 2, ReasonCode.REJECTED_AMBIGUOUS_MATCH),
        (0.90, 0.50, 2, ReasonCode.ACCEPTED),
    ],
)
def test_policy_order(config, stub_extractor, store, best, runner_up, count, expected):
    engine = VerificationEngine(stub_extractor(), store, config)
    reason, _ = engine.decide(best, runner_up, count)
    assert reason == expected


def test_closer_match_never_flips_accept_to_reject(store, config, stub_extractor, vectors):
    face = vectors.unit(seed=1)
    enroll(store, "bob", [vectors.unit(seed=60 + i) for i in range(5)])

    for score in (0.35, 0.5, 0.7, 0.9):
        enroll_at_score(store, vectors, "alice", face, score, seed=10)
        decision = attempt(store, config, stub_extractor, [face] * 3)

        assert decision.reason_code == ReasonCode.ACCEPTED, score
        assert decision.identity_id == "alice"
        assert decision.best_score == pytest.approx(score, abs=1e-4)
        assert decision.runner_up_score == 0.0


def test_decide_is_monotonic_in_best_score(config, stub_extractor, store):
    engine = VerificationEngine(stub_extractor(), store, config)

    accepted = [
        engine.decide(float(best), 0.10, 2)[0] == ReasonCode.ACCEPTED
        for best in np.linspace(0.0, config.SUSPICIOUS_MATCH_CEILING, 100)
    ]

    first = accepted.index(True)
    assert all(accepted[first:])
    assert not any(accepted[:first])
    for best in np.linspace(config.VERIFICATION_THRESHOLD, config.SUSPICIOUS_MATCH_CEILING, 24):
        assert engine.decide(float(best), 0.10, 2)[0] == ReasonCode.ACCEPTED


def test_probe_order_does_not_change_scores(store, config, stub_extractor, vectors, probe):
    enroll_at_score(store, vectors, "alice", probe, 0.90, seed=10)
    probes = [probe, vectors.at_score(probe, 0.95, seed=70), vectors.at_score(probe, 0.93, seed=71)]
    forward = attempt(store, config, stub_extractor, probes)
    backward = attempt(store, config, stub_extractor, probes[::-1])
    assert np.isclose(forward.best_score, backward.best_score)
