"""End-to-end tests of the engine with in-process models."""
import pytest

from faceauth.core.exceptions import EnrollmentInProgressError, ModelNotLoadedError, NoEnrolledIdentitiesError
from faceauth.domain.entities.identity import EnrollmentSource, IdentityRecord
from faceauth.domain.value_objects.verification import ReasonCode
from faceauth.infrastructure.capture import InMemoryImageSource
from faceauth.infrastructure.storage import InMemoryIdentityRepository, JsonFileIdentityRepository
from faceauth.services.engine import FaceAuthEngine


@pytest.fixture
def person(vectors):
    base = vectors.unit(seed=7)
    return base, [vectors.at_score(base, 0.95, seed=700 + i) for i in range(5)]


def enroll_person(engine, recognition_model, face_png, samples, identity_id="alice"):
    recognition_model.push(*samples)
    return engine.enroll(identity_id, identity_id.title(), InMemoryImageSource([face_png] * len(samples)))


def test_enroll_then_verify(engine, recognition_model, face_png, person):
    base, samples = person
    record = enroll_person(engine, recognition_model, face_png, samples)
    assert record.sample_count == 5

    recognition_model.push(base, base, base)
    decision = engine.verify(InMemoryImageSource([face_png] * 3, kind=EnrollmentSource.CAMERA))

    assert decision.reason_code == ReasonCode.ACCEPTED
    assert decision.identity_id == "alice"
    assert decision.best_score == pytest.approx(0.95, abs=1e-3)


def test_status_and_last_enrolled(engine, recognition_model, face_png, vectors):
    assert engine.status().enrolled_count == 0
    assert engine.last_enrolled() is None

    for seed, identity_id in ((1, "alice"), (2, "bob")):
        base = vectors.unit(seed=seed)
        samples = [vectors.at_score(base, 0.95, seed=seed * 10 + i) for i in range(3 + seed)]
        enroll_person(engine, recognition_model, face_png, samples, identity_id)

    status = engine.status()
    assert status.enrolled_count == 2
    assert status.per_identity_sample_counts == {"alice": 4, "bob": 5}
    assert engine.last_enrolled().identity_id == "bob"


def test_remove_and_clear(engine, recognition_model, face_png, person):
    enroll_person(engine, recognition_model, face_png, person[1])

    assert engine.remove("nobody") is False
    assert engine.remove("alice") is True
    enroll_person(engine, recognition_model, face_png, person[1])
    engine.clear()

    with pytest.raises(NoEnrolledIdentitiesError):
        engine.verify(InMemoryImageSource([face_png] * 3))


def test_operations_require_initialize(detection_model, recognition_model, config, face_png):
    engine = FaceAuthEngine(detection_model, recognition_model, InMemoryIdentityRepository(), config)
    assert not engine.is_ready
    with pytest.raises(ModelNotLoadedError):
        engine.enroll("alice", "Alice", InMemoryImageSource([face_png] * 3))
    with pytest.raises(ModelNotLoadedError):
        engine.verify(InMemoryImageSource([face_png] * 3))


def test_failed_model_load_is_reported(detection_model, recognition_model, config):
    detection_model.fail_load = True
    engine = FaceAuthEngine(detection_model, recognition_model, InMemoryIdentityRepository(), config)
    assert engine.initialize() is False
    assert not engine.is_ready


def test_enrollment_lock_is_engine_wide(engine, face_png):
    assert engine.enrollment.lock is engine._lock
    with engine._lock:
        with pytest.raises(EnrollmentInProgressError):
            engine.enroll("alice", "Alice", InMemoryImageSource([face_png] * 3))


def test_identities_survive_restart(detection_model, recognition_model, config, face_png, person):
    repository = JsonFileIdentityRepository(config.IDENTITY_STORE_PATH)
    first = FaceAuthEngine(detection_model, recognition_model, repository, config)
    assert first.initialize()
    enroll_person(first, recognition_model, face_png, person[1])

    second = FaceAuthEngine(detection_model, recognition_model, JsonFileIdentityRepository(config.IDENTITY_STORE_PATH), config)
    assert second.initialize()
    assert second.status().per_identity_sample_counts == {"alice": 5}


def test_stored_record_with_too_few_samples_is_not_loaded(detection_model, recognition_model, config, vectors):
    repository = JsonFileIdentityRepository(config.IDENTITY_STORE_PATH)
    repository.save([
        IdentityRecord(
            identity_id="mallory",
            display_name="Mallory",
            embeddings=[vectors.unit(seed=7)],
            enrollment_source=EnrollmentSource.GALLERY,
        )
    ])

    engine = FaceAuthEngine(detection_model, recognition_model, repository, config)
    assert engine.initialize()
    assert engine.status().enrolled_count == 0
