"""Tests for the enrollment flow."""
import threading

import pytest

from faceauth.core.exceptions import (
    DuplicateIdentityError,
    EnrollmentInProgressError,
    InconsistentSamplesError,
    InsufficientSamplesError,
    NoFaceDetectedError,
    NotLiveFaceError,
    StorageError,
)
from faceauth.domain.entities.identity import EnrollmentSource
from faceauth.domain.interfaces.progress import RecordingProgressReporter
from faceauth.infrastructure.capture import InMemoryImageSource
from faceauth.infrastructure.storage import InMemoryIdentityRepository
from faceauth.services.enrollment import EnrollmentManager, EnrollmentState
from faceauth.services.identity_store import IdentityStore


class FailingRepository(InMemoryIdentityRepository):
    def save(self, records):
        raise OSError("disk full")


@pytest.fixture
def store():
    return IdentityStore(InMemoryIdentityRepository())


@pytest.fixture
def same_person(vectors):
    def build(seed, count=5):
        base = vectors.unit(seed=seed)
        return [vectors.at_score(base, 0.95, seed=seed * 100 + i) for i in range(count)]
    return build


def images(count, kind=EnrollmentSource.GALLERY):
    return InMemoryImageSource([b"img"] * count, kind=kind)


def test_enrolls_five_good_samples(store, config, stub_extractor, same_person):
    manager = EnrollmentManager(stub_extractor(same_person(1)), store, config)
    progress = RecordingProgressReporter()

    record = manager.enroll("alice", "Alice", images(5, EnrollmentSource.CAMERA), progress)

    assert record.sample_count == 5
    assert record.enrollment_source == EnrollmentSource.CAMERA
    assert store.get("alice") is record
    assert manager.state == EnrollmentState.DONE
    assert [event.message for event in progress.events][-2:] == ["Validating uniqueness...", "Saving face data..."]
    assert progress.events[0].step == 1
    assert progress.events[0].total == config.MAX_ENROLLMENT_SAMPLES


def test_failed_samples_are_skipped(store, config, stub_extractor, same_person):
    good = same_person(1, count=3)
    extractor = stub_extractor([good[0], NoFaceDetectedError("no face"), good[1], NotLiveFaceError("skin_ratio", 0.0), good[2]])
    record = EnrollmentManager(extractor, store, config).enroll("alice", "Alice", images(5))
    assert record.sample_count == 3


def test_too_few_successful_samples(store, config, stub_extractor, same_person):
    good = same_person(1, count=2)
    extractor = stub_extractor([good[0], NoFaceDetectedError("no face"), good[1]])
    manager = EnrollmentManager(extractor, store, config)

    with pytest.raises(InsufficientSamplesError) as exc_info:
        manager.enroll("alice", "Alice", images(3))

    assert (exc_info.value.got, exc_info.value.required) == (2, 3)
    assert len(store) == 0
    assert manager.state == EnrollmentState.ABORTED
    assert not manager.lock.locked()


def test_source_is_capped_at_max_samples(store, config, stub_extractor, same_person):
    extractor = stub_extractor(same_person(1, count=12))
    record = EnrollmentManager(extractor, store, config).enroll("alice", "Alice", images(12))
    assert extractor.calls == 10
    assert record.sample_count == 10


def test_inconsistent_samples_rejected(store, config, stub_extractor, vectors):
    extractor = stub_extractor([vectors.unit(seed=s) for s in (1, 2, 3)])
    with pytest.raises(InconsistentSamplesError):
        EnrollmentManager(extractor, store, config).enroll("alice", "Alice", images(3))
    assert store.get("alice") is None


def test_same_face_under_another_id_is_rejected(store, config, stub_extractor, same_person):
    EnrollmentManager(stub_extractor(same_person(1)), store, config).enroll("alice", "Alice", images(5))

    manager = EnrollmentManager(stub_extractor(same_person(1)[::-1]), store, config)
    with pytest.raises(DuplicateIdentityError) as exc_info:
        manager.enroll("mallory", "Mallory", images(5))

    assert exc_info.value.conflict_id == "alice"
    assert exc_info.value.similarity > 1.0 - config.MIN_INTER_IDENTITY_DISTANCE
    assert store.get("mallory") is None


def test_different_people_can_enroll(store, config, stub_extractor, same_person):
    EnrollmentManager(stub_extractor(same_person(1)), store, config).enroll("alice", "Alice", images(5))
    EnrollmentManager(stub_extractor(same_person(2)), store, config).enroll("bob", "Bob", images(5))
    assert len(store) == 2


def test_reenrollment_replaces_samples_and_keeps_created_at(store, config, stub_extractor, same_person):
    first = EnrollmentManager(stub_extractor(same_person(1)), store, config).enroll("alice", "Alice", images(5))
    second = EnrollmentManager(stub_extractor(same_person(1, count=3)), store, config).enroll(
        "alice", "Alice B.", images(3)
    )

    assert second.sample_count == 3
    assert second.display_name == "Alice B."
    assert second.created_at == first.created_at
    assert second.updated_at >= first.updated_at
    assert len(store) == 1


def test_concurrent_enrollment_is_refused(store, config, stub_extractor, same_person):
    lock = threading.Lock()
    manager = EnrollmentManager(stub_extractor(same_person(1)), store, config, lock)
    lock.acquire()
    try:
        with pytest.raises(EnrollmentInProgressError):
            manager.enroll("alice", "Alice", images(5))
    finally:
        lock.release()
    assert manager.enroll("alice", "Alice", images(5)).sample_count == 5


def test_storage_failure_leaves_store_unchanged(config, stub_extractor, same_person):
    store = IdentityStore(FailingRepository())
    manager = EnrollmentManager(stub_extractor(same_person(1)), store, config)
    with pytest.raises(StorageError):
        manager.enroll("alice", "Alice", images(5))
    assert len(store) == 0
    assert not manager.lock.locked()


def test_empty_identity_id(store, config, stub_extractor):
    with pytest.raises(ValueError):
        EnrollmentManager(stub_extractor(), store, config).enroll("", "Nobody", images(3))
