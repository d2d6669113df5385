"""Enrollment of reference face samples for one identity."""
import threading
from enum import Enum
from itertools import islice
from typing import List, Optional

import numpy as np

from faceauth.core.config import Settings
from faceauth.core.exceptions import (
    DuplicateIdentityError,
    EnrollmentInProgressError,
    ExtractionError,
    InconsistentSamplesError,
    InsufficientSamplesError,
)
from faceauth.core.logging import get_logger
from faceauth.core.utils.scoring import average_pairwise_score, score_matrix
from faceauth.domain.entities.identity import IdentityRecord, utc_now
from faceauth.domain.interfaces.capture.image_source import ImageSource
from faceauth.domain.interfaces.progress import NullProgressReporter, ProgressReporter
from faceauth.services.identity_store import IdentityStore
from faceauth.services.recognition.embedding_extractor import EmbeddingExtractor

logger = get_logger(__name__)


class EnrollmentState(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    VALIDATING = "validating"
    PERSISTING = "persisting"
    DONE = "done"
    ABORTED = "aborted"


class EnrollmentManager:
    """Collects samples, validates them and writes the identity record.

    Only one enrollment runs at a time: the lock is tried without blocking and a
    concurrent call fails with `EnrollmentInProgressError` instead of queuing.

    Example:
        ```python
        manager = EnrollmentManager(extractor, store, settings, threading.Lock())
        record = manager.enroll("u1", "Ada", DirectoryImageSource("photos/ada"))
        ```
    """

    def __init__(
        self,
        extractor: EmbeddingExtractor,
        store: IdentityStore,
        config: Settings,
        lock: Optional[threading.Lock] = None,
    ) -> None:
        self.extractor = extractor
        self.store = store
        self.config = config
        self.lock = lock or threading.Lock()
        self.state = EnrollmentState.IDLE

    def _set_state(self, state: EnrollmentState, identity_id: str) -> None:
        self.state = state
        logger.debug("Enrollment state changed", identity_id=identity_id, state=state.value)

    def collect(self, source: ImageSource, progress: ProgressReporter) -> List[np.ndarray]:
        """Pull up to MAX_ENROLLMENT_SAMPLES images; skip the ones that fail extraction."""
        limit = self.config.MAX_ENROLLMENT_SAMPLES
        embeddings: List[np.ndarray] = []
        offered = 0

        for index, image_bytes in enumerate(islice(source, limit), start=1):
            offered = index
            progress.report(index, limit, f"Processing photo {index}...")
            try:
                result = self.extractor.extract(image_bytes)
            except ExtractionError as e:
                logger.warning(
                    "Enrollment sample skipped",
                    sample=index,
                    error=e.code,
                    reason=str(e),
                )
                continue
            embeddings.append(result.embedding)

        logger.info("Enrollment samples collected", offered=offered, accepted=len(embeddings))
        return embeddings

    def check_consistency(self, embeddings: List[np.ndarray]) -> float:
        """
        Raises:
            InconsistentSamplesError: If the average pairwise score is below ENROLLMENT_CONSISTENCY_MIN
        """
        average = average_pairwise_score(embeddings, self.config.MAX_EMBEDDING_DISTANCE)
        if not average >= self.config.ENROLLMENT_CONSISTENCY_MIN:
            raise InconsistentSamplesError(average, self.config.ENROLLMENT_CONSISTENCY_MIN)
        return average

    def check_uniqueness(self, identity_id: str, embeddings: List[np.ndarray]) -> None:
        """Compare every new sample with every sample of every other identity.

        Raises:
            DuplicateIdentityError: If any pair scores above 1 - MIN_INTER_IDENTITY_DISTANCE
        """
        limit = 1.0 - self.config.MIN_INTER_IDENTITY_DISTANCE
        best_similarity = 0.0
        conflict_id = None

        for other_id, record in self.store.snapshot().items():
            if other_id == identity_id:
                continue
            similarity = float(np.max(
                score_matrix(embeddings, record.embeddings, self.config.MAX_EMBEDDING_DISTANCE)
            ))
            if similarity > best_similarity:
                best_similarity = similarity
                conflict_id = other_id

        if conflict_id is not None and best_similarity > limit:
            raise DuplicateIdentityError(conflict_id, best_similarity)

    def enroll(
        self,
        identity_id: str,
        display_name: str,
        source: ImageSource,
        progress: Optional[ProgressReporter] = None,
    ) -> IdentityRecord:
        """
        Enroll (or fully re-enroll) an identity from an image source.

        Args:
            identity_id: Identity to create or replace
            display_name: Human readable name
            source: Camera or gallery image source, consumed lazily
            progress: Optional progress reporter

        Returns:
            The stored IdentityRecord

        Raises:
            EnrollmentInProgressError: If another enrollment is running
            InsufficientSamplesError: If fewer than MIN_ENROLLMENT_SAMPLES images succeed
            InconsistentSamplesError: If the samples disagree with each other
            DuplicateIdentityError: If the face is already enrolled under another id
            StorageError: If the record cannot be persisted
        """
        if not identity_id:
            raise ValueError("identity_id must not be empty")
        if not self.lock.acquire(blocking=False):
            raise EnrollmentInProgressError()

        progress = progress or NullProgressReporter()
        try:
            self._set_state(EnrollmentState.COLLECTING, identity_id)
            embeddings = self.collect(source, progress)

            self._set_state(EnrollmentState.VALIDATING, identity_id)
            required = self.config.MIN_ENROLLMENT_SAMPLES
            if len(embeddings) < required:
                raise InsufficientSamplesError(len(embeddings), required)
            average = self.check_consistency(embeddings)
            progress.report(required, required, "Validating uniqueness...")
            self.check_uniqueness(identity_id, embeddings)

            self._set_state(EnrollmentState.PERSISTING, identity_id)
            progress.report(required, required, "Saving face data...")
            previous = self.store.get(identity_id)
            now = utc_now()
            record = IdentityRecord(
                identity_id=identity_id,
                display_name=display_name,
                embeddings=embeddings,
                enrollment_source=source.kind,
                created_at=previous.created_at if previous else now,
                updated_at=now,
            )
            self.store.put(record)

            self._set_state(EnrollmentState.DONE, identity_id)
            logger.info(
                "Identity enrolled",
                identity_id=identity_id,
                samples=record.sample_count,
                consistency=round(average, 3),
                source=source.kind.value,
                replaced=previous is not None,
            )
            return record
        except Exception as e:
            self._set_state(EnrollmentState.ABORTED, identity_id)
            logger.warning("Enrollment aborted", identity_id=identity_id, error=str(e))
            raise
        finally:
            self.lock.release()
