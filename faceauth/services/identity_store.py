"""In-memory collection of enrolled identities backed by a repository."""
import threading
from typing import Dict, List, Optional

from faceauth.core.exceptions import StorageError
from faceauth.core.logging import get_logger
from faceauth.domain.entities.identity import IdentityRecord
from faceauth.domain.interfaces.storage.identity_repository import IdentityRepository

logger = get_logger(__name__)


class IdentityStore:
    """Owns the set of identity records.

    Writers (enrollment, clear, remove) persist through the repository before
    changing memory, so a failed write leaves both sides unchanged. Readers take
    a point-in-time `snapshot()` and never see a half-applied change.
    Records holding fewer than `min_samples` embeddings are not loaded.
    """

    def __init__(self, repository: IdentityRepository, min_samples: int = 1) -> None:
        self._repository = repository
        self.min_samples = min_samples
        self._records: Dict[str, IdentityRecord] = {}
        self._guard = threading.Lock()

    def load(self) -> int:
        """Replace memory with the repository contents. Returns the record count."""
        records = []
        for record in self._repository.load():
            if record.sample_count < self.min_samples:
                logger.warning(
                    "Skipping identity record with too few samples",
                    identity_id=record.identity_id,
                    samples=record.sample_count,
                    required=self.min_samples,
                )
                continue
            records.append(record)
        with self._guard:
            self._records = {record.identity_id: record for record in records}
            count = len(self._records)
        logger.info("Loaded enrolled identities", count=count)
        return count

    def snapshot(self) -> Dict[str, IdentityRecord]:
        """Shallow copy of the records at this instant."""
        with self._guard:
            return dict(self._records)

    def get(self, identity_id: str) -> Optional[IdentityRecord]:
        with self._guard:
            return self._records.get(identity_id)

    def __len__(self) -> int:
        with self._guard:
            return len(self._records)

    def put(self, record: IdentityRecord) -> None:
        """Persist and store `record`, replacing any record with the same identity_id."""
        updated = self.snapshot()
        updated[record.identity_id] = record
        self._persist(list(updated.values()))
        with self._guard:
            self._records = updated

    def remove(self, identity_id: str) -> bool:
        """Persist and drop one identity. Returns False if it was not enrolled."""
        updated = self.snapshot()
        if updated.pop(identity_id, None) is None:
            return False
        self._persist(list(updated.values()))
        with self._guard:
            self._records = updated
        return True

    def clear(self) -> None:
        try:
            self._repository.clear()
        except StorageError:
            raise
        except OSError as e:
            raise StorageError(f"Failed to clear identity store: {e}") from e
        with self._guard:
            self._records = {}

    def _persist(self, records: List[IdentityRecord]) -> None:
        try:
            self._repository.save(records)
        except StorageError:
            raise
        except OSError as e:
            raise StorageError(f"Failed to save identity store: {e}") from e
