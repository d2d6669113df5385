"""Identity persistence interface."""
from abc import ABC, abstractmethod
from typing import List

from ...entities.identity import IdentityRecord


class IdentityRepository(ABC):
    """Key-value persistence of identity records, keyed by identity_id.

    The engine does not assume a storage medium; it always saves the complete
    set of records so implementations can write atomically.
    """

    @abstractmethod
    def load(self) -> List[IdentityRecord]:
        """
        Load all persisted identity records.

        Raises:
            StorageError: If the store exists but cannot be read
        """
        pass

    @abstractmethod
    def save(self, records: List[IdentityRecord]) -> None:
        """
        Replace the persisted records with `records`.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """
        Remove every persisted record.

        Raises:
            StorageError: If the store cannot be cleared
        """
        pass
