"""JSON file and in-memory identity repositories."""
import json
import os
import tempfile
from pathlib import Path
from typing import Dict, List

from pydantic import ValidationError

from faceauth.core.exceptions import StorageError
from faceauth.core.logging import get_logger
from faceauth.domain.entities.identity import IdentityRecord
from faceauth.domain.interfaces.storage.identity_repository import IdentityRepository

logger = get_logger(__name__)

SCHEMA_VERSION = "v1"


class InMemoryIdentityRepository(IdentityRepository):
    """Keeps records for the lifetime of the process only."""

    def __init__(self) -> None:
        self._records: Dict[str, IdentityRecord] = {}

    def load(self) -> List[IdentityRecord]:
        return list(self._records.values())

    def save(self, records: List[IdentityRecord]) -> None:
        self._records = {record.identity_id: record for record in records}

    def clear(self) -> None:
        self._records = {}


class JsonFileIdentityRepository(IdentityRepository):
    """Stores all identity records in one JSON document keyed by identity_id.

    Writes go to a temporary file in the same directory that is then renamed
    over the target, so readers never see a partial document.

    File layout:
        {"schema_version": "v1", "identities": {"<identity_id>": {...record...}}}
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    def load(self) -> List[IdentityRecord]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Cannot read identity store {self.path}: {e}") from e

        if not isinstance(data, dict) or data.get("schema_version") != SCHEMA_VERSION:
            raise StorageError(
                f"Unsupported identity store format in {self.path}",
                {"schema_version": data.get("schema_version") if isinstance(data, dict) else None},
            )

        records: List[IdentityRecord] = []
        for identity_id, payload in (data.get("identities") or {}).items():
            try:
                records.append(IdentityRecord.model_validate(payload))
            except ValidationError as e:
                # A corrupt record must not block every other identity.
                logger.warning(
                    "Skipping invalid identity record",
                    identity_id=identity_id,
                    error=str(e),
                )
        return records

    def save(self, records: List[IdentityRecord]) -> None:
        document = {
            "schema_version": SCHEMA_VERSION,
            "identities": {record.identity_id: record.model_dump(mode="json") for record in records},
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StorageError(f"Cannot write identity store {self.path}: {e}") from e
        logger.debug("Saved identity store", path=str(self.path), identities=len(records))

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot clear identity store {self.path}: {e}") from e
