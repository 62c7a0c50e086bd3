import threading
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime, timezone

from compression_worker.artifacts.base import BaseArtifactRepository
from compression_worker.artifacts.exceptions import ArtifactNotFoundError
from compression_worker.artifacts.models import ArtifactRecord, ArtifactStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryArtifactRepository(BaseArtifactRepository):
    """Process-local artifact store.

    Useful for local development and tests. The lock stands in for the row
    lock a database takes on UPDATE.
    """

    def __init__(self) -> None:
        self._records: dict[str, ArtifactRecord] = {}
        self._lock = threading.Lock()

    def get(self, artifact_id: str) -> ArtifactRecord | None:
        with self._lock:
            return self._records.get(artifact_id)

    def get_many(self, artifact_ids: Iterable[str]) -> list[ArtifactRecord]:
        with self._lock:
            return [self._records[i] for i in artifact_ids if i in self._records]

    def create(self, record: ArtifactRecord) -> ArtifactRecord:
        with self._lock:
            if record.id in self._records:
                raise ValueError(f"Artifact {record.id} already exists")
            stored = replace(record, updated_at=_utcnow())
            self._records[record.id] = stored
            return stored

    def save(self, record: ArtifactRecord) -> ArtifactRecord:
        with self._lock:
            return self._write(record)

    def save_unless_status(
        self, record: ArtifactRecord, status: ArtifactStatus
    ) -> ArtifactRecord | None:
        with self._lock:
            current = self._records.get(record.id)
            if current is None:
                raise ArtifactNotFoundError(f"Artifact {record.id} not found")
            if current.status is status:
                return None
            return self._write(record)

    def save_if_status(
        self, record: ArtifactRecord, status: ArtifactStatus
    ) -> ArtifactRecord | None:
        with self._lock:
            current = self._records.get(record.id)
            if current is None:
                raise ArtifactNotFoundError(f"Artifact {record.id} not found")
            if current.status is not status:
                return None
            return self._write(record)

    def find_stale_processing(self, updated_before: datetime) -> list[ArtifactRecord]:
        with self._lock:
            return [
                r
                for r in self._records.values()
                if r.status is ArtifactStatus.PROCESSING
                and r.updated_at is not None
                and r.updated_at < updated_before
            ]

    def _write(self, record: ArtifactRecord) -> ArtifactRecord:
        if record.id not in self._records:
            raise ArtifactNotFoundError(f"Artifact {record.id} not found")
        stored = replace(record, updated_at=_utcnow())
        self._records[record.id] = stored
        return stored
