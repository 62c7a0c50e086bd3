from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime

from compression_worker.artifacts.models import ArtifactRecord, ArtifactStatus


class BaseArtifactRepository(ABC):
    """Contract for artifact record persistence.

    Writes are full-record, last-write-wins. There is no field-level patch.
    """

    @abstractmethod
    def get(self, artifact_id: str) -> ArtifactRecord | None:
        """Return the stored record, or None if it does not exist."""

    @abstractmethod
    def get_many(self, artifact_ids: Iterable[str]) -> list[ArtifactRecord]:
        """Return the stored records for the given ids. Missing ids are skipped."""

    @abstractmethod
    def create(self, record: ArtifactRecord) -> ArtifactRecord:
        """Insert a new record and return it with ``updated_at`` set."""

    @abstractmethod
    def save(self, record: ArtifactRecord) -> ArtifactRecord:
        """Overwrite the full record.

        Raises:
            ArtifactNotFoundError: if no record with this id exists.
        """

    @abstractmethod
    def save_unless_status(
        self, record: ArtifactRecord, status: ArtifactStatus
    ) -> ArtifactRecord | None:
        """Atomically overwrite the full record unless its stored status is ``status``.

        Returns the saved record, or None when the stored status matched.

        Raises:
            ArtifactNotFoundError: if no record with this id exists.
        """

    @abstractmethod
    def save_if_status(
        self, record: ArtifactRecord, status: ArtifactStatus
    ) -> ArtifactRecord | None:
        """Atomically overwrite the full record only if its stored status is ``status``.

        Returns the saved record, or None when the stored status differed.

        Raises:
            ArtifactNotFoundError: if no record with this id exists.
        """

    @abstractmethod
    def find_stale_processing(self, updated_before: datetime) -> list[ArtifactRecord]:
        """Return records in ``processing`` not written since ``updated_before``."""
