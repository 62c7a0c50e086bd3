from collections.abc import Iterable
from datetime import datetime

from compression_worker.artifacts.base import BaseArtifactRepository
from compression_worker.artifacts.exceptions import ArtifactNotFoundError
from compression_worker.artifacts.models import (
    ArtifactRecord,
    ArtifactStatus,
    Failed,
    Processing,
    Ready,
)
from compression_worker.common.side_effects import best_effort
from compression_worker.notifications.bus import NotificationBus


class ArtifactStore:
    """State store accessor: every successful write is mirrored onto the bus."""

    def __init__(self, repository: BaseArtifactRepository, bus: NotificationBus) -> None:
        self._repository = repository
        self._bus = bus

    def find(self, artifact_id: str) -> ArtifactRecord | None:
        return self._repository.get(artifact_id)

    def get(self, artifact_id: str) -> ArtifactRecord:
        """Return the record.

        Raises:
            ArtifactNotFoundError: if no record with this id exists.
        """
        record = self._repository.get(artifact_id)
        if record is None:
            raise ArtifactNotFoundError(f"Artifact {artifact_id} not found")
        return record

    def get_many(self, artifact_ids: Iterable[str]) -> list[ArtifactRecord]:
        return self._repository.get_many(artifact_ids)

    def find_stale_processing(self, updated_before: datetime) -> list[ArtifactRecord]:
        return self._repository.find_stale_processing(updated_before)

    def create(self, record: ArtifactRecord) -> ArtifactRecord:
        return self._publish(self._repository.create(record))

    def save(self, record: ArtifactRecord) -> ArtifactRecord:
        return self._publish(self._repository.save(record))

    def start_processing(
        self, record: ArtifactRecord, original_size_bytes: int
    ) -> ArtifactRecord | None:
        """Move to ``processing`` at 0% unless already processing.

        Returns None when another caller got there first.
        """
        saved = self._repository.save_unless_status(
            record.with_state(Processing(0), original_size_bytes=original_size_bytes),
            ArtifactStatus.PROCESSING,
        )
        if saved is None:
            return None
        return self._publish(saved)

    def update_progress(self, record: ArtifactRecord, percent: int) -> ArtifactRecord | None:
        """Write progress. Returns None once the record has left ``processing``."""
        return self._save_while_processing(record.with_state(Processing(percent)))

    def mark_ready(
        self,
        record: ArtifactRecord,
        compressed_url: str,
        compressed_size_bytes: int,
        original_size_bytes: int,
    ) -> ArtifactRecord | None:
        """Move to ``ready``. Returns None once the record has left ``processing``."""
        ratio = original_size_bytes / compressed_size_bytes
        return self._save_while_processing(
            record.with_state(
                Ready(
                    compressed_url=compressed_url,
                    compressed_size_bytes=compressed_size_bytes,
                    compression_ratio=ratio,
                ),
                original_size_bytes=original_size_bytes,
            )
        )

    def mark_failed(self, record: ArtifactRecord, error_message: str) -> ArtifactRecord | None:
        """Move to ``error``. Returns None once the record has left ``processing``."""
        return self._save_while_processing(
            record.with_state(Failed(error_message or "Unknown error"))
        )

    def _save_while_processing(self, record: ArtifactRecord) -> ArtifactRecord | None:
        # A terminal record is never written again by the pipeline.
        saved = self._repository.save_if_status(record, ArtifactStatus.PROCESSING)
        if saved is None:
            return None
        return self._publish(saved)

    def _publish(self, record: ArtifactRecord) -> ArtifactRecord:
        # Observers re-fetch on reconnect, so a lost event is recoverable.
        best_effort(f"publish status of {record.id}", self._bus.publish, record)
        return record
