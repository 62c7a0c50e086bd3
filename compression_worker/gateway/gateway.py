from compression_worker.artifacts.models import ArtifactStatus, file_format
from compression_worker.artifacts.store import ArtifactStore
from compression_worker.config.settings import Settings
from compression_worker.gateway.exceptions import (
    AlreadyProcessingError,
    EnqueueFailedError,
    InvalidStateError,
    ValidationError,
)
from compression_worker.logging.logger import Log
from compression_worker.queue.base import BaseJobQueue
from compression_worker.queue.exceptions import QueueError
from compression_worker.queue.models import CompressionJob


def requires_transcoding(file_type_or_name: str, transcodable_formats: list[str]) -> bool:
    """True when the file's format must go through the compression pipeline.

    Accepts either a bare type (``"ply"``) or a file name (``"scan.PLY"``).
    Other formats are already compact and go straight to ``ready`` at upload.
    """
    file_type = file_format(file_type_or_name) or file_type_or_name.lower()
    return file_type in {f.lower() for f in transcodable_formats}


class TranscodingGateway:
    """Validates requests, flips artifacts to processing, and enqueues jobs."""

    def __init__(self, store: ArtifactStore, queue: BaseJobQueue, settings: Settings) -> None:
        self._store = store
        self._queue = queue
        self._settings = settings

    def requires_transcoding(self, file_type_or_name: str) -> bool:
        return requires_transcoding(file_type_or_name, self._settings.transcodable_formats)

    def submit_for_transcoding(
        self,
        artifact_id: str,
        parent_id: str,
        source_url: str,
        file_name: str,
        file_size_bytes: int,
    ) -> str:
        """Move the artifact to processing and enqueue a compression job.

        Returns the job id.

        Raises:
            ValidationError: bad input, unsupported format, or already processing.
            ArtifactNotFoundError: if the artifact does not exist.
            EnqueueFailedError: if the broker rejected the job. The record is
                left in processing.
        """
        self._validate(artifact_id, parent_id, source_url, file_name, file_size_bytes)
        record = self._store.get(artifact_id)

        started = self._store.start_processing(record, original_size_bytes=file_size_bytes)
        if started is None:
            raise AlreadyProcessingError(f"Artifact {artifact_id} is already processing")

        job = CompressionJob(
            artifact_id=artifact_id,
            parent_id=parent_id,
            source_url=source_url,
            file_name=file_name,
            file_size_bytes=file_size_bytes,
        )
        try:
            job_id = self._queue.push(job)
        except QueueError as exc:
            Log.error(f"Failed to enqueue compression job for artifact {artifact_id}: {exc}")
            raise EnqueueFailedError(f"Failed to enqueue compression job: {exc}") from exc

        Log.info(f"Enqueued compression job for artifact {artifact_id}, job ID: {job_id}")
        return job_id

    def retry(self, artifact_id: str) -> str:
        """Resubmit an artifact whose previous job failed.

        Raises:
            InvalidStateError: if the artifact is not in error.
            ArtifactNotFoundError: if the artifact does not exist.
        """
        record = self._store.get(artifact_id)
        if record.status is not ArtifactStatus.ERROR:
            raise InvalidStateError(
                f"Artifact {artifact_id} is not in error state (current: {record.status.value})"
            )
        Log.info(f"Retrying compression for artifact {artifact_id}")
        return self.submit_for_transcoding(
            artifact_id,
            record.parent_id,
            record.source_url,
            record.name,
            record.original_size_bytes or record.source_size_bytes,
        )

    def _validate(
        self,
        artifact_id: str,
        parent_id: str,
        source_url: str,
        file_name: str,
        file_size_bytes: int,
    ) -> None:
        if not artifact_id or not parent_id or not source_url or not file_name:
            raise ValidationError("Missing required fields")
        if file_size_bytes <= 0:
            raise ValidationError("File size must be positive")
        if file_size_bytes > self._settings.max_upload_bytes:
            raise ValidationError(
                f"File size {file_size_bytes} exceeds limit of {self._settings.max_upload_bytes} bytes"
            )
        if not self.requires_transcoding(file_name):
            raise ValidationError(f"File '{file_name}' does not require transcoding")
