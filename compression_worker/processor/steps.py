from compression_worker.artifacts.exceptions import ArtifactNotFoundError
from compression_worker.artifacts.models import ArtifactStatus
from compression_worker.artifacts.store import ArtifactStore
from compression_worker.common.side_effects import best_effort
from compression_worker.logging.logger import Log
from compression_worker.processor.exceptions import (
    ArtifactNoLongerProcessingError,
    MissingStageOutputError,
)
from compression_worker.processor.pipeline import PipelineContext, PipelineStep
from compression_worker.processor.progress import (
    DOWNLOAD_DONE,
    UPLOAD_DONE,
    ProgressReporter,
    map_transform_progress,
)
from compression_worker.storage.base import BaseObjectStorage
from compression_worker.storage.paths import build_object_path
from compression_worker.transform.base import BaseTransformEngine
from compression_worker.transform.exceptions import TransformError

COMPRESSED_CONTENT_TYPE = "application/octet-stream"


class CheckPreconditionsStep(PipelineStep):
    """Skip jobs whose artifact is no longer processing (duplicate or stale delivery)."""

    def __init__(self, store: ArtifactStore) -> None:
        self._store = store

    def run(self, context: PipelineContext) -> PipelineContext:
        record = self._store.find(context.artifact_id)
        if record is None:
            raise ArtifactNotFoundError(f"Artifact {context.artifact_id} not found")
        if record.status is not ArtifactStatus.PROCESSING:
            Log.info(
                f"Artifact {context.artifact_id} is not in processing state "
                f"(current: {record.status.value}), skipping"
            )
            context.skipped = True
            return context
        context.record = record
        return context


class DownloadStep(PipelineStep):
    def __init__(self, storage: BaseObjectStorage, progress: ProgressReporter) -> None:
        self._storage = storage
        self._progress = progress

    def run(self, context: PipelineContext) -> PipelineContext:
        source_url = context.leased_job.job.source_url
        Log.info(f"Downloading file from {source_url}")
        context.raw_bytes = self._storage.download(source_url)
        Log.info(
            f"Downloaded {len(context.raw_bytes) / 1024 / 1024:.2f}MB "
            f"for artifact {context.artifact_id}"
        )
        self._progress.report(context, DOWNLOAD_DONE)
        return context


class TransformStep(PipelineStep):
    def __init__(self, engine: BaseTransformEngine, progress: ProgressReporter) -> None:
        self._engine = engine
        self._progress = progress

    def run(self, context: PipelineContext) -> PipelineContext:
        if not context.raw_bytes:
            raise MissingStageOutputError("PipelineContext.raw_bytes must be set before transform")
        Log.info(f"Starting compression for artifact {context.artifact_id}")
        for tick in self._engine.run(context.raw_bytes):
            self._progress.report(context, map_transform_progress(tick.percent))
            if tick.done:
                context.transform_result = tick.result
        if context.transform_result is None:
            raise TransformError("Transform finished without producing output")
        context.raw_bytes = b""
        return context


class UploadStep(PipelineStep):
    def __init__(
        self,
        storage: BaseObjectStorage,
        progress: ProgressReporter,
        compressed_extension: str,
    ) -> None:
        self._storage = storage
        self._progress = progress
        self._extension = compressed_extension

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.transform_result is None:
            raise MissingStageOutputError(
                "PipelineContext.transform_result must be set before upload"
            )
        context.ensure_lease()
        job = context.leased_job.job
        path = build_object_path(job.parent_id, job.file_name, self._extension)
        Log.info(f"Uploading compressed file to {path}")
        context.compressed_url = self._storage.upload(
            path, context.transform_result.output_bytes, COMPRESSED_CONTENT_TYPE
        )
        context.compressed_size_bytes = context.transform_result.output_size
        self._progress.report(context, UPLOAD_DONE)
        return context


class CleanupStep(PipelineStep):
    """Best-effort delete of the source object. A storage error never fails the job."""

    def __init__(self, storage: BaseObjectStorage) -> None:
        self._storage = storage

    def run(self, context: PipelineContext) -> PipelineContext:
        context.ensure_lease()
        source_url = context.leased_job.job.source_url
        deleted = best_effort("delete source object", self._storage.delete, source_url)
        context.source_deleted = bool(deleted)
        if not context.source_deleted:
            Log.warning(f"Failed to delete original file: {source_url}")
        return context


class FinalizeStep(PipelineStep):
    def __init__(self, store: ArtifactStore) -> None:
        self._store = store

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.record is None or context.transform_result is None:
            raise MissingStageOutputError("PipelineContext must be uploaded before finalize")
        context.ensure_lease()
        record = self._store.mark_ready(
            context.record,
            compressed_url=context.compressed_url,
            compressed_size_bytes=context.compressed_size_bytes,
            original_size_bytes=context.transform_result.input_size,
        )
        if record is None:
            raise ArtifactNoLongerProcessingError(
                f"Artifact {context.artifact_id} is no longer processing"
            )
        context.record = record
        return context


class MarkFailedStep(PipelineStep):
    def __init__(self, store: ArtifactStore) -> None:
        self._store = store

    def run(self, context: PipelineContext) -> PipelineContext:
        record = context.record or self._store.find(context.artifact_id)
        if record is None:
            Log.error(
                f"Cannot record failure for missing artifact {context.artifact_id}: "
                f"{context.error_message}"
            )
            return context
        if context.lease_lost.is_set():
            Log.warning(
                f"Not recording failure for artifact {context.artifact_id}: lease was lost"
            )
            return context
        failed = self._store.mark_failed(record, context.error_message)
        if failed is None:
            Log.warning(
                f"Not recording failure for artifact {context.artifact_id}: "
                "no longer processing"
            )
            return context
        context.record = failed
        Log.error(f"Artifact {context.artifact_id} marked as error: {context.error_message}")
        return context
