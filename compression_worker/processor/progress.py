from compression_worker.artifacts.store import ArtifactStore
from compression_worker.processor.exceptions import (
    ArtifactNoLongerProcessingError,
    MissingStageOutputError,
)
from compression_worker.processor.pipeline import PipelineContext

DOWNLOAD_DONE = 20
TRANSFORM_START = 20
TRANSFORM_END = 85
UPLOAD_DONE = 95


def map_transform_progress(engine_percent: int) -> int:
    """Re-map engine progress 0..100 into the transform band 20..85 (floored)."""
    engine_percent = max(0, min(100, engine_percent))
    return TRANSFORM_START + engine_percent * (TRANSFORM_END - TRANSFORM_START) // 100


class ProgressReporter:
    """Writes job progress through the store. Never goes backwards, skips repeats.

    Raises LeaseLostError or ArtifactNoLongerProcessingError when the job
    must stop writing.
    """

    def __init__(self, store: ArtifactStore) -> None:
        self._store = store

    def report(self, context: PipelineContext, percent: int) -> None:
        if context.record is None:
            raise MissingStageOutputError("PipelineContext.record must be set before progress")
        if percent <= (context.record.progress_percent or 0):
            return
        context.ensure_lease()
        record = self._store.update_progress(context.record, percent)
        if record is None:
            raise ArtifactNoLongerProcessingError(
                f"Artifact {context.artifact_id} is no longer processing"
            )
        context.record = record
