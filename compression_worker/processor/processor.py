import threading

from compression_worker.artifacts.store import ArtifactStore
from compression_worker.config.settings import Settings
from compression_worker.logging.logger import Log
from compression_worker.processor.exceptions import JobAbandonedError
from compression_worker.processor.pipeline import PipelineContext, PipelineStep
from compression_worker.processor.progress import ProgressReporter
from compression_worker.processor.steps import (
    CheckPreconditionsStep,
    CleanupStep,
    DownloadStep,
    FinalizeStep,
    MarkFailedStep,
    TransformStep,
    UploadStep,
)
from compression_worker.queue.models import LeasedJob
from compression_worker.storage.base import BaseObjectStorage
from compression_worker.transform.base import BaseTransformEngine


class Processor:
    """Runs the compression pipeline for one leased job.

    Pipeline: check -> download -> transform -> upload -> cleanup -> finalize.
    """

    def __init__(self, steps: list[PipelineStep], failed_step: PipelineStep) -> None:
        self._steps = steps
        self._failed_step = failed_step

    def process(
        self, leased_job: LeasedJob, lease_lost: threading.Event | None = None
    ) -> PipelineContext:
        """Run every step in order.

        A step that marks the context skipped ends the run early without
        writes. On error the failed step records it and the error is re-raised.
        A JobAbandonedError is re-raised without recording anything.
        """
        context = PipelineContext(leased_job=leased_job)
        if lease_lost is not None:
            context.lease_lost = lease_lost
        Log.info(
            f"Processing artifact {context.artifact_id} for job {leased_job.job_id}: "
            f"{leased_job.job.file_name} "
            f"({leased_job.job.file_size_bytes / 1024 / 1024:.2f}MB)"
        )
        try:
            for step in self._steps:
                context = step.run(context)
                if context.skipped:
                    return context
        except JobAbandonedError:
            raise
        except Exception as exc:
            context.error_message = str(exc) or exc.__class__.__name__
            self._failed_step.run(context)
            raise
        return context


def build_processor(
    settings: Settings,
    store: ArtifactStore,
    storage: BaseObjectStorage,
    engine: BaseTransformEngine,
) -> Processor:
    """Build a Processor with all pipeline steps."""
    progress = ProgressReporter(store)
    steps: list[PipelineStep] = [
        CheckPreconditionsStep(store),
        DownloadStep(storage, progress),
        TransformStep(engine, progress),
        UploadStep(storage, progress, settings.compressed_extension),
        CleanupStep(storage),
        FinalizeStep(store),
    ]
    return Processor(steps=steps, failed_step=MarkFailedStep(store))
