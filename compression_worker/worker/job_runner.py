from compression_worker.config.settings import Settings
from compression_worker.logging.logger import Log
from compression_worker.processor.exceptions import (
    ArtifactNoLongerProcessingError,
    LeaseLostError,
)
from compression_worker.processor.processor import Processor
from compression_worker.queue.base import BaseJobQueue
from compression_worker.queue.models import LeasedJob
from compression_worker.worker.lease_keeper import LeaseKeeper


class JobRunner:
    """Run one leased job under a lease heartbeat and resolve it with an ack."""

    def __init__(
        self,
        processor: Processor,
        queue: BaseJobQueue,
        settings: Settings,
    ) -> None:
        self._processor = processor
        self._queue = queue
        self._settings = settings

    def run(self, leased_job: LeasedJob) -> None:
        """Execute a single job with error handling. Failures are terminal."""
        job_id = leased_job.job_id
        if leased_job.stalled:
            Log.warning("Job stalled, re-running", job_id=job_id, worker_id=leased_job.worker_id)
        Log.info("Running job", job_id=job_id, artifact_id=leased_job.job.artifact_id)

        try:
            with LeaseKeeper(self._queue, leased_job, self._settings.lease_ttl_seconds) as keeper:
                context = self._processor.process(leased_job, lease_lost=keeper.lost)
        except LeaseLostError as exc:
            Log.warning(f"Job abandoned: {exc}", job_id=job_id)
            return
        except ArtifactNoLongerProcessingError as exc:
            Log.warning(f"Job abandoned: {exc}", job_id=job_id)
            self._ack(leased_job)
            return
        except Exception as exc:
            Log.error(f"Job failed: {exc}", job_id=job_id)
            self._ack(leased_job, failed=True, error_message=str(exc))
            return

        self._ack(leased_job)
        if context.skipped:
            Log.info("Job completed as no-op", job_id=job_id)
        elif context.record is not None and context.record.compression_ratio is not None:
            Log.info(
                f"Job completed: {context.record.compression_ratio:.1f}x compression",
                job_id=job_id,
            )

    def _ack(
        self,
        leased_job: LeasedJob,
        *,
        failed: bool = False,
        error_message: str | None = None,
    ) -> None:
        """Resolve the job. An unacked job is re-leased after its lease expires."""
        try:
            acked = self._queue.ack(
                leased_job.job_id,
                leased_job.worker_id,
                failed=failed,
                error_message=error_message,
            )
        except Exception as exc:
            Log.error(f"Failed to ack job {leased_job.job_id}: {exc}")
            return
        if not acked:
            Log.warning(f"Job {leased_job.job_id} could not be acked: lease no longer held")
