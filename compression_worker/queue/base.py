from abc import ABC, abstractmethod

from compression_worker.queue.models import CompressionJob, LeasedJob, QueueStats


class BaseJobQueue(ABC):
    """Contract for the durable compression job broker.

    A lease grants exclusive, time-bounded processing of one job. The holder
    renews it or acks before it expires; an expired lease makes the job
    leasable again. The broker never retries failed jobs.
    """

    @abstractmethod
    def push(self, job: CompressionJob) -> str:
        """Enqueue a job and return its id.

        Raises:
            DuplicateJobError: if the artifact already has a live job.
            QueueError: if the broker cannot accept the job.
        """

    @abstractmethod
    def lease(self, worker_id: str, lease_ttl_seconds: int) -> LeasedJob | None:
        """Lease the oldest available job, including stalled ones. None if idle."""

    @abstractmethod
    def renew(self, job_id: str, worker_id: str, lease_ttl_seconds: int) -> bool:
        """Extend a lease still held by ``worker_id``. False if it was lost."""

    @abstractmethod
    def ack(
        self,
        job_id: str,
        worker_id: str,
        *,
        failed: bool = False,
        error_message: str | None = None,
    ) -> bool:
        """Resolve a leased job as completed or failed. False if the lease was lost."""

    @abstractmethod
    def stats(self) -> QueueStats:
        """Counts of waiting, active, completed and failed jobs."""

    @abstractmethod
    def has_live_job(self, artifact_id: str) -> bool:
        """True when the artifact has a waiting or active job."""

    @abstractmethod
    def purge_finished(self, older_than_seconds: int) -> int:
        """Delete completed/failed jobs finished before the cutoff. Returns count."""
