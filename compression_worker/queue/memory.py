import itertools
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from compression_worker.queue.base import BaseJobQueue
from compression_worker.queue.exceptions import DuplicateJobError
from compression_worker.queue.models import (
    CompressionJob,
    JobStatus,
    LeasedJob,
    QueueStats,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Entry:
    job: CompressionJob
    status: JobStatus = JobStatus.WAITING
    worker_id: str | None = None
    lease_expires_at: datetime | None = None
    stalled_count: int = 0
    error_message: str | None = None
    finished_at: datetime | None = None


class InMemoryJobQueue(BaseJobQueue):
    """Process-local broker with the same lease semantics as the Postgres queue."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def push(self, job: CompressionJob) -> str:
        with self._lock:
            if self._live_entry(job.artifact_id) is not None:
                raise DuplicateJobError(f"Artifact {job.artifact_id} already has a live job")
            job_id = str(next(self._ids))
            self._entries[job_id] = _Entry(job=job)
            return job_id

    def lease(self, worker_id: str, lease_ttl_seconds: int) -> LeasedJob | None:
        with self._lock:
            now = self._clock()
            for job_id, entry in self._entries.items():
                stalled = self._is_expired(entry, now)
                if entry.status is JobStatus.WAITING or stalled:
                    entry.status = JobStatus.ACTIVE
                    entry.worker_id = worker_id
                    entry.lease_expires_at = now + timedelta(seconds=lease_ttl_seconds)
                    if stalled:
                        entry.stalled_count += 1
                    return LeasedJob(
                        job_id=job_id,
                        job=entry.job,
                        worker_id=worker_id,
                        lease_expires_at=entry.lease_expires_at,
                        stalled=stalled,
                    )
            return None

    def renew(self, job_id: str, worker_id: str, lease_ttl_seconds: int) -> bool:
        with self._lock:
            entry = self._held(job_id, worker_id)
            if entry is None:
                return False
            entry.lease_expires_at = self._clock() + timedelta(seconds=lease_ttl_seconds)
            return True

    def ack(
        self,
        job_id: str,
        worker_id: str,
        *,
        failed: bool = False,
        error_message: str | None = None,
    ) -> bool:
        with self._lock:
            entry = self._held(job_id, worker_id)
            if entry is None:
                return False
            entry.status = JobStatus.FAILED if failed else JobStatus.COMPLETED
            entry.error_message = error_message
            entry.lease_expires_at = None
            entry.finished_at = self._clock()
            return True

    def stats(self) -> QueueStats:
        with self._lock:
            counts = {status: 0 for status in JobStatus}
            for entry in self._entries.values():
                counts[entry.status] += 1
            return QueueStats(
                waiting=counts[JobStatus.WAITING],
                active=counts[JobStatus.ACTIVE],
                completed=counts[JobStatus.COMPLETED],
                failed=counts[JobStatus.FAILED],
            )

    def has_live_job(self, artifact_id: str) -> bool:
        with self._lock:
            return self._live_entry(artifact_id) is not None

    def purge_finished(self, older_than_seconds: int) -> int:
        with self._lock:
            cutoff = self._clock() - timedelta(seconds=older_than_seconds)
            finished = [
                job_id
                for job_id, entry in self._entries.items()
                if entry.finished_at is not None and entry.finished_at < cutoff
            ]
            for job_id in finished:
                del self._entries[job_id]
            return len(finished)

    def _live_entry(self, artifact_id: str) -> _Entry | None:
        for entry in self._entries.values():
            if entry.job.artifact_id == artifact_id and entry.status in (
                JobStatus.WAITING,
                JobStatus.ACTIVE,
            ):
                return entry
        return None

    def _held(self, job_id: str, worker_id: str) -> _Entry | None:
        entry = self._entries.get(job_id)
        if entry is None or entry.status is not JobStatus.ACTIVE:
            return None
        if entry.worker_id != worker_id or self._is_expired(entry, self._clock()):
            return None
        return entry

    @staticmethod
    def _is_expired(entry: _Entry, now: datetime) -> bool:
        return (
            entry.status is JobStatus.ACTIVE
            and entry.lease_expires_at is not None
            and entry.lease_expires_at <= now
        )
