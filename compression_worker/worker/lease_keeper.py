import threading
from types import TracebackType

from compression_worker.logging.logger import Log
from compression_worker.queue.base import BaseJobQueue
from compression_worker.queue.models import LeasedJob


class LeaseKeeper:
    """Heartbeat that renews a job lease in the background while it is processed."""

    def __init__(self, queue: BaseJobQueue, leased_job: LeasedJob, lease_ttl_seconds: int) -> None:
        self._queue = queue
        self._leased_job = leased_job
        self._ttl = lease_ttl_seconds
        self._interval = max(lease_ttl_seconds / 3, 0.1)
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name=f"lease-{leased_job.job_id}", daemon=True
        )
        self.lost = threading.Event()

    def __enter__(self) -> "LeaseKeeper":
        self._thread.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._stop.set()
        self._thread.join()

    def _run(self) -> None:
        job_id = self._leased_job.job_id
        while not self._stop.wait(self._interval):
            try:
                renewed = self._queue.renew(job_id, self._leased_job.worker_id, self._ttl)
            except Exception as exc:
                Log.warning(f"Failed to renew lease for job {job_id}, will retry: {exc}")
                continue
            if not renewed:
                self.lost.set()
                Log.warning(f"Lease for job {job_id} was lost; another worker may pick it up")
                return
