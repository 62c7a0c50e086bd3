import threading

from compression_worker.config.settings import Settings
from compression_worker.logging.logger import Log
from compression_worker.queue.base import BaseJobQueue
from compression_worker.queue.models import LeasedJob
from compression_worker.worker.job_runner import JobRunner


class Worker:
    """Poll loop: lease -> run -> sleep when idle. One job at a time."""

    def __init__(
        self,
        worker_id: str,
        queue: BaseJobQueue,
        job_runner: JobRunner,
        settings: Settings,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.worker_id = worker_id
        self._queue = queue
        self._job_runner = job_runner
        self._settings = settings
        self._stop = stop_event if stop_event is not None else threading.Event()

    def run(self, max_jobs: int | None = None) -> None:
        """Main poll loop. Runs until the stop event is set.

        If max_jobs is set, stop after processing that many jobs (for testing).
        """
        Log.info(f"Worker {self.worker_id} started, polling for jobs")
        jobs_done = 0
        while not self._stop.is_set():
            if max_jobs is not None and jobs_done >= max_jobs:
                break
            job = self._try_lease_job()
            if job:
                self._job_runner.run(job)
                jobs_done += 1
            else:
                Log.debug("No jobs available, sleeping")
                self._stop.wait(self._settings.job_poll_interval_seconds)
        Log.info(f"Worker {self.worker_id} stopped")

    def _try_lease_job(self) -> LeasedJob | None:
        """Attempt to lease the next job. Gracefully handle broker errors."""
        try:
            return self._queue.lease(self.worker_id, self._settings.lease_ttl_seconds)
        except Exception as exc:
            Log.warning(f"Queue error, will retry: {exc}")
            return None
