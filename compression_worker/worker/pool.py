import os
import socket
import threading

from compression_worker.config.settings import Settings
from compression_worker.logging.logger import Log
from compression_worker.queue.base import BaseJobQueue
from compression_worker.worker.job_runner import JobRunner
from compression_worker.worker.worker import Worker


def worker_id_prefix() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


class WorkerPool:
    """Fixed-size pool of worker threads sharing one queue and runner."""

    def __init__(self, queue: BaseJobQueue, job_runner: JobRunner, settings: Settings) -> None:
        self._stop = threading.Event()
        prefix = worker_id_prefix()
        self.workers = [
            Worker(f"{prefix}-{i}", queue, job_runner, settings, self._stop)
            for i in range(settings.worker_concurrency)
        ]
        self._threads: list[threading.Thread] = []

    def start(self) -> None:
        Log.info(f"Starting {len(self.workers)} workers")
        for i, worker in enumerate(self.workers):
            thread = threading.Thread(target=worker.run, name=f"worker-{i}", daemon=True)
            thread.start()
            self._threads.append(thread)

    def stop(self, timeout: float | None = None) -> None:
        """Ask workers to finish their current job and exit, then wait for them."""
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout)
        alive = [t.name for t in self._threads if t.is_alive()]
        if alive:
            Log.warning(f"Workers still running after shutdown timeout: {alive}")

    def is_alive(self) -> bool:
        return any(t.is_alive() for t in self._threads)
