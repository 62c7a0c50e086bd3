import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from compression_worker.artifacts.store import ArtifactStore
from compression_worker.config.settings import Settings
from compression_worker.logging.logger import Log
from compression_worker.queue.base import BaseJobQueue

STALLED_MESSAGE = "Transcoding stalled: no active job found"


class PeriodicTask(ABC):
    """Runs ``tick()`` every ``interval`` seconds on a daemon thread."""

    name = "periodic"

    def __init__(self, interval_seconds: float) -> None:
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @abstractmethod
    def tick(self) -> None:
        raise NotImplementedError

    def start(self) -> None:
        if self._interval <= 0:
            Log.info(f"{self.name} disabled")
            return
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.tick()
            except Exception as exc:
                Log.error(f"{self.name} failed: {exc}")


class QueueStatsReporter(PeriodicTask):
    """Logs queue counts and purges finished jobs past their retention."""

    name = "queue-stats"

    def __init__(self, queue: BaseJobQueue, settings: Settings) -> None:
        super().__init__(settings.queue_stats_interval_seconds)
        self._queue = queue
        self._retention = settings.finished_job_retention_seconds

    def tick(self) -> None:
        stats = self._queue.stats()
        Log.info(
            f"Queue stats: waiting={stats.waiting}, active={stats.active}, "
            f"completed={stats.completed}, failed={stats.failed}"
        )
        purged = self._queue.purge_finished(self._retention)
        if purged:
            Log.info(f"Purged {purged} finished jobs")


class ReconciliationSweep(PeriodicTask):
    """Fails artifacts stuck in processing with no live job so they can be retried."""

    name = "reconcile"

    def __init__(
        self,
        store: ArtifactStore,
        queue: BaseJobQueue,
        settings: Settings,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        super().__init__(settings.reconcile_interval_seconds)
        self._store = store
        self._queue = queue
        self._stale_after = timedelta(seconds=settings.stale_processing_after_seconds)
        self._clock = clock

    def tick(self) -> None:
        self.sweep()

    def sweep(self) -> int:
        """Return the number of artifacts moved to error."""
        cutoff = self._clock() - self._stale_after
        failed = 0
        for record in self._store.find_stale_processing(cutoff):
            if self._queue.has_live_job(record.id):
                continue
            Log.warning(
                f"Artifact {record.id} stuck in processing since {record.updated_at}, "
                "marking as error"
            )
            if self._store.mark_failed(record, STALLED_MESSAGE) is not None:
                failed += 1
        return failed
