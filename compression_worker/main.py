import signal
import sys
import threading
from types import FrameType

from compression_worker.bootstrap import build_backends
from compression_worker.config.settings import Settings
from compression_worker.logging.logger import Log
from compression_worker.processor.processor import build_processor
from compression_worker.storage.factory import ObjectStorageFactory
from compression_worker.transform.factory import TransformEngineFactory
from compression_worker.worker.health import HealthServer
from compression_worker.worker.job_runner import JobRunner
from compression_worker.worker.monitors import QueueStatsReporter, ReconciliationSweep
from compression_worker.worker.pool import WorkerPool


def main() -> None:
    """Entry point: probe codec -> build dependencies -> run pool until signalled."""
    settings = Settings()
    Log.configure(settings.log_level)
    Log.info("Compression worker starting...")
    Log.info(f"  Concurrency: {settings.worker_concurrency}")
    Log.info(f"  Lease TTL: {settings.lease_ttl_seconds}s")

    engine = TransformEngineFactory.create(settings)
    if not engine.verify():
        Log.error(f"Transform engine '{settings.transform_engine}' is not available")
        sys.exit(1)
    Log.info(f"  {settings.transform_engine}: available")

    shutdown = threading.Event()

    def request_shutdown(signum: int, _frame: FrameType | None) -> None:
        Log.info(f"Received {signal.Signals(signum).name}, shutting down gracefully...")
        shutdown.set()

    signal.signal(signal.SIGTERM, request_shutdown)
    signal.signal(signal.SIGINT, request_shutdown)

    backends = build_backends(settings)
    storage = ObjectStorageFactory.create(settings)
    try:
        processor = build_processor(settings, backends.store, storage, engine)
        job_runner = JobRunner(processor, backends.queue, settings)
        pool = WorkerPool(backends.queue, job_runner, settings)
        monitors = [
            QueueStatsReporter(backends.queue, settings),
            ReconciliationSweep(backends.store, backends.queue, settings),
        ]
        health = HealthServer(settings.health_host, settings.health_port)

        health.start()
        for monitor in monitors:
            monitor.start()
        pool.start()
        Log.info("Worker is running and waiting for jobs...")

        shutdown.wait()

        pool.stop()
        for monitor in monitors:
            monitor.stop()
        health.stop()
        Log.info("Worker shutdown complete")
    finally:
        storage.close()
        backends.close()


if __name__ == "__main__":
    main()
