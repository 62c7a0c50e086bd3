from collections.abc import Callable, Iterator
from pathlib import Path

from compression_worker.artifacts.memory import InMemoryArtifactRepository
from compression_worker.artifacts.models import ArtifactStatus
from compression_worker.artifacts.store import ArtifactStore
from compression_worker.bootstrap import build_backends
from compression_worker.config.settings import Settings
from compression_worker.gateway.gateway import TranscodingGateway
from compression_worker.notifications.bus import NotificationBus
from compression_worker.notifications.memory import InMemoryNotificationTransport
from compression_worker.notifications.subscriptions import (
    ArtifactSubscription,
    StatusEvent,
    StatusEventKind,
)
from compression_worker.processor.processor import build_processor
from compression_worker.queue.memory import InMemoryJobQueue
from compression_worker.queue.models import QueueStats
from compression_worker.storage.factory import ObjectStorageFactory
from compression_worker.transform.base import BaseTransformEngine, TransformProgress
from compression_worker.transform.zlib_adapter import ZlibTransformAdapter
from compression_worker.worker.job_runner import JobRunner
from compression_worker.worker.worker import Worker
from tests.factories import FakeClock, make_record

BASE_URL = "http://localhost:3000/files"
SOURCE_PATH = "p1/1700000000000-abc123-scan.ply"
RAW = b"ply\nformat binary_little_endian 1.0\n" + b"\x01\x02" * 50_000
TERMINAL = (ArtifactStatus.READY, ArtifactStatus.ERROR)


class QuarterStepEngine(BaseTransformEngine):
    """Reports 0/25/50/75 percent, then finishes with a real deflate result."""

    def __init__(self) -> None:
        self._zlib = ZlibTransformAdapter()

    def run(self, input_bytes: bytes) -> Iterator[TransformProgress]:
        for percent in (0, 25, 50, 75):
            yield TransformProgress(percent)
        yield from (tick for tick in self._zlib.run(input_bytes) if tick.done)

    def verify(self) -> bool:
        return True


class InterruptedEngine(QuarterStepEngine):
    """Calls ``interrupt`` after the first tick, then carries on."""

    def __init__(self, interrupt: Callable[[], None]) -> None:
        super().__init__()
        self._interrupt = interrupt

    def run(self, input_bytes: bytes) -> Iterator[TransformProgress]:
        ticks = super().run(input_bytes)
        yield next(ticks)
        self._interrupt()
        yield from ticks


def _make_settings(tmp_path: Path) -> Settings:
    return Settings(
        backend="memory",
        storage_backend="local",
        storage_files_root=str(tmp_path),
        storage_public_base_url=BASE_URL,
        transform_engine="zlib",
        job_poll_interval_seconds=0,
        lease_ttl_seconds=60,
    )


def _make_runner(
    settings: Settings,
    store: ArtifactStore,
    queue: InMemoryJobQueue,
    engine: BaseTransformEngine,
) -> JobRunner:
    storage = ObjectStorageFactory.create(settings)
    return JobRunner(build_processor(settings, store, storage, engine), queue, settings)


def _progress(events: list[StatusEvent]) -> list[int]:
    return [e.record.progress_percent for e in events if e.record.progress_percent]


def _terminal(events: list[StatusEvent]) -> list[StatusEvent]:
    return [e for e in events if e.record.status in TERMINAL]


class TestUploadToReady:
    def test_submitted_artifact_becomes_ready(self, tmp_path: Path) -> None:
        settings = _make_settings(tmp_path)
        backends = build_backends(settings)
        storage = ObjectStorageFactory.create(settings)
        source_url = storage.upload(SOURCE_PATH, RAW, "application/octet-stream")
        backends.store.create(make_record(source_url=source_url, source_size_bytes=len(RAW)))

        events: list[StatusEvent] = []
        subscription = ArtifactSubscription(
            backends.bus, backends.store, "a1", on_event=events.append
        )
        subscription.connect()

        gateway = TranscodingGateway(backends.store, backends.queue, settings)
        gateway.submit_for_transcoding("a1", "p1", source_url, "scan.ply", len(RAW))

        runner = _make_runner(settings, backends.store, backends.queue, QuarterStepEngine())
        Worker("w1", backends.queue, runner, settings).run(max_jobs=1)

        record = backends.store.get("a1")
        assert record.status is ArtifactStatus.READY
        assert record.compression_ratio is not None and record.compression_ratio > 1
        assert backends.queue.stats() == QueueStats(completed=1)
        assert not (tmp_path / SOURCE_PATH).exists()

        assert events[0].kind is StatusEventKind.SNAPSHOT
        assert all(e.kind is StatusEventKind.UPDATE for e in events[1:])
        assert _progress(events) == [20, 36, 52, 68, 85, 95]
        assert _terminal(events) == [events[-1]]
        assert events[-1].record.status is ArtifactStatus.READY
        assert subscription.latest == record
        subscription.close()


class TestLeaseLoss:
    def test_worker_that_lost_its_lease_stops_writing(self, tmp_path: Path) -> None:
        settings = _make_settings(tmp_path)
        clock = FakeClock()
        queue = InMemoryJobQueue(clock=clock)
        bus = NotificationBus(InMemoryNotificationTransport())
        store = ArtifactStore(InMemoryArtifactRepository(), bus)
        storage = ObjectStorageFactory.create(settings)
        source_url = storage.upload(SOURCE_PATH, RAW, "application/octet-stream")
        store.create(make_record(source_url=source_url, source_size_bytes=len(RAW)))

        events: list[StatusEvent] = []
        subscription = ArtifactSubscription(bus, store, "a1", on_event=events.append)
        subscription.connect()
        TranscodingGateway(store, queue, settings).submit_for_transcoding(
            "a1", "p1", source_url, "scan.ply", len(RAW)
        )

        runner_b = _make_runner(settings, store, queue, QuarterStepEngine())

        def expire_and_rerun() -> None:
            # Worker A stalls past its lease; worker B re-leases and finishes.
            clock.advance(settings.lease_ttl_seconds + 1)
            Worker("w2", queue, runner_b, settings).run(max_jobs=1)

        runner_a = _make_runner(settings, store, queue, InterruptedEngine(expire_and_rerun))
        Worker("w1", queue, runner_a, settings).run(max_jobs=1)

        record = store.get("a1")
        assert record.status is ArtifactStatus.READY
        assert queue.stats() == QueueStats(completed=1)
        assert len(list((tmp_path / "p1").glob("*.pcsogs"))) == 1

        statuses = [e.record.status for e in events]
        assert _terminal(events) == [events[-1]]
        assert statuses[-1] is ArtifactStatus.READY
        assert _progress(events) == sorted(_progress(events))
        assert subscription.latest == record
        subscription.close()
