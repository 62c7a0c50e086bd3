from collections.abc import Callable

import pytest

from compression_worker.artifacts.memory import InMemoryArtifactRepository
from compression_worker.artifacts.models import ArtifactRecord
from compression_worker.artifacts.store import ArtifactStore
from compression_worker.config.settings import Settings
from compression_worker.notifications.bus import NotificationBus
from compression_worker.notifications.memory import InMemoryNotificationTransport
from compression_worker.queue.memory import InMemoryJobQueue
from tests.factories import make_record


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        backend="memory",
        storage_backend="local",
        transform_engine="zlib",
        worker_concurrency=1,
        job_poll_interval_seconds=0,
        lease_ttl_seconds=60,
    )


@pytest.fixture()
def transport() -> InMemoryNotificationTransport:
    return InMemoryNotificationTransport()


@pytest.fixture()
def bus(transport: InMemoryNotificationTransport) -> NotificationBus:
    return NotificationBus(transport)


@pytest.fixture()
def repository() -> InMemoryArtifactRepository:
    return InMemoryArtifactRepository()


@pytest.fixture()
def store(repository: InMemoryArtifactRepository, bus: NotificationBus) -> ArtifactStore:
    return ArtifactStore(repository, bus)


@pytest.fixture()
def queue() -> InMemoryJobQueue:
    return InMemoryJobQueue()


@pytest.fixture()
def seed(store: ArtifactStore) -> Callable[..., ArtifactRecord]:
    """Insert a record into the store and return it."""

    def _seed(**kwargs: object) -> ArtifactRecord:
        return store.create(make_record(**kwargs))  # type: ignore[arg-type]

    return _seed
