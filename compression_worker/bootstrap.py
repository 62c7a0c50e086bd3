from dataclasses import dataclass

from compression_worker.artifacts.memory import InMemoryArtifactRepository
from compression_worker.artifacts.store import ArtifactStore
from compression_worker.config.settings import Settings
from compression_worker.database.connection import Database
from compression_worker.database.repositories.artifact_repository import ArtifactRepository
from compression_worker.database.repositories.job_repository import JobRepository
from compression_worker.notifications.bus import NotificationBus
from compression_worker.notifications.memory import InMemoryNotificationTransport
from compression_worker.notifications.postgres import PostgresNotificationTransport
from compression_worker.queue.base import BaseJobQueue
from compression_worker.queue.memory import InMemoryJobQueue


@dataclass
class Backends:
    """Explicit handles for the state store, queue and bus. Closed by the entry point."""

    store: ArtifactStore
    queue: BaseJobQueue
    bus: NotificationBus
    database: Database | None = None

    def close(self) -> None:
        if self.database is not None:
            self.database.close()


def build_backends(settings: Settings) -> Backends:
    """Build store, queue and bus for the configured backend."""
    backend = settings.backend.lower()
    if backend == "postgres":
        database = Database(settings)
        database.init()
        bus = NotificationBus(
            PostgresNotificationTransport(
                database, settings.notification_subscribe_timeout_seconds
            )
        )
        return Backends(
            store=ArtifactStore(ArtifactRepository(database), bus),
            queue=JobRepository(database),
            bus=bus,
            database=database,
        )
    if backend == "memory":
        bus = NotificationBus(InMemoryNotificationTransport())
        return Backends(
            store=ArtifactStore(InMemoryArtifactRepository(), bus),
            queue=InMemoryJobQueue(),
            bus=bus,
        )
    raise ValueError(f"Unknown backend '{backend}'. Choose from: ['postgres', 'memory']")
