import os
from pathlib import Path
from collections.abc import Generator
from typing import Any

import psycopg
import pytest

from compression_worker.artifacts.store import ArtifactStore
from compression_worker.config.settings import Settings
from compression_worker.database import connection
from compression_worker.database.connection import Database
from compression_worker.database.repositories.artifact_repository import ArtifactRepository
from compression_worker.database.repositories.job_repository import JobRepository
from compression_worker.notifications.bus import NotificationBus
from compression_worker.notifications.postgres import PostgresNotificationTransport


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "scans_test")
    return Settings(notification_subscribe_timeout_seconds=5)


def _schema_sql() -> str:
    return (Path(connection.__file__).parent / "schema.sql").read_text(encoding="utf-8")


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def database(test_settings: Settings) -> Generator[Database, None, None]:
    db = Database(test_settings)
    try:
        db.init()
    except Exception as e:
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. "
            "Set DB_* env to point at a disposable database"
        )
    with db.connection() as conn:
        conn.execute(_schema_sql())
        conn.commit()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def db_conn(database: Database) -> Generator[psycopg.Connection[Any], None, None]:
    with database.connection() as conn:
        yield conn


@pytest.fixture(autouse=True)
def clean_tables(request: pytest.FixtureRequest) -> Generator[None, None, None]:
    if "database" not in request.fixturenames:
        yield
        return
    database: Database = request.getfixturevalue("database")
    with database.connection() as conn:
        conn.execute("TRUNCATE compression_jobs, artifacts RESTART IDENTITY")
        conn.commit()
    yield


@pytest.fixture
def job_repository(database: Database) -> JobRepository:
    return JobRepository(database)


@pytest.fixture
def artifact_repository(database: Database) -> ArtifactRepository:
    return ArtifactRepository(database)


@pytest.fixture
def pg_bus(database: Database, test_settings: Settings) -> NotificationBus:
    return NotificationBus(
        PostgresNotificationTransport(
            database, test_settings.notification_subscribe_timeout_seconds
        )
    )


@pytest.fixture
def pg_store(artifact_repository: ArtifactRepository, pg_bus: NotificationBus) -> ArtifactStore:
    return ArtifactStore(artifact_repository, pg_bus)
