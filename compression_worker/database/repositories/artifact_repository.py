from collections.abc import Iterable
from datetime import datetime
from typing import Any

from psycopg.rows import dict_row

from compression_worker.artifacts.base import BaseArtifactRepository
from compression_worker.artifacts.exceptions import ArtifactNotFoundError
from compression_worker.artifacts.models import ArtifactRecord, ArtifactStatus
from compression_worker.database.connection import Database

_COLUMNS = """
    id, parent_id, name, source_url, source_format, source_size_bytes,
    original_size_bytes, status, progress_percent, compressed_url,
    compressed_size_bytes, compression_ratio, error_message, updated_at
"""

_FULL_UPDATE = """
    UPDATE artifacts
    SET parent_id = %(parent_id)s,
        name = %(name)s,
        source_url = %(source_url)s,
        source_format = %(source_format)s,
        source_size_bytes = %(source_size_bytes)s,
        original_size_bytes = %(original_size_bytes)s,
        status = %(status)s,
        progress_percent = %(progress_percent)s,
        compressed_url = %(compressed_url)s,
        compressed_size_bytes = %(compressed_size_bytes)s,
        compression_ratio = %(compression_ratio)s,
        error_message = %(error_message)s,
        updated_at = clock_timestamp()
    WHERE id = %(id)s
"""


def _params(record: ArtifactRecord) -> dict[str, Any]:
    params = record.to_payload()
    del params["updated_at"]
    return params


class ArtifactRepository(BaseArtifactRepository):
    """Database operations for the artifacts table. Every write is a full-record write."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def get(self, artifact_id: str) -> ArtifactRecord | None:
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM artifacts WHERE id = %s",
                    (artifact_id,),
                )
                row = cur.fetchone()
        return ArtifactRecord.from_row(row) if row is not None else None

    def get_many(self, artifact_ids: Iterable[str]) -> list[ArtifactRecord]:
        ids = list(artifact_ids)
        if not ids:
            return []
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM artifacts WHERE id = ANY(%s)",
                    (ids,),
                )
                rows = cur.fetchall()
        return [ArtifactRecord.from_row(row) for row in rows]

    def create(self, record: ArtifactRecord) -> ArtifactRecord:
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    INSERT INTO artifacts
                        (id, parent_id, name, source_url, source_format,
                         source_size_bytes, original_size_bytes, status,
                         progress_percent, compressed_url, compressed_size_bytes,
                         compression_ratio, error_message)
                    VALUES
                        (%(id)s, %(parent_id)s, %(name)s, %(source_url)s,
                         %(source_format)s, %(source_size_bytes)s,
                         %(original_size_bytes)s, %(status)s, %(progress_percent)s,
                         %(compressed_url)s, %(compressed_size_bytes)s,
                         %(compression_ratio)s, %(error_message)s)
                    RETURNING {_COLUMNS}
                    """,
                    _params(record),
                )
                row = cur.fetchone()
            conn.commit()
        assert row is not None
        return ArtifactRecord.from_row(row)

    def save(self, record: ArtifactRecord) -> ArtifactRecord:
        """Overwrite the full record.

        Raises:
            ArtifactNotFoundError: if no artifact with this ID exists.
        """
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(f"{_FULL_UPDATE} RETURNING {_COLUMNS}", _params(record))
                row = cur.fetchone()
            conn.commit()
        if row is None:
            raise ArtifactNotFoundError(f"Artifact {record.id} not found")
        return ArtifactRecord.from_row(row)

    def save_unless_status(
        self, record: ArtifactRecord, status: ArtifactStatus
    ) -> ArtifactRecord | None:
        """Overwrite the full record unless the stored status equals ``status``.

        The WHERE clause is re-checked after the row lock, so two concurrent
        callers cannot both succeed.
        """
        return self._guarded_save(record, "status <> %(guard_status)s", status)

    def save_if_status(
        self, record: ArtifactRecord, status: ArtifactStatus
    ) -> ArtifactRecord | None:
        """Overwrite the full record only while the stored status equals ``status``."""
        return self._guarded_save(record, "status = %(guard_status)s", status)

    def _guarded_save(
        self, record: ArtifactRecord, condition: str, status: ArtifactStatus
    ) -> ArtifactRecord | None:
        params = _params(record)
        params["guard_status"] = status.value
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(f"{_FULL_UPDATE} AND {condition} RETURNING {_COLUMNS}", params)
                row = cur.fetchone()
                if row is None:
                    cur.execute("SELECT 1 FROM artifacts WHERE id = %s", (record.id,))
                    exists = cur.fetchone() is not None
            conn.commit()
        if row is not None:
            return ArtifactRecord.from_row(row)
        if not exists:
            raise ArtifactNotFoundError(f"Artifact {record.id} not found")
        return None

    def find_stale_processing(self, updated_before: datetime) -> list[ArtifactRecord]:
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS} FROM artifacts
                    WHERE status = 'processing' AND updated_at < %s
                    ORDER BY updated_at
                    """,
                    (updated_before,),
                )
                rows = cur.fetchall()
        return [ArtifactRecord.from_row(row) for row in rows]
