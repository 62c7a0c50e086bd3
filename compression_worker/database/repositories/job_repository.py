from typing import Any

import psycopg
from psycopg.errors import UniqueViolation
from psycopg.rows import dict_row

from compression_worker.database.connection import Database
from compression_worker.queue.base import BaseJobQueue
from compression_worker.queue.exceptions import DuplicateJobError, QueueError
from compression_worker.queue.models import (
    CompressionJob,
    JobStatus,
    LeasedJob,
    QueueStats,
)


def _job_from_row(row: dict[str, Any]) -> CompressionJob:
    return CompressionJob(
        artifact_id=row["artifact_id"],
        parent_id=row["parent_id"],
        source_url=row["source_url"],
        file_name=row["file_name"],
        file_size_bytes=row["file_size_bytes"],
    )


class JobRepository(BaseJobQueue):
    """Durable job queue on the compression_jobs table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def push(self, job: CompressionJob) -> str:
        try:
            with self._db.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        INSERT INTO compression_jobs
                            (artifact_id, parent_id, source_url, file_name, file_size_bytes)
                        VALUES (%s, %s, %s, %s, %s)
                        RETURNING id
                        """,
                        (
                            job.artifact_id,
                            job.parent_id,
                            job.source_url,
                            job.file_name,
                            job.file_size_bytes,
                        ),
                    )
                    row = cur.fetchone()
                conn.commit()
        except UniqueViolation as exc:
            raise DuplicateJobError(
                f"Artifact {job.artifact_id} already has a live job"
            ) from exc
        except psycopg.Error as exc:
            raise QueueError(f"Failed to enqueue job for {job.artifact_id}: {exc}") from exc
        assert row is not None
        return str(row[0])

    def lease(self, worker_id: str, lease_ttl_seconds: int) -> LeasedJob | None:
        """Claim the next waiting or stalled job using SELECT FOR UPDATE SKIP LOCKED."""
        with self._db.connection() as conn:
            return self._claim_next_job(conn, worker_id, lease_ttl_seconds)

    def _claim_next_job(
        self, conn: psycopg.Connection[Any], worker_id: str, lease_ttl_seconds: int
    ) -> LeasedJob | None:
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                """
                SELECT id, artifact_id, parent_id, source_url, file_name,
                       file_size_bytes, status
                FROM compression_jobs
                WHERE status = 'waiting'
                   OR (status = 'active' AND lease_expires_at <= NOW())
                ORDER BY created_at, id
                LIMIT 1
                FOR UPDATE SKIP LOCKED
                """
            )
            row = cur.fetchone()

            if row is None:
                conn.rollback()
                return None

            stalled = row["status"] == JobStatus.ACTIVE.value
            cur.execute(
                """
                UPDATE compression_jobs
                SET status = 'active', worker_id = %s,
                    lease_expires_at = NOW() + make_interval(secs => %s),
                    stalled_count = stalled_count + %s,
                    updated_at = NOW()
                WHERE id = %s
                RETURNING lease_expires_at
                """,
                (worker_id, float(lease_ttl_seconds), 1 if stalled else 0, row["id"]),
            )
            leased = cur.fetchone()
        conn.commit()

        assert leased is not None
        return LeasedJob(
            job_id=str(row["id"]),
            job=_job_from_row(row),
            worker_id=worker_id,
            lease_expires_at=leased["lease_expires_at"],
            stalled=stalled,
        )

    def renew(self, job_id: str, worker_id: str, lease_ttl_seconds: int) -> bool:
        with self._db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE compression_jobs
                    SET lease_expires_at = NOW() + make_interval(secs => %s),
                        updated_at = NOW()
                    WHERE id = %s AND worker_id = %s
                      AND status = 'active' AND lease_expires_at > NOW()
                    """,
                    (float(lease_ttl_seconds), int(job_id), worker_id),
                )
                renewed = cur.rowcount == 1
            conn.commit()
        return renewed

    def ack(
        self,
        job_id: str,
        worker_id: str,
        *,
        failed: bool = False,
        error_message: str | None = None,
    ) -> bool:
        status = JobStatus.FAILED if failed else JobStatus.COMPLETED
        with self._db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE compression_jobs
                    SET status = %s, error_message = %s, lease_expires_at = NULL,
                        finished_at = NOW(), updated_at = NOW()
                    WHERE id = %s AND worker_id = %s
                      AND status = 'active' AND lease_expires_at > NOW()
                    """,
                    (status.value, error_message, int(job_id), worker_id),
                )
                acked = cur.rowcount == 1
            conn.commit()
        return acked

    def stats(self) -> QueueStats:
        with self._db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT status, COUNT(*) FROM compression_jobs GROUP BY status"
                )
                counts = {status: count for status, count in cur.fetchall()}
        return QueueStats(
            waiting=counts.get(JobStatus.WAITING.value, 0),
            active=counts.get(JobStatus.ACTIVE.value, 0),
            completed=counts.get(JobStatus.COMPLETED.value, 0),
            failed=counts.get(JobStatus.FAILED.value, 0),
        )

    def has_live_job(self, artifact_id: str) -> bool:
        with self._db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT 1 FROM compression_jobs
                    WHERE artifact_id = %s AND status IN ('waiting', 'active')
                    LIMIT 1
                    """,
                    (artifact_id,),
                )
                return cur.fetchone() is not None

    def purge_finished(self, older_than_seconds: int) -> int:
        with self._db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    DELETE FROM compression_jobs
                    WHERE status IN ('completed', 'failed')
                      AND finished_at < NOW() - make_interval(secs => %s)
                    """,
                    (float(older_than_seconds),),
                )
                deleted = cur.rowcount
            conn.commit()
        return deleted

    def find_by_id(self, job_id: str) -> dict[str, Any] | None:
        """Fetch the raw job row. Useful for tests."""
        with self._db.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, artifact_id, status, worker_id, lease_expires_at,
                           stalled_count, error_message, finished_at
                    FROM compression_jobs
                    WHERE id = %s
                    """,
                    (int(job_id),),
                )
                return cur.fetchone()
