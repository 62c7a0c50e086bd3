from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class JobStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class CompressionJob:
    """Queue payload. Ephemeral: the artifact record is the source of truth."""

    artifact_id: str
    parent_id: str
    source_url: str
    file_name: str
    file_size_bytes: int


@dataclass(frozen=True, slots=True)
class LeasedJob:
    job_id: str
    job: CompressionJob
    worker_id: str
    lease_expires_at: datetime
    stalled: bool = False


@dataclass(frozen=True, slots=True)
class QueueStats:
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
