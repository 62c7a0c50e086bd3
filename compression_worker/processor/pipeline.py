import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from compression_worker.artifacts.models import ArtifactRecord
from compression_worker.processor.exceptions import LeaseLostError
from compression_worker.queue.models import LeasedJob
from compression_worker.transform.base import TransformResult


@dataclass(slots=True)
class PipelineContext:
    leased_job: LeasedJob
    lease_lost: threading.Event = field(default_factory=threading.Event)
    record: ArtifactRecord | None = None
    skipped: bool = False
    raw_bytes: bytes = b""
    transform_result: TransformResult | None = None
    compressed_url: str = ""
    compressed_size_bytes: int = 0
    source_deleted: bool = False
    error_message: str = ""

    @property
    def artifact_id(self) -> str:
        return self.leased_job.job.artifact_id

    def ensure_lease(self) -> None:
        """Raise LeaseLostError once the lease heartbeat has given up."""
        if self.lease_lost.is_set():
            raise LeaseLostError(f"Lease for job {self.leased_job.job_id} was lost")


class PipelineStep(ABC):
    @abstractmethod
    def run(self, context: PipelineContext) -> PipelineContext:
        raise NotImplementedError
