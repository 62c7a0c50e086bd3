from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any


class ArtifactStatus(str, Enum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ArtifactStatus.READY, ArtifactStatus.ERROR)


@dataclass(frozen=True, slots=True)
class Uploading:
    status = ArtifactStatus.UPLOADING


@dataclass(frozen=True, slots=True)
class Processing:
    progress_percent: int = 0
    status = ArtifactStatus.PROCESSING

    def __post_init__(self) -> None:
        if not 0 <= self.progress_percent <= 100:
            raise ValueError(f"progress_percent must be in 0..100, got {self.progress_percent}")


@dataclass(frozen=True, slots=True)
class Ready:
    compressed_url: str
    compressed_size_bytes: int
    compression_ratio: float
    status = ArtifactStatus.READY

    def __post_init__(self) -> None:
        if not self.compressed_url:
            raise ValueError("compressed_url must not be empty")
        if self.compressed_size_bytes <= 0:
            raise ValueError("compressed_size_bytes must be positive")
        if self.compression_ratio <= 0:
            raise ValueError("compression_ratio must be positive")


@dataclass(frozen=True, slots=True)
class Failed:
    error_message: str
    status = ArtifactStatus.ERROR

    def __post_init__(self) -> None:
        if not self.error_message:
            raise ValueError("error_message must not be empty")


ArtifactState = Uploading | Processing | Ready | Failed


@dataclass(frozen=True, slots=True)
class ArtifactRecord:
    """Durable representation of one transcodable file.

    Nullable columns (progress, compressed fields, error message) are derived
    from ``state``, so a record can only carry the fields its status allows.
    """

    id: str
    parent_id: str
    name: str
    source_url: str
    source_format: str
    source_size_bytes: int
    state: ArtifactState = Uploading()
    original_size_bytes: int | None = None
    updated_at: datetime | None = None

    @property
    def status(self) -> ArtifactStatus:
        return self.state.status

    @property
    def progress_percent(self) -> int | None:
        return self.state.progress_percent if isinstance(self.state, Processing) else None

    @property
    def compressed_url(self) -> str | None:
        return self.state.compressed_url if isinstance(self.state, Ready) else None

    @property
    def compressed_size_bytes(self) -> int | None:
        return self.state.compressed_size_bytes if isinstance(self.state, Ready) else None

    @property
    def compression_ratio(self) -> float | None:
        return self.state.compression_ratio if isinstance(self.state, Ready) else None

    @property
    def error_message(self) -> str | None:
        return self.state.error_message if isinstance(self.state, Failed) else None

    def with_state(self, state: ArtifactState, **changes: Any) -> "ArtifactRecord":
        """Return a full copy of the record in a new state."""
        return replace(self, state=state, **changes)

    def to_payload(self) -> dict[str, Any]:
        """Flat JSON-serializable view, used as the notification payload."""
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "name": self.name,
            "source_url": self.source_url,
            "source_format": self.source_format,
            "source_size_bytes": self.source_size_bytes,
            "original_size_bytes": self.original_size_bytes,
            "status": self.status.value,
            "progress_percent": self.progress_percent,
            "compressed_url": self.compressed_url,
            "compressed_size_bytes": self.compressed_size_bytes,
            "compression_ratio": self.compression_ratio,
            "error_message": self.error_message,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ArtifactRecord":
        """Build a record from a flat dict (notification payload or DB row)."""
        updated_at = payload.get("updated_at")
        if isinstance(updated_at, str):
            updated_at = datetime.fromisoformat(updated_at)
        return cls(
            id=str(payload["id"]),
            parent_id=str(payload["parent_id"]),
            name=payload["name"],
            source_url=payload["source_url"],
            source_format=payload["source_format"],
            source_size_bytes=int(payload["source_size_bytes"]),
            state=state_from_columns(payload),
            original_size_bytes=payload.get("original_size_bytes"),
            updated_at=updated_at,
        )

    from_row = from_payload


def state_from_columns(columns: dict[str, Any]) -> ArtifactState:
    """Rebuild the state variant from flat status columns."""
    status = ArtifactStatus(columns["status"])
    if status is ArtifactStatus.PROCESSING:
        progress = columns.get("progress_percent")
        return Processing(progress_percent=progress if progress is not None else 0)
    if status is ArtifactStatus.READY:
        return Ready(
            compressed_url=columns["compressed_url"],
            compressed_size_bytes=int(columns["compressed_size_bytes"]),
            compression_ratio=float(columns["compression_ratio"]),
        )
    if status is ArtifactStatus.ERROR:
        return Failed(error_message=columns.get("error_message") or "Unknown error")
    return Uploading()


def file_format(file_name: str) -> str:
    """Lower-cased extension of a file name without the dot, or ``""``."""
    _, dot, ext = file_name.rpartition(".")
    return ext.lower() if dot else ""
