from pathlib import Path

from compression_worker.config.settings import Settings
from compression_worker.storage.base import BaseObjectStorage
from compression_worker.storage.local_adapter import LocalStorageAdapter
from compression_worker.storage.supabase_adapter import SupabaseStorageAdapter


class ObjectStorageFactory:
    """Creates the object storage adapter selected in settings."""

    BACKENDS = ("supabase", "local")

    @classmethod
    def create(cls, settings: Settings) -> BaseObjectStorage:
        backend = settings.storage_backend.lower()
        if backend == "supabase":
            if not settings.supabase_url or not settings.supabase_service_key:
                raise ValueError(
                    "SUPABASE_URL and SUPABASE_SERVICE_KEY are required for supabase storage"
                )
            return SupabaseStorageAdapter(
                base_url=settings.supabase_url,
                service_key=settings.supabase_service_key,
                bucket=settings.storage_bucket,
                timeout_seconds=settings.storage_timeout_seconds,
            )
        if backend == "local":
            return LocalStorageAdapter(
                files_root=Path(settings.storage_files_root),
                public_base_url=settings.storage_public_base_url,
            )
        raise ValueError(
            f"Unknown storage backend '{backend}'. Choose from: {list(cls.BACKENDS)}"
        )
