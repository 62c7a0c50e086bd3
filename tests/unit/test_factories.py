from pathlib import Path

import pytest

from compression_worker.config.settings import Settings
from compression_worker.storage.factory import ObjectStorageFactory
from compression_worker.storage.local_adapter import LocalStorageAdapter
from compression_worker.storage.supabase_adapter import SupabaseStorageAdapter
from compression_worker.transform.factory import TransformEngineFactory
from compression_worker.transform.splat_transform_adapter import SplatTransformAdapter
from compression_worker.transform.zlib_adapter import ZlibTransformAdapter


class TestObjectStorageFactory:
    def test_creates_supabase_adapter(self) -> None:
        settings = Settings(
            storage_backend="supabase",
            supabase_url="https://proj.supabase.co",
            supabase_service_key="key",
        )

        adapter = ObjectStorageFactory.create(settings)

        assert isinstance(adapter, SupabaseStorageAdapter)
        adapter.close()

    def test_supabase_requires_credentials(self) -> None:
        settings = Settings(storage_backend="supabase", supabase_url="", supabase_service_key="")

        with pytest.raises(ValueError, match="SUPABASE_URL"):
            ObjectStorageFactory.create(settings)

    def test_creates_local_adapter(self, tmp_path: Path) -> None:
        settings = Settings(storage_backend="LOCAL", storage_files_root=str(tmp_path))

        assert isinstance(ObjectStorageFactory.create(settings), LocalStorageAdapter)

    def test_unknown_backend_raises(self) -> None:
        settings = Settings(storage_backend="s3")

        with pytest.raises(ValueError, match="Unknown storage backend"):
            ObjectStorageFactory.create(settings)


class TestTransformEngineFactory:
    def test_creates_splat_transform_adapter(self) -> None:
        settings = Settings(transform_engine="splat-transform")

        assert isinstance(TransformEngineFactory.create(settings), SplatTransformAdapter)

    def test_creates_zlib_adapter(self) -> None:
        settings = Settings(transform_engine="zlib")

        assert isinstance(TransformEngineFactory.create(settings), ZlibTransformAdapter)

    def test_unknown_engine_raises(self) -> None:
        settings = Settings(transform_engine="draco")

        with pytest.raises(ValueError, match="Unknown transform engine"):
            TransformEngineFactory.create(settings)
