import shlex

from compression_worker.config.settings import Settings
from compression_worker.transform.base import BaseTransformEngine
from compression_worker.transform.splat_transform_adapter import SplatTransformAdapter
from compression_worker.transform.zlib_adapter import ZlibTransformAdapter


class TransformEngineFactory:
    """Creates the transform engine selected in settings."""

    ENGINES = ("splat-transform", "zlib")

    @classmethod
    def create(cls, settings: Settings) -> BaseTransformEngine:
        engine = settings.transform_engine.lower()
        if engine == "splat-transform":
            return SplatTransformAdapter(
                command=shlex.split(settings.splat_transform_command),
                output_extension=settings.compressed_extension,
                timeout_seconds=settings.transform_timeout_seconds,
            )
        if engine == "zlib":
            return ZlibTransformAdapter()
        raise ValueError(
            f"Unknown transform engine '{engine}'. Choose from: {list(cls.ENGINES)}"
        )
