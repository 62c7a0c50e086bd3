import zlib
from collections.abc import Iterator

from compression_worker.transform.base import (
    BaseTransformEngine,
    TransformProgress,
    TransformResult,
)
from compression_worker.transform.exceptions import TransformError


class ZlibTransformAdapter(BaseTransformEngine):
    """Deflate-based engine with chunked progress.

    No external binary. Useful for local development, tests, and as a
    template for new codec adapters.
    """

    CHUNK_SIZE = 1024 * 1024

    def __init__(self, level: int = 9, chunk_size: int = CHUNK_SIZE) -> None:
        self._level = level
        self._chunk_size = chunk_size

    def run(self, input_bytes: bytes) -> Iterator[TransformProgress]:
        if not input_bytes:
            raise TransformError("Cannot compress an empty input")
        compressor = zlib.compressobj(self._level)
        parts: list[bytes] = []
        total = len(input_bytes)

        yield TransformProgress(0)
        last = 0
        for offset in range(0, total, self._chunk_size):
            parts.append(compressor.compress(input_bytes[offset : offset + self._chunk_size]))
            percent = min(99, (offset + self._chunk_size) * 100 // total)
            if percent > last:
                last = percent
                yield TransformProgress(percent)
        parts.append(compressor.flush())

        output = b"".join(parts)
        yield TransformProgress(
            100,
            done=True,
            result=TransformResult(output_bytes=output, input_size=total, output_size=len(output)),
        )

    def verify(self) -> bool:
        return True
