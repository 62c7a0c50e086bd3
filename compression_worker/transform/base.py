from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from compression_worker.transform.exceptions import TransformError


@dataclass(frozen=True, slots=True)
class TransformResult:
    output_bytes: bytes
    input_size: int
    output_size: int

    @property
    def compression_ratio(self) -> float:
        return self.input_size / self.output_size


@dataclass(frozen=True, slots=True)
class TransformProgress:
    """One tick of the engine's progress stream.

    ``percent`` is 0..100 and never decreases within a run. The last tick has
    ``done=True`` and carries the result. Failures raise ``TransformError``
    from the iterator instead of producing a tick.
    """

    percent: int
    done: bool = False
    result: TransformResult | None = None


class BaseTransformEngine(ABC):
    """Contract for raw-to-compact codecs."""

    @abstractmethod
    def run(self, input_bytes: bytes) -> Iterator[TransformProgress]:
        """Convert ``input_bytes``, yielding progress ticks.

        The engine does not advance past a tick until the consumer asks for
        the next one.

        Raises:
            TransformError: if conversion fails.
        """

    @abstractmethod
    def verify(self) -> bool:
        """Startup health probe: True when the codec is usable."""

    def transform(
        self,
        input_bytes: bytes,
        on_progress: Callable[[int], None] | None = None,
    ) -> TransformResult:
        """Drain ``run()`` and return its result, reporting each tick."""
        result: TransformResult | None = None
        for tick in self.run(input_bytes):
            if on_progress is not None:
                on_progress(tick.percent)
            if tick.done:
                result = tick.result
        if result is None:
            raise TransformError("Transform finished without producing output")
        return result
