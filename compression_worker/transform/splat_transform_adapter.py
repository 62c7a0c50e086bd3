import re
import subprocess
import tempfile
import threading
from collections import deque
from collections.abc import Iterator, Sequence
from pathlib import Path

from compression_worker.logging.logger import Log
from compression_worker.transform.base import (
    BaseTransformEngine,
    TransformProgress,
    TransformResult,
)
from compression_worker.transform.exceptions import (
    TransformError,
    TransformUnavailableError,
)

_PERCENT = re.compile(r"(\d{1,3}(?:\.\d+)?)\s*%")


def parse_percent(line: str) -> int | None:
    """Extract the last percentage printed on a CLI output line."""
    matches = _PERCENT.findall(line)
    if not matches:
        return None
    value = int(float(matches[-1]))
    return value if 0 <= value <= 100 else None


class SplatTransformAdapter(BaseTransformEngine):
    """Converts PLY point clouds to the compact splat format via the splat-transform CLI."""

    VERIFY_TIMEOUT_SECONDS = 30
    OUTPUT_TAIL_LINES = 20

    def __init__(
        self,
        command: Sequence[str],
        output_extension: str,
        timeout_seconds: int,
    ) -> None:
        self._command = list(command)
        self._output_extension = output_extension.lstrip(".")
        self._timeout = timeout_seconds

    def run(self, input_bytes: bytes) -> Iterator[TransformProgress]:
        with tempfile.TemporaryDirectory(prefix="splat-compress-") as temp_dir:
            input_path = Path(temp_dir) / "input.ply"
            output_path = Path(temp_dir) / f"output.{self._output_extension}"
            input_path.write_bytes(input_bytes)

            yield TransformProgress(0)
            last = 0
            for percent in self._execute([*self._command, str(input_path), str(output_path)]):
                if last < percent < 100:
                    last = percent
                    yield TransformProgress(percent)

            if not output_path.exists():
                raise TransformError("splat-transform produced no output file")
            output_bytes = output_path.read_bytes()

        if not output_bytes:
            raise TransformError("splat-transform produced an empty output file")
        result = TransformResult(
            output_bytes=output_bytes,
            input_size=len(input_bytes),
            output_size=len(output_bytes),
        )
        Log.info(
            f"Compression complete: {result.input_size / 1024 / 1024:.2f}MB -> "
            f"{result.output_size / 1024 / 1024:.2f}MB ({result.compression_ratio:.1f}x)"
        )
        yield TransformProgress(100, done=True, result=result)

    def _execute(self, args: list[str]) -> Iterator[int]:
        """Run the CLI, yielding percentages parsed from its output."""
        try:
            process = subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as exc:
            raise TransformUnavailableError(f"Cannot start splat-transform: {exc}") from exc

        timed_out = threading.Event()

        def kill() -> None:
            timed_out.set()
            process.kill()

        timer = threading.Timer(self._timeout, kill)
        timer.start()
        tail: deque[str] = deque(maxlen=self.OUTPUT_TAIL_LINES)
        try:
            assert process.stdout is not None
            for line in process.stdout:
                line = line.strip()
                if not line:
                    continue
                tail.append(line)
                Log.debug(f"splat-transform: {line}")
                percent = parse_percent(line)
                if percent is not None:
                    yield percent
            returncode = process.wait()
        finally:
            timer.cancel()
            if process.poll() is None:
                process.kill()
                process.wait()

        if timed_out.is_set():
            raise TransformError(f"splat-transform timed out after {self._timeout}s")
        if returncode != 0:
            output = " | ".join(tail) or "no output"
            raise TransformError(f"splat-transform exited with code {returncode}: {output}")

    def verify(self) -> bool:
        try:
            completed = subprocess.run(
                [*self._command, "--help"],
                capture_output=True,
                text=True,
                timeout=self.VERIFY_TIMEOUT_SECONDS,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            Log.error(f"splat-transform verification failed: {exc}")
            return False
        output = completed.stdout + completed.stderr
        return "splat-transform" in output or "Usage" in output
