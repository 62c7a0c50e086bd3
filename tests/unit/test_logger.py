import logging

import pytest

from compression_worker.logging.logger import Log


class TestLog:
    def test_renders_fields_after_message(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="compression_worker"):
            Log.info("Running job", job_id="7", artifact_id="a1")

        assert caplog.messages == ["Running job | job_id=7 artifact_id=a1"]

    def test_plain_message_unchanged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="compression_worker"):
            Log.warning("Queue error, will retry")

        assert caplog.messages == ["Queue error, will retry"]

    def test_exception_includes_traceback(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.ERROR, logger="compression_worker"):
            try:
                raise RuntimeError("boom")
            except RuntimeError:
                Log.exception("Subscriber raised")

        assert caplog.records[0].exc_info is not None

    def test_configure_adds_single_handler(self) -> None:
        Log.configure("debug")
        Log.configure("info")

        logger = logging.getLogger("compression_worker")
        assert len(logger.handlers) == 1
        assert logger.level == logging.INFO
