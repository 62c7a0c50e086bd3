from unittest.mock import MagicMock

import pytest

from compression_worker.artifacts.models import Processing
from compression_worker.processor.exceptions import (
    ArtifactNoLongerProcessingError,
    LeaseLostError,
    MissingStageOutputError,
)
from compression_worker.processor.pipeline import PipelineContext
from compression_worker.processor.progress import ProgressReporter, map_transform_progress
from tests.factories import make_leased_job, make_record


class TestMapTransformProgress:
    @pytest.mark.parametrize(
        ("engine", "expected"),
        [(0, 20), (25, 36), (50, 52), (75, 68), (100, 85)],
    )
    def test_maps_into_transform_band(self, engine: int, expected: int) -> None:
        assert map_transform_progress(engine) == expected

    def test_clamps_out_of_range(self) -> None:
        assert map_transform_progress(-5) == 20
        assert map_transform_progress(150) == 85


class TestProgressReporter:
    def _make_context(self, progress: int) -> PipelineContext:
        return PipelineContext(
            leased_job=make_leased_job(), record=make_record(state=Processing(progress))
        )

    def test_writes_higher_progress(self) -> None:
        store = MagicMock()
        updated = make_record(state=Processing(52))
        store.update_progress.return_value = updated
        context = self._make_context(36)

        ProgressReporter(store).report(context, 52)

        store.update_progress.assert_called_once()
        assert context.record == updated

    @pytest.mark.parametrize("percent", [20, 36])
    def test_skips_repeated_or_lower_progress(self, percent: int) -> None:
        store = MagicMock()
        context = self._make_context(36)

        ProgressReporter(store).report(context, percent)

        store.update_progress.assert_not_called()

    def test_requires_record(self) -> None:
        context = PipelineContext(leased_job=make_leased_job())

        with pytest.raises(MissingStageOutputError):
            ProgressReporter(MagicMock()).report(context, 20)

    def test_lost_lease_stops_writes(self) -> None:
        store = MagicMock()
        context = self._make_context(36)
        context.lease_lost.set()

        with pytest.raises(LeaseLostError):
            ProgressReporter(store).report(context, 52)

        store.update_progress.assert_not_called()

    def test_record_no_longer_processing_raises(self) -> None:
        store = MagicMock()
        store.update_progress.return_value = None
        context = self._make_context(36)

        with pytest.raises(ArtifactNoLongerProcessingError, match="a1"):
            ProgressReporter(store).report(context, 52)

        assert context.record is not None
        assert context.record.progress_percent == 36
