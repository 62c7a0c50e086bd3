import importlib
import sys
from collections.abc import Callable
from unittest.mock import MagicMock

import pytest
from flask.testing import FlaskClient

from compression_worker.artifacts.models import ArtifactRecord, ArtifactStatus, Failed
from compression_worker.artifacts.store import ArtifactStore
from compression_worker.config.settings import Settings
from compression_worker.gateway.api import create_gateway_app
from compression_worker.gateway.gateway import TranscodingGateway
from compression_worker.queue.exceptions import QueueError
from compression_worker.queue.memory import InMemoryJobQueue
from tests.factories import SOURCE_URL

BODY = {
    "parentId": "p1",
    "sourceUrl": SOURCE_URL,
    "fileName": "scan.ply",
    "fileSizeBytes": 2048,
}


@pytest.fixture()
def client(
    store: ArtifactStore, queue: InMemoryJobQueue, settings: Settings
) -> FlaskClient:
    app = create_gateway_app(TranscodingGateway(store, queue, settings))
    return app.test_client()


class TestTranscodeEndpoint:
    def test_returns_job_id(
        self,
        client: FlaskClient,
        store: ArtifactStore,
        seed: Callable[..., ArtifactRecord],
    ) -> None:
        seed()

        response = client.post("/artifacts/a1/transcode", json=BODY)

        assert response.status_code == 200
        assert response.get_json() == {"success": True, "jobId": "1"}
        assert store.get("a1").status is ArtifactStatus.PROCESSING

    def test_missing_fields_is_400(
        self, client: FlaskClient, seed: Callable[..., ArtifactRecord]
    ) -> None:
        seed()

        response = client.post("/artifacts/a1/transcode", json={"parentId": "p1"})

        assert response.status_code == 400
        assert response.get_json() == {"success": False, "error": "Missing required fields"}

    def test_non_integer_size_is_400(
        self, client: FlaskClient, seed: Callable[..., ArtifactRecord]
    ) -> None:
        seed()

        response = client.post(
            "/artifacts/a1/transcode", json={**BODY, "fileSizeBytes": "lots"}
        )

        assert response.status_code == 400
        assert response.get_json()["success"] is False

    @pytest.mark.parametrize("size", [1.5, True, [1024], {"bytes": 1024}])
    def test_non_integral_size_is_400(
        self,
        client: FlaskClient,
        store: ArtifactStore,
        seed: Callable[..., ArtifactRecord],
        size: object,
    ) -> None:
        seed()

        response = client.post("/artifacts/a1/transcode", json={**BODY, "fileSizeBytes": size})

        assert response.status_code == 400
        assert response.get_json()["error"] == "fileSizeBytes must be an integer"
        assert store.get("a1").status is ArtifactStatus.UPLOADING

    def test_whole_float_size_is_accepted(
        self, client: FlaskClient, seed: Callable[..., ArtifactRecord]
    ) -> None:
        seed()

        response = client.post("/artifacts/a1/transcode", json={**BODY, "fileSizeBytes": 2048.0})

        assert response.status_code == 200

    @pytest.mark.parametrize("body", [[1], "scan.ply", 42])
    def test_non_object_body_is_400(
        self, client: FlaskClient, seed: Callable[..., ArtifactRecord], body: object
    ) -> None:
        seed()

        response = client.post("/artifacts/a1/transcode", json=body)

        assert response.status_code == 400
        assert response.get_json() == {
            "success": False,
            "error": "Request body must be a JSON object",
        }

    def test_unknown_artifact_is_404(self, client: FlaskClient) -> None:
        response = client.post("/artifacts/a404/transcode", json=BODY)

        assert response.status_code == 404
        assert response.get_json()["success"] is False

    def test_double_submit_is_409(
        self, client: FlaskClient, seed: Callable[..., ArtifactRecord]
    ) -> None:
        seed()
        client.post("/artifacts/a1/transcode", json=BODY)

        response = client.post("/artifacts/a1/transcode", json=BODY)

        assert response.status_code == 409

    def test_enqueue_failure_is_503(
        self,
        store: ArtifactStore,
        settings: Settings,
        seed: Callable[..., ArtifactRecord],
    ) -> None:
        seed()
        queue = MagicMock()
        queue.push.side_effect = QueueError("broker down")
        client = create_gateway_app(TranscodingGateway(store, queue, settings)).test_client()

        response = client.post("/artifacts/a1/transcode", json=BODY)

        assert response.status_code == 503
        assert "broker down" in response.get_json()["error"]


class TestRetryEndpoint:
    def test_retry_from_error(
        self, client: FlaskClient, seed: Callable[..., ArtifactRecord]
    ) -> None:
        seed(state=Failed("Compression failed"))

        response = client.post("/artifacts/a1/retry")

        assert response.status_code == 200
        assert response.get_json() == {"success": True, "jobId": "1"}

    def test_retry_not_in_error_is_409(
        self, client: FlaskClient, seed: Callable[..., ArtifactRecord]
    ) -> None:
        seed()

        response = client.post("/artifacts/a1/retry")

        assert response.status_code == 409
        assert "not in error state" in response.get_json()["error"]


class TestWsgiEntryPoint:
    def test_builds_app_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BACKEND", "memory")
        sys.modules.pop("compression_worker.gateway.wsgi", None)

        wsgi = importlib.import_module("compression_worker.gateway.wsgi")

        rules = {rule.rule for rule in wsgi.app.url_map.iter_rules()}
        assert "/artifacts/<artifact_id>/transcode" in rules
        assert "/artifacts/<artifact_id>/retry" in rules
        sys.modules.pop("compression_worker.gateway.wsgi", None)
