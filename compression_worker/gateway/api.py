"""HTTP surface for the enqueue/retry gateway."""
from typing import Any

from flask import Blueprint, Flask, jsonify, request

from compression_worker.artifacts.exceptions import ArtifactNotFoundError
from compression_worker.gateway.exceptions import (
    AlreadyProcessingError,
    EnqueueFailedError,
    InvalidStateError,
    ValidationError,
)
from compression_worker.gateway.gateway import TranscodingGateway


def _failure(message: str, status: int) -> tuple[Any, int]:
    return jsonify({"success": False, "error": message}), status


def _parse_size(value: Any) -> int | None:
    """Return the size as an int, 0 when absent, or None when not a whole number."""
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def create_gateway_blueprint(gateway: TranscodingGateway) -> Blueprint:
    bp = Blueprint("gateway", __name__)

    @bp.errorhandler(ArtifactNotFoundError)
    def not_found(exc: ArtifactNotFoundError) -> tuple[Any, int]:
        return _failure(str(exc), 404)

    @bp.errorhandler(AlreadyProcessingError)
    @bp.errorhandler(InvalidStateError)
    def conflict(exc: ValidationError) -> tuple[Any, int]:
        return _failure(str(exc), 409)

    @bp.errorhandler(ValidationError)
    def invalid(exc: ValidationError) -> tuple[Any, int]:
        return _failure(str(exc), 400)

    @bp.errorhandler(EnqueueFailedError)
    def unavailable(exc: EnqueueFailedError) -> tuple[Any, int]:
        return _failure(str(exc), 503)

    @bp.route("/artifacts/<artifact_id>/transcode", methods=["POST"])
    def transcode(artifact_id: str) -> Any:
        body = request.get_json(silent=True)
        if body is None:
            body = {}
        if not isinstance(body, dict):
            return _failure("Request body must be a JSON object", 400)
        file_size = _parse_size(body.get("fileSizeBytes"))
        if file_size is None:
            return _failure("fileSizeBytes must be an integer", 400)
        job_id = gateway.submit_for_transcoding(
            artifact_id,
            str(body.get("parentId") or ""),
            str(body.get("sourceUrl") or ""),
            str(body.get("fileName") or ""),
            file_size,
        )
        return jsonify({"success": True, "jobId": job_id})

    @bp.route("/artifacts/<artifact_id>/retry", methods=["POST"])
    def retry(artifact_id: str) -> Any:
        job_id = gateway.retry(artifact_id)
        return jsonify({"success": True, "jobId": job_id})

    return bp


def create_gateway_app(gateway: TranscodingGateway) -> Flask:
    app = Flask(__name__)
    app.register_blueprint(create_gateway_blueprint(gateway))
    return app
