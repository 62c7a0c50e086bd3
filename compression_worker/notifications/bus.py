import json
from collections.abc import Callable

from compression_worker.artifacts.models import ArtifactRecord
from compression_worker.logging.logger import Log
from compression_worker.notifications.base import (
    BaseChannel,
    BaseNotificationTransport,
    StateHandler,
)

SHARED_TOPIC = "status"

RecordHandler = Callable[[ArtifactRecord], None]


def artifact_topic(artifact_id: str) -> str:
    """Topic carrying updates for a single artifact."""
    return f"{SHARED_TOPIC}:{artifact_id}"


class NotificationBus:
    """Publishes full artifact records per artifact and on the shared topic."""

    def __init__(self, transport: BaseNotificationTransport) -> None:
        self._transport = transport

    def publish(self, record: ArtifactRecord) -> None:
        payload = json.dumps(record.to_payload())
        self._transport.publish(artifact_topic(record.id), payload)
        self._transport.publish(SHARED_TOPIC, payload)

    def subscribe_artifact(
        self, artifact_id: str, on_record: RecordHandler, on_state: StateHandler
    ) -> BaseChannel:
        return self._transport.subscribe(
            artifact_topic(artifact_id), self._decoding(on_record), on_state
        )

    def subscribe_all(self, on_record: RecordHandler, on_state: StateHandler) -> BaseChannel:
        return self._transport.subscribe(SHARED_TOPIC, self._decoding(on_record), on_state)

    @staticmethod
    def _decoding(on_record: RecordHandler) -> Callable[[str], None]:
        def handle(payload: str) -> None:
            try:
                record = ArtifactRecord.from_payload(json.loads(payload))
            except (ValueError, KeyError, TypeError) as exc:
                Log.warning(f"Dropping malformed status payload: {exc}")
                return
            on_record(record)

        return handle
