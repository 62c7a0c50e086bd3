import json
from unittest.mock import MagicMock

from compression_worker.artifacts.models import ArtifactRecord, Processing
from compression_worker.notifications.base import ChannelState
from compression_worker.notifications.bus import (
    SHARED_TOPIC,
    NotificationBus,
    artifact_topic,
)
from compression_worker.notifications.memory import InMemoryNotificationTransport
from tests.factories import make_record


def _noop_state(_state: ChannelState, _error: Exception | None) -> None:
    pass


class TestTopics:
    def test_artifact_topic(self) -> None:
        assert artifact_topic("a1") == "status:a1"

    def test_shared_topic(self) -> None:
        assert SHARED_TOPIC == "status"


class TestPublish:
    def test_publishes_same_payload_on_both_topics(self) -> None:
        transport = MagicMock()
        record = make_record(state=Processing(36))

        NotificationBus(transport).publish(record)

        calls = transport.publish.call_args_list
        assert [c.args[0] for c in calls] == ["status:a1", "status"]
        assert calls[0].args[1] == calls[1].args[1]
        assert json.loads(calls[0].args[1])["progress_percent"] == 36


class TestSubscribe:
    def test_artifact_subscriber_gets_decoded_records(
        self, bus: NotificationBus
    ) -> None:
        received: list[ArtifactRecord] = []
        bus.subscribe_artifact("a1", received.append, _noop_state)

        record = make_record(state=Processing(52))
        bus.publish(record)
        bus.publish(make_record(artifact_id="a2"))

        assert received == [record]

    def test_shared_subscriber_sees_every_artifact(self, bus: NotificationBus) -> None:
        received: list[str] = []
        bus.subscribe_all(lambda r: received.append(r.id), _noop_state)

        bus.publish(make_record(artifact_id="a1"))
        bus.publish(make_record(artifact_id="a2"))

        assert received == ["a1", "a2"]

    def test_malformed_payload_is_dropped(
        self, bus: NotificationBus, transport: InMemoryNotificationTransport
    ) -> None:
        received: list[ArtifactRecord] = []
        bus.subscribe_artifact("a1", received.append, _noop_state)

        transport.publish("status:a1", "not json")
        transport.publish("status:a1", json.dumps({"id": "a1"}))

        assert received == []

    def test_subscriber_error_does_not_reach_publisher(
        self, bus: NotificationBus
    ) -> None:
        def explode(_record: ArtifactRecord) -> None:
            raise RuntimeError("subscriber bug")

        bus.subscribe_artifact("a1", explode, _noop_state)

        bus.publish(make_record())  # Should not raise

    def test_close_stops_delivery(
        self, bus: NotificationBus, transport: InMemoryNotificationTransport
    ) -> None:
        received: list[ArtifactRecord] = []
        states: list[ChannelState] = []
        channel = bus.subscribe_artifact(
            "a1", received.append, lambda s, _e: states.append(s)
        )

        channel.close()
        bus.publish(make_record())

        assert received == []
        assert states == [ChannelState.SUBSCRIBED, ChannelState.CLOSED]
        assert transport.channels("status:a1") == []
