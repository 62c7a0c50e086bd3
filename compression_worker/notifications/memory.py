import threading

from compression_worker.logging.logger import Log
from compression_worker.notifications.base import (
    BaseChannel,
    BaseNotificationTransport,
    ChannelState,
    MessageHandler,
    StateHandler,
)


class InMemoryChannel(BaseChannel):
    def __init__(
        self,
        transport: "InMemoryNotificationTransport",
        topic: str,
        on_message: MessageHandler,
        on_state: StateHandler,
    ) -> None:
        super().__init__(topic)
        self._transport = transport
        self._on_message = on_message
        self._on_state = on_state
        self.closed = False

    def deliver(self, payload: str) -> None:
        if self.closed:
            return
        try:
            self._on_message(payload)
        except Exception:
            Log.exception(f"Subscriber on '{self.topic}' raised while handling a message")

    def signal(self, state: ChannelState, error: Exception | None = None) -> None:
        """Report a lifecycle change, as a network transport would."""
        self._on_state(state, error)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._transport.remove(self)
        self._on_state(ChannelState.CLOSED, None)


class InMemoryNotificationTransport(BaseNotificationTransport):
    """Synchronous in-process pub/sub. Delivery happens on the publisher's thread."""

    def __init__(self) -> None:
        self._channels: dict[str, list[InMemoryChannel]] = {}
        self._lock = threading.Lock()

    def publish(self, topic: str, payload: str) -> None:
        with self._lock:
            channels = list(self._channels.get(topic, []))
        for channel in channels:
            channel.deliver(payload)

    def subscribe(
        self, topic: str, on_message: MessageHandler, on_state: StateHandler
    ) -> InMemoryChannel:
        channel = InMemoryChannel(self, topic, on_message, on_state)
        with self._lock:
            self._channels.setdefault(topic, []).append(channel)
        channel.signal(ChannelState.SUBSCRIBED)
        return channel

    def remove(self, channel: InMemoryChannel) -> None:
        with self._lock:
            channels = self._channels.get(channel.topic, [])
            if channel in channels:
                channels.remove(channel)

    def channels(self, topic: str) -> list[InMemoryChannel]:
        with self._lock:
            return list(self._channels.get(topic, []))
