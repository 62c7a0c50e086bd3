from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum


class ChannelState(str, Enum):
    SUBSCRIBED = "subscribed"
    ERROR = "error"
    TIMED_OUT = "timed_out"
    CLOSED = "closed"


MessageHandler = Callable[[str], None]
StateHandler = Callable[[ChannelState, Exception | None], None]


class BaseChannel(ABC):
    """One live subscription to a topic."""

    def __init__(self, topic: str) -> None:
        self.topic = topic

    @abstractmethod
    def close(self) -> None:
        """Stop delivery and release the underlying connection. Idempotent."""


class BaseNotificationTransport(ABC):
    """Contract for topic-based publish/subscribe transports."""

    @abstractmethod
    def publish(self, topic: str, payload: str) -> None:
        """Deliver ``payload`` to every open channel on ``topic``.

        Raises:
            NotificationError: if the transport cannot accept the message.
        """

    @abstractmethod
    def subscribe(
        self, topic: str, on_message: MessageHandler, on_state: StateHandler
    ) -> BaseChannel:
        """Open a channel on ``topic``.

        Lifecycle signals (subscribed, error, timed_out, closed) are reported
        through ``on_state``. The caller decides whether to reconnect.
        """
