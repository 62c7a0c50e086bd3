import threading

import psycopg
from psycopg import sql

from compression_worker.database.connection import Database
from compression_worker.logging.logger import Log
from compression_worker.notifications.base import (
    BaseChannel,
    BaseNotificationTransport,
    ChannelState,
    MessageHandler,
    StateHandler,
)
from compression_worker.notifications.exceptions import NotificationError


class PostgresChannel(BaseChannel):
    """LISTEN on one topic from a dedicated connection in a background thread."""

    POLL_SECONDS = 1.0

    def __init__(
        self,
        database: Database,
        topic: str,
        on_message: MessageHandler,
        on_state: StateHandler,
        subscribe_timeout_seconds: int,
    ) -> None:
        super().__init__(topic)
        self._database = database
        self._on_message = on_message
        self._on_state = on_state
        self._timeout = subscribe_timeout_seconds
        self._stop = threading.Event()
        self._settled = threading.Event()
        self._thread = threading.Thread(
            target=self._listen, name=f"listen-{topic}", daemon=True
        )

    def start(self) -> None:
        self._thread.start()
        if not self._settled.wait(self._timeout):
            self._stop.set()
            self._on_state(ChannelState.TIMED_OUT, None)

    def close(self) -> None:
        if self._stop.is_set():
            return
        self._stop.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.POLL_SECONDS * 2)
        self._on_state(ChannelState.CLOSED, None)

    def _listen(self) -> None:
        try:
            with self._database.connect_listener(self._timeout) as conn:
                conn.execute(sql.SQL("LISTEN {}").format(sql.Identifier(self.topic)))
                if self._stop.is_set():
                    return
                self._settled.set()
                self._on_state(ChannelState.SUBSCRIBED, None)
                while not self._stop.is_set():
                    for notify in conn.notifies(timeout=self.POLL_SECONDS):
                        self._dispatch(notify.payload)
        except psycopg.Error as exc:
            if not self._stop.is_set():
                Log.error(f"Listener on '{self.topic}' failed: {exc}")
                self._stop.set()
                self._settled.set()
                self._on_state(ChannelState.ERROR, exc)
        finally:
            self._settled.set()

    def _dispatch(self, payload: str) -> None:
        try:
            self._on_message(payload)
        except Exception:
            Log.exception(f"Subscriber on '{self.topic}' raised while handling a message")


class PostgresNotificationTransport(BaseNotificationTransport):
    """Pub/sub over Postgres NOTIFY/LISTEN."""

    def __init__(self, database: Database, subscribe_timeout_seconds: int) -> None:
        self._database = database
        self._subscribe_timeout = subscribe_timeout_seconds

    def publish(self, topic: str, payload: str) -> None:
        try:
            with self._database.connection() as conn:
                conn.execute("SELECT pg_notify(%s, %s)", (topic, payload))
                conn.commit()
        except psycopg.Error as exc:
            raise NotificationError(f"Failed to publish on '{topic}': {exc}") from exc

    def subscribe(
        self, topic: str, on_message: MessageHandler, on_state: StateHandler
    ) -> PostgresChannel:
        channel = PostgresChannel(
            self._database, topic, on_message, on_state, self._subscribe_timeout
        )
        channel.start()
        return channel
