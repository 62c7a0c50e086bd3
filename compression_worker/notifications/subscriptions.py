import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from compression_worker.artifacts.exceptions import ArtifactNotFoundError
from compression_worker.artifacts.models import ArtifactRecord, ArtifactStatus
from compression_worker.artifacts.store import ArtifactStore
from compression_worker.logging.logger import Log
from compression_worker.notifications.base import BaseChannel, ChannelState
from compression_worker.notifications.bus import NotificationBus
from compression_worker.notifications.exceptions import NotificationError


class StatusEventKind(str, Enum):
    SNAPSHOT = "SNAPSHOT"
    UPDATE = "UPDATE"


@dataclass(frozen=True, slots=True)
class StatusEvent:
    kind: StatusEventKind
    record: ArtifactRecord


def _is_stale(record: ArtifactRecord, latest: ArtifactRecord | None) -> bool:
    """True when ``record`` is not newer than what the subscriber already has."""
    if latest is None:
        return False
    if record == latest:
        return True
    if record.updated_at is not None and latest.updated_at is not None:
        return record.updated_at < latest.updated_at
    return False


def _channel_error(state: ChannelState, error: Exception | None) -> Exception:
    if error is not None:
        return error
    if state is ChannelState.TIMED_OUT:
        return NotificationError("Subscription timed out")
    return NotificationError("Failed to subscribe to status changes")


class ArtifactSubscription:
    """Follows one artifact: a snapshot on connect, then pushed updates.

    Reconnection is the caller's decision: watch ``error`` / ``on_state``
    for ``error`` and ``timed_out`` and call ``reconnect()``.
    """

    def __init__(
        self,
        bus: NotificationBus,
        store: ArtifactStore,
        artifact_id: str,
        *,
        on_event: Callable[[StatusEvent], None] | None = None,
        on_ready: Callable[[ArtifactRecord], None] | None = None,
        on_error: Callable[[str], None] | None = None,
        on_state: Callable[[ChannelState], None] | None = None,
    ) -> None:
        self.artifact_id = artifact_id
        self._bus = bus
        self._store = store
        self._on_event = on_event
        self._on_ready = on_ready
        self._on_error = on_error
        self._on_state = on_state
        self._lock = threading.RLock()
        self._channel: BaseChannel | None = None
        self.latest: ArtifactRecord | None = None
        self.is_connected = False
        self.error: Exception | None = None

    def connect(self) -> None:
        with self._lock:
            if self._channel is not None:
                return
            self._channel = self._bus.subscribe_artifact(
                self.artifact_id, self._handle_update, self._handle_state
            )
            record = self._store.find(self.artifact_id)
            if record is None:
                self.error = ArtifactNotFoundError(f"Artifact {self.artifact_id} not found")
                return
            self._deliver(StatusEventKind.SNAPSHOT, record)

    def reconnect(self) -> None:
        """Tear down the channel and establish a new one, re-fetching the snapshot."""
        Log.info(f"Reconnecting status subscription for artifact {self.artifact_id}")
        with self._lock:
            self._teardown()
            self.error = None
            self.connect()

    def close(self) -> None:
        with self._lock:
            self._teardown()

    def _teardown(self) -> None:
        channel, self._channel = self._channel, None
        self.is_connected = False
        if channel is not None:
            channel.close()

    def _handle_update(self, record: ArtifactRecord) -> None:
        with self._lock:
            if record.id != self.artifact_id or _is_stale(record, self.latest):
                return
            self._deliver(StatusEventKind.UPDATE, record)

    def _handle_state(self, state: ChannelState, error: Exception | None) -> None:
        with self._lock:
            if state is ChannelState.SUBSCRIBED:
                self.is_connected = True
                self.error = None
            elif state in (ChannelState.ERROR, ChannelState.TIMED_OUT):
                self.is_connected = False
                self.error = _channel_error(state, error)
                Log.warning(f"Status subscription for {self.artifact_id}: {state.value}")
        if self._on_state is not None:
            self._on_state(state)

    def _deliver(self, kind: StatusEventKind, record: ArtifactRecord) -> None:
        self.latest = record
        if self._on_event is not None:
            self._on_event(StatusEvent(kind, record))
        if record.status is ArtifactStatus.READY and self._on_ready is not None:
            self._on_ready(record)
        elif record.status is ArtifactStatus.ERROR and self._on_error is not None:
            self._on_error(record.error_message or "")


class MultiArtifactSubscription:
    """Follows a set of artifacts over the shared status topic."""

    def __init__(
        self,
        bus: NotificationBus,
        store: ArtifactStore,
        artifact_ids: Iterable[str],
        *,
        on_status_change: Callable[[str, ArtifactRecord], None] | None = None,
        on_state: Callable[[ChannelState], None] | None = None,
    ) -> None:
        self.artifact_ids = frozenset(artifact_ids)
        self._bus = bus
        self._store = store
        self._on_status_change = on_status_change
        self._on_state = on_state
        self._lock = threading.RLock()
        self._channel: BaseChannel | None = None
        self.statuses: dict[str, ArtifactRecord] = {}
        self.is_connected = False
        self.error: Exception | None = None

    def connect(self) -> None:
        with self._lock:
            if self._channel is not None or not self.artifact_ids:
                return
            self._channel = self._bus.subscribe_all(self._handle_update, self._handle_state)
            for record in self._store.get_many(sorted(self.artifact_ids)):
                if not _is_stale(record, self.statuses.get(record.id)):
                    self.statuses[record.id] = record

    def reconnect(self) -> None:
        with self._lock:
            self._teardown()
            self.error = None
            self.connect()

    def close(self) -> None:
        with self._lock:
            self._teardown()

    def _teardown(self) -> None:
        channel, self._channel = self._channel, None
        self.is_connected = False
        if channel is not None:
            channel.close()

    def _handle_update(self, record: ArtifactRecord) -> None:
        with self._lock:
            if record.id not in self.artifact_ids:
                return
            if _is_stale(record, self.statuses.get(record.id)):
                return
            self.statuses[record.id] = record
        if self._on_status_change is not None:
            self._on_status_change(record.id, record)

    def _handle_state(self, state: ChannelState, error: Exception | None) -> None:
        with self._lock:
            self.is_connected = state is ChannelState.SUBSCRIBED
            if state in (ChannelState.ERROR, ChannelState.TIMED_OUT):
                self.error = _channel_error(state, error)
        if self._on_state is not None:
            self._on_state(state)
