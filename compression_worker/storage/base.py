from abc import ABC, abstractmethod


class BaseObjectStorage(ABC):
    """Contract for whole-object storage adapters."""

    @abstractmethod
    def download(self, url: str) -> bytes:
        """Fetch the whole object behind ``url``.

        Raises:
            InvalidObjectUrlError: if ``url`` is outside the managed namespace.
            StorageError: if the object cannot be fetched.
        """

    @abstractmethod
    def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store ``data`` at ``path`` and return its public URL.

        Raises:
            StorageError: if the object cannot be stored.
        """

    @abstractmethod
    def delete(self, url: str) -> bool:
        """Delete the object behind ``url``. Returns False if it was not deleted."""

    @abstractmethod
    def url_to_path(self, url: str) -> str:
        """Map a public URL back to its object path.

        Raises:
            InvalidObjectUrlError: if ``url`` is outside the managed namespace.
        """

    def close(self) -> None:
        """Release network clients. No-op for adapters without one."""
