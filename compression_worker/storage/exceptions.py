class StorageError(Exception):
    """Raised when an object storage operation fails."""


class InvalidObjectUrlError(StorageError):
    """Raised when a URL does not point inside the managed storage namespace."""
