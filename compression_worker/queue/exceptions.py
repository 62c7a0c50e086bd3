class QueueError(Exception):
    """Base exception for broker errors (unreachable, rejected writes)."""


class DuplicateJobError(QueueError):
    """Raised when an artifact already has a waiting or active job."""
