class GatewayError(Exception):
    """Base exception for enqueue/retry failures."""


class ValidationError(GatewayError):
    """Raised when a request is rejected before anything is enqueued."""


class AlreadyProcessingError(ValidationError):
    """Raised when the artifact is already being transcoded."""


class InvalidStateError(ValidationError):
    """Raised when the artifact's status does not allow the operation."""


class EnqueueFailedError(GatewayError):
    """Raised when the broker rejected the job after the record moved to processing.

    The record may read ``processing`` with no job behind it. Callers should
    treat this as retryable.
    """

    retryable = True
