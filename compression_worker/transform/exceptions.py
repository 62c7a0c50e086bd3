class TransformError(Exception):
    """Raised when the codec fails to convert an input."""


class TransformUnavailableError(TransformError):
    """Raised when the codec binary cannot be started."""
