class ArtifactError(Exception):
    """Base exception for all artifact-store errors."""


class ArtifactNotFoundError(ArtifactError):
    """Raised when an artifact record does not exist."""
