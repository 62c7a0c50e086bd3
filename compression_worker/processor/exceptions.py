class ProcessorError(Exception):
    """Base exception for all pipeline errors."""


class MissingStageOutputError(ProcessorError):
    """Raised when a step runs before the step that produces its input."""


class JobAbandonedError(ProcessorError):
    """Raised when this worker must stop writing for a job. Not a job failure."""


class LeaseLostError(JobAbandonedError):
    """Raised when the job lease was lost and another worker may own the job."""


class ArtifactNoLongerProcessingError(JobAbandonedError):
    """Raised when the artifact left ``processing`` while the job was running."""
