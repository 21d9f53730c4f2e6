"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for collection and ingestion failures."""

    error_code = "PIPELINE_ERROR"


class ConfigurationError(PipelineError):
    """Raised for unknown facilities or missing configuration."""

    error_code = "CONFIG_ERROR"


class SessionError(PipelineError):
    """Raised when an authenticated upstream session cannot be established."""

    error_code = "SESSION_ERROR"


class TransportError(PipelineError):
    """Raised for upstream HTTP failures."""

    error_code = "TRANSPORT_ERROR"


class DispatchError(PipelineError):
    """Raised when a work unit cannot be handed to the queue."""

    error_code = "QUEUE_ERROR"


class MalformedMessage(PipelineError):
    """Raised for queued work units that can never be processed."""

    error_code = "MALFORMED_MESSAGE"


class StorageError(PipelineError):
    """Raised when the keyed store rejects a read or write."""

    error_code = "STORAGE_ERROR"
