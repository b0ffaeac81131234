class TrackerError(Exception):
    """Base class for errors raised by the tracker apps."""


class CollaboratorUnavailableError(TrackerError):
    """The data store or the metadata service failed or timed out.

    Callers may retry; nothing here retries on its own.
    """
    retryable = True

    def __init__(self, collaborator: str, message: str = ""):
        self.collaborator = collaborator
        super().__init__(message or f"{collaborator} is unavailable")


class MetadataUnavailableError(CollaboratorUnavailableError):
    def __init__(self, show_id: int, message: str = ""):
        self.show_id = show_id
        super().__init__("metadata", message or f"Metadata for show {show_id} is unavailable")


class InvalidOverrideError(TrackerError, ValueError):
    """Override input rejected before it reaches the store."""
