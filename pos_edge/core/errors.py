from typing import Optional


class PosEdgeError(Exception):
    """Base class for errors raised by the edge data layer."""


class StorageError(PosEdgeError):
    """A local transaction could not commit within its retry budget."""


class NotFoundError(PosEdgeError):
    """The referenced document does not exist."""


class UnknownCollectionError(PosEdgeError, ValueError):
    pass


class TransportError(PosEdgeError):
    """Network or remote failure while talking to the sync service."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class JobExecutionError(PosEdgeError):
    """A job handler failed."""


class UnknownDestinationError(JobExecutionError):
    def __init__(self, destination: str):
        super().__init__(f"Unknown destination: {destination}")
        self.destination = destination
