"""Exception hierarchy shared by the storage, search and analysis layers."""


class PortalError(Exception):
    """Base class for every error raised by docportal."""


class ConfigError(PortalError):
    """Raised at startup when required configuration is missing or invalid."""


class InvalidQueryError(PortalError):
    """Raised when search parameters are rejected before any I/O happens."""


class SearchUnavailableError(PortalError):
    """Raised when the blob store fails while a search is enumerating it."""


class OperationCancelledError(PortalError):
    """Raised when the caller's cancel signal is observed mid-operation."""


class StreamTooLargeError(PortalError):
    """Raised when buffering a document would exceed the memory ceiling."""

    def __init__(self, limit_bytes: int) -> None:
        super().__init__(f"Document exceeds the {limit_bytes} byte limit")
        self.limit_bytes = limit_bytes


class EmptyDocumentError(PortalError):
    """Raised when a document stream has no content."""


class StorageError(PortalError):
    """Base class for blob store failures."""


class ContainerNotFoundError(StorageError):
    """Raised when the requested container does not exist."""


class BlobNotFoundError(StorageError):
    """Raised when the requested blob does not exist."""


class AnalysisError(PortalError):
    """Base class for failures reported by the document analysis service."""


class RateLimitedError(AnalysisError):
    """The analysis service throttled the request (HTTP 429)."""


class BadRequestError(AnalysisError):
    """The service rejected the document or model (malformed input, incompatible model)."""


class DocumentTooLargeError(AnalysisError):
    """The service refused the document because of its size."""


class TransientAnalysisError(AnalysisError):
    """A recoverable service or network fault; the same request may succeed later."""
