"""Base blob store abstract class.

Blob stores are read-mostly views over an external object store
=================================================================

1. Containers
   - Azure Blob containers, or S3/MinIO buckets
   - Listed by name only; the API never creates or deletes them (only
     the seeding upload creates a missing container)

2. Blobs
   - Enumerated lazily as BlobRecord values in the store's native order
   - Opened as plain readable byte streams; callers must not assume the
     stream can seek (see docportal.analysis.stream)

The store layer knows nothing about searching or analysis.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO, Iterator, List

DEFAULT_CONTENT_TYPE = "application/octet-stream"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class BlobRecord:
    """Metadata for one blob, as reported by the store."""

    name: str
    uri: str
    size_bytes: int
    content_type: str
    last_modified: datetime
    container_name: str


class BlobStore(ABC):
    """Abstract base class for blob stores - pure storage operations only."""

    @abstractmethod
    def list_containers(self) -> List[str]:
        """
        List container names in the account.

        Returns:
            Container names in the order the store reports them
        """
        pass

    @abstractmethod
    def list_blobs(self, container: str) -> Iterator[BlobRecord]:
        """
        Lazily enumerate blobs in a container.

        Pages are fetched from the store as the iterator advances, so a
        caller that stops early never pays for the rest of the listing.

        Args:
            container: Container name

        Yields:
            BlobRecord for each blob, in the store's enumeration order

        Raises:
            ContainerNotFoundError: If the container doesn't exist
        """
        pass

    @abstractmethod
    def open_blob(self, container: str, name: str) -> BinaryIO:
        """
        Open a blob for reading.

        Args:
            container: Container name
            name: Blob name (e.g., "invoices/2024/inv-001.pdf")

        Returns:
            Readable byte stream; the caller must close it

        Raises:
            BlobNotFoundError: If blob doesn't exist
        """
        pass

    @abstractmethod
    def blob_exists(self, container: str, name: str) -> bool:
        """
        Check if a blob exists.

        Returns:
            True if blob exists, False otherwise
        """
        pass

    @abstractmethod
    def blob_uri(self, container: str, name: str) -> str:
        """Return the absolute URI of a blob (the blob need not exist)."""
        pass

    @abstractmethod
    def upload(self, container: str, name: str, content: bytes,
               content_type: str = DEFAULT_CONTENT_TYPE) -> BlobRecord:
        """
        Upload content, overwriting any existing blob.

        Used by the seeding scripts against Azurite/MinIO.

        Returns:
            BlobRecord describing the stored blob
        """
        pass
