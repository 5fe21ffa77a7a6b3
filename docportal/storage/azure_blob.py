"""Azure Blob Storage implementation."""
import os
from typing import BinaryIO, Iterator, List, Optional

from azure.core.credentials import TokenCredential
from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContainerClient, ContentSettings

from docportal.exceptions import BlobNotFoundError, ConfigError, ContainerNotFoundError
from docportal.logging import get_logger
from docportal.storage.base import DEFAULT_CONTENT_TYPE, EPOCH, BlobRecord, BlobStore
from docportal.storage.reader import ChunkReader

logger = get_logger(__name__)


def is_development_connection_string(connection_string: Optional[str]) -> bool:
    """True for Azurite-style connection strings that should bypass the credential."""
    if not connection_string:
        return False
    return "UseDevelopmentStorage=true" in connection_string or "127.0.0.1" in connection_string


class AzureBlobStore(BlobStore):
    """Blob store backed by an Azure Storage account."""

    def __init__(
        self,
        connection_string: Optional[str] = None,
        account_name: Optional[str] = None,
        credential: Optional[TokenCredential] = None,
        account_url: Optional[str] = None,
    ):
        """
        Initialize the Azure Blob Storage client.

        Args:
            connection_string: Azure Storage connection string (Azurite / local dev)
            account_name: Storage account name, used to build the account URL
            credential: Token credential from docportal.identity
            account_url: Explicit account URL, overrides account_name
        """
        # Get from env if not provided
        self.connection_string = connection_string or os.getenv("AZURE_STORAGE_CONNECTION_STRING")
        self.account_name = account_name or os.getenv("AZURE_STORAGE_ACCOUNT_NAME")

        if is_development_connection_string(self.connection_string):
            self.blob_service_client = BlobServiceClient.from_connection_string(
                self.connection_string
            )
            logger.info("azure_store_initialized", extra={"auth": "connection_string"})
            return

        if not account_url and self.account_name:
            account_url = f"https://{self.account_name}.blob.core.windows.net"

        if account_url and credential is not None:
            self.blob_service_client = BlobServiceClient(
                account_url=account_url,
                credential=credential
            )
        elif self.connection_string:
            self.blob_service_client = BlobServiceClient.from_connection_string(
                self.connection_string
            )
        else:
            raise ConfigError(
                "AZURE_STORAGE_ACCOUNT_NAME (with a credential) or "
                "AZURE_STORAGE_CONNECTION_STRING is required"
            )

        logger.info("azure_store_initialized", extra={
            "account_url": self.blob_service_client.url
        })

    def list_containers(self) -> List[str]:
        """List container names in the storage account."""
        containers = [c.name for c in self.blob_service_client.list_containers()]
        logger.info("containers_listed", extra={"count": len(containers)})
        return containers

    def list_blobs(self, container: str) -> Iterator[BlobRecord]:
        """Lazily enumerate blobs; pages are requested as iteration advances."""
        container_client = self.blob_service_client.get_container_client(container)
        try:
            for blob in container_client.list_blobs():
                yield self._to_record(container_client, blob)
        except ResourceNotFoundError:
            raise ContainerNotFoundError(f"Container not found: {container}")

    def open_blob(self, container: str, name: str) -> BinaryIO:
        """Start a download and return it as a forward-only stream."""
        blob_client = self.blob_service_client.get_blob_client(container, name)
        try:
            downloader = blob_client.download_blob()
        except ResourceNotFoundError:
            raise BlobNotFoundError(f"Blob not found: {container}/{name}")

        logger.info("blob_opened", extra={
            "container": container,
            "blob": name,
            "size": downloader.size
        })
        return ChunkReader(downloader.chunks())

    def blob_exists(self, container: str, name: str) -> bool:
        """Check if blob exists in Azure."""
        return self.blob_service_client.get_blob_client(container, name).exists()

    def blob_uri(self, container: str, name: str) -> str:
        return self.blob_service_client.get_blob_client(container, name).url

    def upload(self, container: str, name: str, content: bytes,
               content_type: str = DEFAULT_CONTENT_TYPE) -> BlobRecord:
        """Upload content, creating the container on first use."""
        container_client = self.blob_service_client.get_container_client(container)
        try:
            container_client.create_container()
            logger.info("container_created", extra={"container": container})
        except ResourceExistsError:
            pass

        blob_client = container_client.get_blob_client(name)
        blob_client.upload_blob(
            content,
            overwrite=True,
            content_settings=ContentSettings(content_type=content_type)
        )
        logger.info("blob_uploaded", extra={
            "container": container,
            "blob": name,
            "size": len(content)
        })
        return self._to_record(container_client, blob_client.get_blob_properties())

    @staticmethod
    def _to_record(container_client: ContainerClient, blob) -> BlobRecord:
        settings = blob.content_settings
        return BlobRecord(
            name=blob.name,
            uri=container_client.get_blob_client(blob.name).url,
            size_bytes=blob.size or 0,
            content_type=(settings.content_type if settings else None) or DEFAULT_CONTENT_TYPE,
            last_modified=blob.last_modified or EPOCH,
            container_name=container_client.container_name,
        )
