"""Storage module with factory for different blob store backends."""
import os
from typing import Optional

from azure.core.credentials import TokenCredential

from docportal.exceptions import ConfigError
from docportal.logging import get_logger
from docportal.storage.azure_blob import AzureBlobStore
from docportal.storage.base import BlobRecord, BlobStore
from docportal.storage.s3_minio import S3MinioStore

logger = get_logger(__name__)

def get_blob_store(
    storage_type: Optional[str] = None,
    credential: Optional[TokenCredential] = None
) -> BlobStore:
    """
    Factory function to get the configured blob store.

    Args:
        storage_type: Type of storage ('azure', 'minio', 's3').
                     Defaults to env var STORAGE_TYPE or 'azure'.
        credential: Token credential used by the Azure store

    Returns:
        BlobStore instance

    Raises:
        ConfigError: If storage type is unknown
    """
    storage_type = storage_type or os.getenv("STORAGE_TYPE", "azure")
    storage_type = storage_type.lower()

    logger.info("creating_blob_store", extra={"type": storage_type})

    if storage_type == "azure":
        return AzureBlobStore(credential=credential)
    elif storage_type in ("minio", "s3"):
        return S3MinioStore()
    else:
        raise ConfigError(f"Unknown storage type: {storage_type}")

# Export commonly used items
__all__ = [
    "BlobRecord",
    "BlobStore",
    "S3MinioStore",
    "AzureBlobStore",
    "get_blob_store"
]
