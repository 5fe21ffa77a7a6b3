"""S3/MinIO blob store implementation (buckets play the role of containers)."""
import os
from typing import BinaryIO, Iterator, List, Optional

import boto3
from botocore.exceptions import ClientError

from docportal.exceptions import BlobNotFoundError, ContainerNotFoundError, StorageError
from docportal.logging import get_logger
from docportal.storage.base import DEFAULT_CONTENT_TYPE, EPOCH, BlobRecord, BlobStore
from docportal.storage.reader import ChunkReader

logger = get_logger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3MinioStore(BlobStore):
    """Blob store for S3-compatible storage (MinIO, AWS S3)."""

    def __init__(
        self,
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        use_ssl: bool = False,
        client=None
    ):
        """
        Initialize S3/MinIO client.

        Args:
            endpoint_url: S3 endpoint URL (for MinIO)
            access_key: Access key ID
            secret_key: Secret access key
            use_ssl: Whether to use SSL
            client: Pre-built boto3 S3 client (tests)
        """
        # Get from env if not provided
        self.endpoint_url = endpoint_url or os.getenv("MINIO_ENDPOINT", "http://minio:9000")
        self.access_key = access_key or os.getenv("MINIO_ACCESS_KEY", "minioadmin")
        self.secret_key = secret_key or os.getenv("MINIO_SECRET_KEY", "minioadmin")

        self.client = client or boto3.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
            use_ssl=use_ssl,
            verify=False  # For MinIO with self-signed certs
        )

        logger.info("s3_store_initialized", extra={"endpoint": self.endpoint_url})

    def list_containers(self) -> List[str]:
        """List bucket names."""
        response = self.client.list_buckets()
        buckets = [b["Name"] for b in response.get("Buckets", [])]
        logger.info("containers_listed", extra={"count": len(buckets)})
        return buckets

    def list_blobs(self, container: str) -> Iterator[BlobRecord]:
        """Lazily enumerate objects, one list_objects_v2 page at a time."""
        paginator = self.client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=container):
                for obj in page.get("Contents", []):
                    yield BlobRecord(
                        name=obj["Key"],
                        uri=self.blob_uri(container, obj["Key"]),
                        size_bytes=obj.get("Size", 0),
                        # ListObjectsV2 does not report content types
                        content_type=DEFAULT_CONTENT_TYPE,
                        last_modified=obj.get("LastModified", EPOCH),
                        container_name=container,
                    )
        except ClientError as e:
            if _error_code(e) in {"NoSuchBucket", "404"}:
                raise ContainerNotFoundError(f"Container not found: {container}")
            raise

    def open_blob(self, container: str, name: str) -> BinaryIO:
        """Open the object body as a forward-only stream."""
        try:
            response = self.client.get_object(Bucket=container, Key=name)
        except ClientError as e:
            code = _error_code(e)
            if code in _NOT_FOUND_CODES:
                raise BlobNotFoundError(f"Blob not found: {container}/{name}")
            if code in {"403", "AccessDenied"}:
                raise StorageError(f"Access denied: {container}/{name}")
            logger.error("open_failed", extra={
                "container": container,
                "blob": name,
                "error": str(e)
            })
            raise

        body = response["Body"]
        logger.info("blob_opened", extra={
            "container": container,
            "blob": name,
            "size": response.get("ContentLength", 0)
        })
        return ChunkReader(body.iter_chunks(), on_close=body.close)

    def blob_exists(self, container: str, name: str) -> bool:
        """Check if object exists in S3/MinIO."""
        try:
            self.client.head_object(Bucket=container, Key=name)
            return True
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            logger.error("exists_check_failed", extra={
                "container": container,
                "blob": name,
                "error": str(e)
            })
            raise

    def blob_uri(self, container: str, name: str) -> str:
        return f"{self.endpoint_url.rstrip('/')}/{container}/{name}"

    def upload(self, container: str, name: str, content: bytes,
               content_type: str = DEFAULT_CONTENT_TYPE) -> BlobRecord:
        """Upload content, creating the bucket on first use."""
        try:
            self.client.head_bucket(Bucket=container)
        except ClientError as e:
            if _error_code(e) not in _NOT_FOUND_CODES:
                raise
            self.client.create_bucket(Bucket=container)
            logger.info("container_created", extra={"container": container})

        self.client.put_object(
            Bucket=container,
            Key=name,
            Body=content,
            ContentType=content_type
        )
        logger.info("blob_uploaded", extra={
            "container": container,
            "blob": name,
            "size": len(content)
        })

        head = self.client.head_object(Bucket=container, Key=name)
        return BlobRecord(
            name=name,
            uri=self.blob_uri(container, name),
            size_bytes=head.get("ContentLength", len(content)),
            content_type=head.get("ContentType", content_type),
            last_modified=head.get("LastModified", EPOCH),
            container_name=container,
        )
