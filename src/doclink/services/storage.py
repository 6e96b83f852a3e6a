"""Object store integration for uploaded customer documents.

Files uploaded through a document request are forwarded to an
S3-compatible bucket. The returned ``file_id`` is the object key and is what
gets linked to the CRM and recorded in the request's submission.

Example:
    store = ObjectStoreClient.from_settings(settings.s3)
    stored = await store.store(
        file_name="C-42_passport_1.pdf",
        folder_ref="customers/C-42",
        mime_type="application/pdf",
        content=data,
        metadata={"token": token[:8], "doc-key": "passport"},
    )
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

    from doclink.core.config import S3Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StoredFile:
    """Result of storing one file.

    Attributes:
        file_id: Provider identifier of the stored file (the object key).
        bucket: Bucket the file was written to.
        sha256_digest: SHA-256 hex digest of the content.
        size_bytes: Content size in bytes.
    """

    file_id: str
    bucket: str
    sha256_digest: str
    size_bytes: int


class StorageError(Exception):
    """Raised when a storage operation fails.

    Attributes:
        message: Human-readable error description.
        bucket: The bucket involved in the operation.
        key: The object key involved (if applicable).
        operation: The operation that failed.
    """

    def __init__(
        self,
        message: str,
        *,
        bucket: str | None = None,
        key: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.message = message
        self.bucket = bucket
        self.key = key
        self.operation = operation
        super().__init__(message)


class FileStore(Protocol):
    """Where uploaded files are forwarded."""

    async def store(
        self,
        file_name: str,
        folder_ref: str | None,
        mime_type: str,
        content: bytes,
        metadata: dict[str, str] | None = None,
    ) -> StoredFile: ...


def _ascii_metadata(metadata: dict[str, str]) -> dict[str, str]:
    # S3 user metadata must be ASCII
    return {
        key: value.encode("ascii", "replace").decode("ascii")
        for key, value in metadata.items()
    }


class ObjectStoreClient:
    """S3-compatible file store.

    Wraps synchronous boto3; blocking calls run in a worker thread.
    """

    def __init__(
        self,
        endpoint_url: str | None,
        access_key: str,
        secret_key: str,
        bucket: str,
        region: str = "us-east-1",
        *,
        default_folder: str = "inbox",
        connect_timeout: float = 5.0,
        read_timeout: float = 30.0,
        max_retries: int = 3,
    ) -> None:
        self._bucket = bucket
        self._region = region
        self._default_folder = default_folder.strip("/")

        config = Config(
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            retries={"max_attempts": max_retries, "mode": "standard"},
            signature_version="s3v4",
        )

        self._client: S3Client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=config,
        )

        logger.debug(
            "Initialized ObjectStoreClient for endpoint=%s bucket=%s",
            endpoint_url,
            bucket,
        )

    @classmethod
    def from_settings(cls, settings: S3Settings) -> ObjectStoreClient:
        """Create client from S3Settings configuration."""
        return cls(
            endpoint_url=settings.endpoint,
            access_key=settings.access_key.get_secret_value(),
            secret_key=settings.secret_key.get_secret_value(),
            bucket=settings.bucket,
            region=settings.region,
            default_folder=settings.default_folder,
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    def ensure_bucket(self) -> bool:
        """Ensure the bucket exists, creating it if necessary.

        Returns:
            True if the bucket was created, False if it already existed.

        Raises:
            StorageError: If the bucket cannot be checked or created.
        """
        try:
            self._client.head_bucket(Bucket=self._bucket)
            return False
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code != "404":
                raise StorageError(
                    f"Failed to check bucket existence: {e}",
                    bucket=self._bucket,
                    operation="head_bucket",
                ) from e

        try:
            # us-east-1 must not be given as a LocationConstraint
            if self._region == "us-east-1":
                self._client.create_bucket(Bucket=self._bucket)
            else:
                self._client.create_bucket(
                    Bucket=self._bucket,
                    CreateBucketConfiguration={"LocationConstraint": self._region},
                )
        except ClientError as e:
            raise StorageError(
                f"Failed to create bucket: {e}",
                bucket=self._bucket,
                operation="create_bucket",
            ) from e
        logger.info("Created bucket: %s", self._bucket)
        return True

    def build_key(self, file_name: str, folder_ref: str | None) -> str:
        """Build a collision-free object key under the folder."""
        folder = (folder_ref or self._default_folder).strip("/")
        safe_name = file_name.replace("/", "_")
        return f"{folder}/{uuid.uuid4().hex[:12]}-{safe_name}"

    async def store(
        self,
        file_name: str,
        folder_ref: str | None,
        mime_type: str,
        content: bytes,
        metadata: dict[str, str] | None = None,
    ) -> StoredFile:
        """Upload one file.

        Raises:
            StorageError: If the upload fails.
        """
        return await asyncio.to_thread(
            self._put, file_name, folder_ref, mime_type, content, metadata or {}
        )

    def _put(
        self,
        file_name: str,
        folder_ref: str | None,
        mime_type: str,
        content: bytes,
        metadata: dict[str, str],
    ) -> StoredFile:
        key = self.build_key(file_name, folder_ref)
        sha256_digest = hashlib.sha256(content).hexdigest()
        upload_metadata = _ascii_metadata(
            {"sha256-digest": sha256_digest, "original-name": file_name, **metadata}
        )

        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=content,
                ContentType=mime_type,
                Metadata=upload_metadata,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                f"Failed to upload object: {e}",
                bucket=self._bucket,
                key=key,
                operation="upload",
            ) from e

        logger.info(
            "Stored file %s (%d bytes)",
            key,
            len(content),
            extra={"bucket": self._bucket, "sha256": sha256_digest[:16]},
        )
        return StoredFile(
            file_id=key,
            bucket=self._bucket,
            sha256_digest=sha256_digest,
            size_bytes=len(content),
        )
