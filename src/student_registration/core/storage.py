"""
Document Storage

S3-compatible object storage used for student documents.

Two operations back the submission workflow:
- issue_write_url: pre-signed PUT URL for one object (write only, time limited)
- exists: HEAD an object to confirm an upload landed, optionally newer than a
  given time

A missing object is reported as False. Any other client or transport failure
(including connect/read timeouts) raises StorageError so callers can surface a
retryable error instead of treating the document as missing.
"""

import asyncio
import logging
from datetime import datetime
from functools import lru_cache
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from student_registration.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class StorageError(Exception):
    """Raised when the object store cannot be reached or rejects a request."""


class DocumentStorage:
    """Service for handling document objects in an S3-compatible bucket."""

    def __init__(self, settings: Settings):
        self.bucket_name = settings.storage_bucket
        self.region = settings.storage_region
        self.endpoint_url = settings.storage_endpoint_url

        client_config = Config(
            connect_timeout=settings.storage_connect_timeout_seconds,
            read_timeout=settings.storage_read_timeout_seconds,
            retries={"max_attempts": 2, "mode": "standard"},
            signature_version="s3v4",
        )

        # Client for server-side operations
        self.s3_client = boto3.client(
            "s3",
            endpoint_url=settings.storage_endpoint_url,
            aws_access_key_id=settings.storage_access_key_id,
            aws_secret_access_key=settings.storage_secret_access_key,
            region_name=settings.storage_region,
            config=client_config,
        )

        # Client for pre-signed URLs handed to browsers
        self.public_endpoint_url = (
            settings.storage_public_endpoint_url or settings.storage_endpoint_url
        )
        self.s3_client_external = boto3.client(
            "s3",
            endpoint_url=self.public_endpoint_url,
            aws_access_key_id=settings.storage_access_key_id,
            aws_secret_access_key=settings.storage_secret_access_key,
            region_name=settings.storage_region,
            config=client_config,
        )

        logger.info(
            f"Document storage initialized - bucket: {self.bucket_name}, "
            f"endpoint: {self.endpoint_url or 'aws'}"
        )

    def issue_write_url(self, key: str, expires_in: int, container: str | None = None) -> str:
        """
        Generate a pre-signed URL that allows a single PUT of the object.

        The URL grants no read access.

        Args:
            key: Object key inside the bucket
            expires_in: URL lifetime in seconds
            container: Bucket override (defaults to the configured bucket)

        Returns:
            Pre-signed URL string

        Raises:
            StorageError: If the URL cannot be signed
        """
        bucket = container or self.bucket_name
        try:
            url = self.s3_client_external.generate_presigned_url(
                "put_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=max(1, expires_in),
                HttpMethod="PUT",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to generate upload URL for {key}: {e}")
            raise StorageError(f"Could not generate upload URL for {key}") from e

        logger.debug(f"Generated upload URL for {key} (expires in {expires_in}s)")
        return url

    async def exists(
        self,
        key: str,
        container: str | None = None,
        modified_after: datetime | None = None,
    ) -> bool:
        """
        Check whether an object exists.

        Args:
            key: Object key inside the bucket
            container: Bucket override (defaults to the configured bucket)
            modified_after: If set, an object last written at or before this
                time counts as missing

        Returns:
            True if the object exists, False if the store reports it missing

        Raises:
            StorageError: On any other client, transport or timeout failure
        """
        bucket = container or self.bucket_name
        try:
            # boto3 is synchronous; run it off the event loop
            response = await asyncio.to_thread(
                self.s3_client.head_object, Bucket=bucket, Key=key
            )
        except ClientError as e:
            error_code = str(e.response.get("Error", {}).get("Code", ""))
            if error_code in _NOT_FOUND_CODES:
                return False
            logger.error(f"Error checking object {key}: {error_code} {e}")
            raise StorageError(f"Could not check object {key}") from e
        except BotoCoreError as e:
            logger.error(f"Storage transport failure checking {key}: {e}")
            raise StorageError(f"Could not check object {key}") from e

        last_modified = response.get("LastModified")
        if modified_after is not None and last_modified is not None:
            if last_modified <= modified_after:
                logger.info(f"Object {key} predates {modified_after.isoformat()}")
                return False
        return True

    def object_url(self, key: str, container: str | None = None) -> str:
        """Return the canonical (unsigned) URL of an object."""
        bucket = container or self.bucket_name
        quoted_key = quote(key)
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{bucket}/{quoted_key}"
        return f"https://{bucket}.s3.{self.region}.amazonaws.com/{quoted_key}"


@lru_cache
def get_document_storage() -> DocumentStorage:
    """FastAPI dependency returning the shared storage client."""
    return DocumentStorage(get_settings())


__all__ = ["DocumentStorage", "StorageError", "get_document_storage"]
