"""Blob storage abstraction layer for S3 and compatible services."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from mediahub.config import Settings
from mediahub.services.exceptions import CapabilityIssuerError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedUpload:
    """A time-limited write capability for exactly one object."""

    url: str
    expires_in: int


class BlobStorage(ABC):
    """
    Abstract interface for blob storage.

    Allows swapping R2 for other S3-compatible providers (AWS S3, MinIO)
    by implementing this interface.
    """

    @abstractmethod
    def sign_upload(self, key: str, content_type: str, content_length: int) -> SignedUpload:
        """
        Generate a pre-signed URL for a single PUT.

        The URL only accepts an upload of exactly ``content_length`` bytes
        with exactly ``content_type``, to exactly ``key``.

        Args:
            key: Storage key/path
            content_type: MIME type the client will send
            content_length: Number of bytes the client will send

        Returns:
            SignedUpload with the URL and its lifetime in seconds

        Raises:
            CapabilityIssuerError: If the URL could not be issued
        """
        pass

    @abstractmethod
    def list_keys(self, prefix: str) -> list[str]:
        """
        List every object key under a prefix.

        Args:
            prefix: Key prefix

        Returns:
            Matching keys

        Raises:
            CapabilityIssuerError: If the listing failed
        """
        pass


class S3Storage(BlobStorage):
    """Amazon S3 (and compatible, e.g. Cloudflare R2) storage implementation."""

    def __init__(
        self,
        settings: Settings,
        bucket_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ):
        """
        Initialize S3 storage client.

        Args:
            settings: Application settings
            bucket_name: S3 bucket name (defaults to settings)
            endpoint_url: Custom endpoint for S3-compatible services (defaults to settings)
        """
        self.bucket_name = bucket_name or settings.S3_BUCKET_NAME
        self.upload_expiry = settings.PRESIGNED_UPLOAD_EXPIRY

        client_kwargs = {
            "region_name": settings.S3_REGION,
            # Issuance sits on the request path; keep it bounded.
            "config": BotoConfig(
                signature_version="s3v4",
                connect_timeout=settings.S3_CONNECT_TIMEOUT,
                read_timeout=settings.S3_READ_TIMEOUT,
                retries={"max_attempts": 2},
            ),
        }

        if endpoint_url or settings.S3_ENDPOINT_URL:
            client_kwargs["endpoint_url"] = endpoint_url or settings.S3_ENDPOINT_URL

        if settings.AWS_ACCESS_KEY_ID:
            client_kwargs["aws_access_key_id"] = settings.AWS_ACCESS_KEY_ID
            client_kwargs["aws_secret_access_key"] = settings.AWS_SECRET_ACCESS_KEY

        self.s3_client = boto3.client("s3", **client_kwargs)

    @staticmethod
    def build_upload_key(prefix: str, user_id: str, timestamp_us: int, safe_name: str) -> str:
        """Build S3 key for a user upload."""
        return f"{prefix}/{user_id}/{timestamp_us}-{safe_name}"

    def sign_upload(self, key: str, content_type: str, content_length: int) -> SignedUpload:
        """Generate a pre-signed PUT URL bound to key, type and length."""
        try:
            url = self.s3_client.generate_presigned_url(
                "put_object",
                Params={
                    "Bucket": self.bucket_name,
                    "Key": key,
                    "ContentType": content_type,
                    "ContentLength": content_length,
                },
                ExpiresIn=self.upload_expiry,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to generate presigned upload URL for {key}: {e}")
            raise CapabilityIssuerError() from e

        return SignedUpload(url=url, expires_in=self.upload_expiry)

    def list_keys(self, prefix: str) -> list[str]:
        """List object keys under a prefix, following pagination."""
        keys: list[str] = []
        try:
            paginator = self.s3_client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to list s3://{self.bucket_name}/{prefix}: {e}")
            raise CapabilityIssuerError("Storage listing failed") from e

        return keys
