"""Storage module for object storage operations."""

from mediahub.storage.blob_storage import BlobStorage, S3Storage, SignedUpload

__all__ = ["BlobStorage", "S3Storage", "SignedUpload"]
