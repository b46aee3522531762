# src/storage/s3_storage.py
"""S3-compatible object storage (STORAGE_BACKEND=s3).

Supports AWS S3, MinIO, and other S3-compatible storage.
Requires 'boto3' package: pip install boto3.
"""

from __future__ import annotations

import logging

from storyloom.storage.base_object_storage import BaseObjectStorage

logger = logging.getLogger(__name__)


class S3ObjectStorage(BaseObjectStorage):
    """Store artifacts in an S3 bucket."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "storyloom/",
        region: str | None = None,
        endpoint_url: str | None = None,
        public_base_url: str = "",
    ) -> None:
        """Initialize S3 storage.

        Args:
            bucket: S3 bucket name.
            prefix: Key prefix for all objects (e.g. "storyloom/").
            region: AWS region (optional, uses boto3 default if not set).
            endpoint_url: Custom endpoint for MinIO/compatible storage.
            public_base_url: URL prefix for public links (e.g. a CDN).
        """
        try:
            import boto3
        except ImportError as e:
            raise ImportError(
                "boto3 package required for S3 storage: pip install boto3"
            ) from e

        kwargs: dict = {}
        if region:
            kwargs["region_name"] = region
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url

        self._s3 = boto3.client("s3", **kwargs)
        self._bucket = bucket
        self._prefix = prefix.rstrip("/") + "/" if prefix else ""
        self._region = region
        self._public_base_url = public_base_url.rstrip("/")

    def _full_key(self, path: str) -> str:
        """Build the full S3 key from a relative path."""
        return f"{self._prefix}{path.lstrip('/')}"

    async def upload_file(
        self, path: str, content: bytes | str, content_type: str | None = None
    ) -> str:
        key = self._full_key(path)
        body = content.encode("utf-8") if isinstance(content, str) else content
        extra = {"ContentType": content_type} if content_type else {}
        self._s3.put_object(Bucket=self._bucket, Key=key, Body=body, **extra)
        logger.debug("S3 upload: s3://%s/%s (%d bytes)", self._bucket, key, len(body))
        return self.get_public_url(path)

    def get_public_url(self, path: str) -> str:
        key = self._full_key(path)
        if self._public_base_url:
            return f"{self._public_base_url}/{key}"
        if self._region:
            return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"
        return f"https://{self._bucket}.s3.amazonaws.com/{key}"

    async def list_files(self, prefix: str) -> list[str]:
        full_prefix = self._full_key(prefix)
        paginator = self._s3.get_paginator("list_objects_v2")
        items: list[str] = []
        for page in paginator.paginate(Bucket=self._bucket, Prefix=full_prefix):
            for obj in page.get("Contents", []):
                items.append(obj["Key"][len(self._prefix):])
        return sorted(items)

    async def download_file(self, path: str) -> bytes:
        response = self._s3.get_object(Bucket=self._bucket, Key=self._full_key(path))
        return response["Body"].read()
