# src/storage/storage_factory.py
"""Factory: instantiate object storage from configuration."""

from __future__ import annotations

from storyloom.config.settings import Settings
from storyloom.storage.base_object_storage import BaseObjectStorage
from storyloom.storage.local_storage import LocalObjectStorage


def create_object_storage(settings: Settings) -> BaseObjectStorage:
    """Create the configured object storage backend.

    Raises:
        ValueError: If the backend is not supported.
    """
    if settings.storage_backend == "local":
        return LocalObjectStorage(
            root=settings.storage_local_root,
            public_base_url=settings.storage_public_base_url,
        )

    if settings.storage_backend == "s3":
        from storyloom.storage.s3_storage import S3ObjectStorage
        if not settings.storage_s3_bucket:
            raise ValueError(
                "STORAGE_S3_BUCKET must be set when STORAGE_BACKEND=s3"
            )
        return S3ObjectStorage(
            bucket=settings.storage_s3_bucket,
            prefix=settings.storage_s3_prefix,
            region=settings.storage_s3_region or None,
            public_base_url=settings.storage_public_base_url,
        )

    raise ValueError(f"Unsupported storage backend: {settings.storage_backend!r}")
