# src/storage/base_object_storage.py
"""Abstract object storage interface for generated artifacts."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseObjectStorage(ABC):
    """Unified interface for artifact storage backends."""

    @abstractmethod
    async def upload_file(
        self, path: str, content: bytes | str, content_type: str | None = None
    ) -> str:
        """Store content at ``path``; returns its public URL."""

    @abstractmethod
    def get_public_url(self, path: str) -> str:
        """Public URL for an object path."""

    @abstractmethod
    async def list_files(self, prefix: str) -> list[str]:
        """Object paths under ``prefix``, sorted."""

    @abstractmethod
    async def download_file(self, path: str) -> bytes:
        """Read an object's content."""
