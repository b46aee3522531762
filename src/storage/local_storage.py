# src/storage/local_storage.py
"""Local filesystem object storage (STORAGE_BACKEND=local, default)."""

from __future__ import annotations

from pathlib import Path

from storyloom.storage.base_object_storage import BaseObjectStorage


class LocalObjectStorage(BaseObjectStorage):
    """Store artifacts under a root directory."""

    def __init__(self, root: str | Path, public_base_url: str = "") -> None:
        """Initialize with a root directory.

        Args:
            root: Directory all object paths are resolved against.
            public_base_url: URL prefix for public links. Empty means file:// URIs.
        """
        self._root = Path(root).expanduser()
        self._public_base_url = public_base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        resolved = (self._root / path.lstrip("/")).resolve()
        if not resolved.is_relative_to(self._root.resolve()):
            raise ValueError(f"Object path escapes storage root: {path!r}")
        return resolved

    async def upload_file(
        self, path: str, content: bytes | str, content_type: str | None = None
    ) -> str:
        p = self._resolve(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            p.write_bytes(content)
        else:
            p.write_text(content, encoding="utf-8")
        return self.get_public_url(path)

    def get_public_url(self, path: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url}/{path.lstrip('/')}"
        return self._resolve(path).as_uri()

    async def list_files(self, prefix: str) -> list[str]:
        base = self._root.resolve()
        p = self._resolve(prefix)
        if p.is_file():
            return [prefix]
        if not p.is_dir():
            return []
        return sorted(
            entry.relative_to(base).as_posix()
            for entry in p.rglob("*")
            if entry.is_file()
        )

    async def download_file(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()
