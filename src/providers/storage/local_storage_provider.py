"""Filesystem object storage.

Stores original uploads under a root directory (``data/uploads`` by
default) and returns ``file://`` URIs.  Blocking file I/O runs in a worker
thread.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from src.interfaces.object_storage_provider import IObjectStorageProvider
from src.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)


class LocalStorageProvider(IObjectStorageProvider):
    """Object storage backed by a local directory tree."""

    def __init__(self, root_dir: str | Path = "data/uploads") -> None:
        self._root = Path(root_dir).resolve()

    async def put(self, data: bytes, path: str) -> str:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as exc:
            raise StorageError(
                f"Failed to store {path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("object_stored", path=path, size=len(data))
        return target.as_uri()

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(target.unlink, missing_ok=True)
        except OSError as exc:
            raise StorageError(
                f"Failed to delete {path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("object_deleted", path=path)

    def get_provider_name(self) -> str:
        return "local_storage"

    def _resolve(self, path: str) -> Path:
        target = (self._root / path).resolve()
        if not target.is_relative_to(self._root):
            raise StorageError(
                f"Path escapes the storage root: {path}",
                provider_name=self.get_provider_name(),
            )
        return target

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
