"""Abstract base class for raw-file object storage.

The original upload bytes are stored before extraction starts so a failed
run can be retried from storage.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: LocalStorageProvider (src/providers/storage/)
class IObjectStorageProvider(ABC):
    """Contract for blob storage keyed by a relative path."""

    @abstractmethod
    async def put(self, data: bytes, path: str) -> str:
        """Store *data* under *path* and return a URL or URI for it.

        Raises
        ------
        src.utils.errors.StorageError
            If the write fails or *path* escapes the storage root.
        """

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Remove the object at *path*.  Missing objects are ignored."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"local_storage"``."""
