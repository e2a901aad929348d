"""Object storage providers.

LocalStorageProvider keeps original uploads on the local filesystem so a
failed ingestion run can be retried from the stored bytes.
"""

from src.providers.storage.local_storage_provider import LocalStorageProvider

__all__ = ["LocalStorageProvider"]
