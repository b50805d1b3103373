"""
Storage layer for crawl results.
"""

from .page_map import PageMap
from .database import (
    StorageBackend, StorageError, FileStorageBackend, RedisStorageBackend, create_storage_backend
)

__all__ = [
    'PageMap', 'StorageBackend', 'StorageError',
    'FileStorageBackend', 'RedisStorageBackend', 'create_storage_backend'
]
