"""
Optional storage backends that mirror crawled page records.
Supports file-based and Redis storage.
"""

import hashlib
import json
import logging
from pathlib import Path
from typing import Optional, Dict, Any
from datetime import datetime, timezone

import redis.asyncio as redis

from ..crawler.page import PageRecord
from ..utils.config import StorageConfig


class StorageError(Exception):
    """Custom exception for storage operations."""
    pass


def _url_hash(url: str) -> str:
    return hashlib.sha256(url.encode('utf-8')).hexdigest()


class StorageBackend:
    """Abstract base class for storage backends."""

    async def initialize(self):
        """Initialize the storage backend."""
        raise NotImplementedError

    async def store_page(self, page: PageRecord) -> bool:
        """Store a page record. Returns False if the write failed."""
        raise NotImplementedError

    async def get_page(self, url: str) -> Optional[PageRecord]:
        """Retrieve a page record by URL."""
        raise NotImplementedError

    async def page_exists(self, url: str) -> bool:
        """Check if a record exists for URL."""
        raise NotImplementedError

    async def get_stats(self) -> Dict[str, Any]:
        """Get storage statistics."""
        raise NotImplementedError

    async def close(self):
        """Close storage connections."""
        raise NotImplementedError


class FileStorageBackend(StorageBackend):
    """Writes one JSON document per page under a data directory."""

    def __init__(self, data_directory: str):
        self.data_directory = Path(data_directory)
        self.logger = logging.getLogger(__name__)
        self.index: Dict[str, str] = {}
        self.stats = {
            'total_stored': 0,
            'storage_errors': 0,
            'total_size_bytes': 0
        }

    async def initialize(self):
        """Create data directory structure."""
        try:
            (self.data_directory / 'pages').mkdir(parents=True, exist_ok=True)
            (self.data_directory / 'index').mkdir(exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to initialize file storage: {e}") from e

        self.logger.info(f"File storage initialized at {self.data_directory}")

    def _get_file_path(self, url: str) -> Path:
        """Generate file path for URL."""
        url_hash = _url_hash(url)
        # Use first 2 chars for directory structure
        return self.data_directory / 'pages' / url_hash[:2] / f"{url_hash}.json"

    async def store_page(self, page: PageRecord) -> bool:
        try:
            file_path = self._get_file_path(page.url)
            file_path.parent.mkdir(parents=True, exist_ok=True)

            data = page.to_dict()
            data['stored_at'] = datetime.now(timezone.utc).isoformat()

            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=2)

            self.stats['total_stored'] += 1
            self.stats['total_size_bytes'] += file_path.stat().st_size
            self.index[page.url] = str(file_path.relative_to(self.data_directory))

            self.logger.debug(f"Stored {page.url} to {file_path}")
            return True

        except (OSError, TypeError, ValueError) as e:
            self.stats['storage_errors'] += 1
            self.logger.error(f"Error storing page {page.url}: {e}")
            return False

    async def get_page(self, url: str) -> Optional[PageRecord]:
        file_path = self._get_file_path(url)
        if not file_path.exists():
            return None

        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        data.pop('stored_at', None)
        return PageRecord.from_dict(data)

    async def page_exists(self, url: str) -> bool:
        return self._get_file_path(url).exists()

    async def get_stats(self) -> Dict[str, Any]:
        return self.stats.copy()

    async def close(self):
        """Write the URL index."""
        try:
            index_file = self.data_directory / 'index' / 'url_index.json'
            with open(index_file, 'w', encoding='utf-8') as f:
                json.dump(self.index, f, ensure_ascii=False, indent=2)
        except OSError as e:
            self.logger.error(f"Error writing URL index: {e}")


class RedisStorageBackend(StorageBackend):
    """Keeps page records as JSON values in one Redis hash."""

    def __init__(self, config: Dict[str, Any], client: Optional[redis.Redis] = None):
        self.config = config
        self.pages_key = config.get('pages_key', 'crawlgraph:pages')
        self.redis_client = client
        self.logger = logging.getLogger(__name__)
        self.stats = {
            'total_stored': 0,
            'storage_errors': 0
        }

    async def initialize(self):
        """Connect and verify the Redis server is reachable."""
        if self.redis_client is None:
            self.redis_client = redis.Redis(
                host=self.config.get('host', 'localhost'),
                port=self.config.get('port', 6379),
                db=self.config.get('db', 0),
                password=self.config.get('password')
            )

        try:
            await self.redis_client.ping()
        except redis.RedisError as e:
            raise StorageError(f"Failed to connect to Redis: {e}") from e

        self.logger.info(f"Redis storage initialized, pages hash: {self.pages_key}")

    async def store_page(self, page: PageRecord) -> bool:
        try:
            await self.redis_client.hset(self.pages_key, page.url, json.dumps(page.to_dict()))
            self.stats['total_stored'] += 1
            return True
        except redis.RedisError as e:
            self.stats['storage_errors'] += 1
            self.logger.error(f"Error storing page {page.url}: {e}")
            return False

    async def get_page(self, url: str) -> Optional[PageRecord]:
        raw = await self.redis_client.hget(self.pages_key, url)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode('utf-8')
        return PageRecord.from_dict(json.loads(raw))

    async def page_exists(self, url: str) -> bool:
        return bool(await self.redis_client.hexists(self.pages_key, url))

    async def get_stats(self) -> Dict[str, Any]:
        stats = self.stats.copy()
        try:
            stats['pages_in_hash'] = await self.redis_client.hlen(self.pages_key)
        except redis.RedisError as e:
            self.logger.error(f"Error getting stats: {e}")
        return stats

    async def close(self):
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.logger.info("Redis connection closed")


def create_storage_backend(config: StorageConfig) -> Optional[StorageBackend]:
    """Instantiate the backend named by the storage configuration, if any."""
    if not config.type:
        return None

    backend_type = config.type.lower()
    if backend_type == 'file':
        if 'data_directory' not in config.file:
            raise StorageError("File storage requires 'data_directory'")
        return FileStorageBackend(config.file['data_directory'])
    if backend_type == 'redis':
        return RedisStorageBackend(config.redis)

    raise StorageError(f"Unknown storage type: {backend_type}")
