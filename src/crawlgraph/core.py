"""
Entry points: build a CrawlConfiguration, hand it to run() or crawl().
"""

import asyncio
from typing import Optional

from .crawler.scheduler import CrawlerScheduler
from .storage.database import StorageBackend
from .storage.page_map import PageMap
from .utils.config import CrawlConfiguration
from .utils.monitoring import CrawlerMonitor


async def run(config: CrawlConfiguration, fetcher=None,
              storage: Optional[StorageBackend] = None,
              monitor: Optional[CrawlerMonitor] = None) -> PageMap:
    """
    Crawl from the configured seeds until no work remains.

    Args:
        config: Seeds, options and hooks for the run
        fetcher: Transport to use instead of a fresh WebFetcher
        storage: Backend that mirrors every page record
        monitor: Statistics/metrics collector

    Returns:
        PageMap of canonical URL -> PageRecord
    """
    scheduler = CrawlerScheduler(config, fetcher=fetcher, storage=storage, monitor=monitor)
    return await scheduler.run()


def crawl(config: CrawlConfiguration, **kwargs) -> PageMap:
    """Synchronous wrapper around run() for callers without an event loop."""
    return asyncio.run(run(config, **kwargs))
