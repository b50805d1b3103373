"""
Crawler scheduler: seeds the frontier, runs the fetch workers and builds the page map.
"""

import asyncio
import logging
import time
from typing import List, Optional

from .fetcher import FetchResult, WebFetcher
from .link_filter import LinkFilterChain
from .page import PageRecord, REDIRECT_STATUSES
from .parser import ContentParser
from .robots import RobotsPolicy
from .url_frontier import FrontierEntry, URLFrontier
from .urls import canonicalize
from ..storage.database import StorageBackend
from ..storage.page_map import PageMap
from ..utils.config import CrawlConfiguration
from ..utils.logger import get_crawler_logger
from ..utils.monitoring import CrawlerMonitor


class CrawlerScheduler:
    """
    Coordinates one crawl run.

    Workers pull entries from the frontier, fetch them through the transport,
    turn the response into a PageRecord, publish the page's accepted links
    back into the frontier and hand the record to the user hooks and the
    page map. The run ends when the frontier is drained: nothing queued and
    nothing in flight.
    """

    def __init__(self, config: CrawlConfiguration, fetcher=None,
                 storage: Optional[StorageBackend] = None,
                 monitor: Optional[CrawlerMonitor] = None,
                 parser: Optional[ContentParser] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)

        # Components
        self.fetcher = fetcher
        self._owns_fetcher = fetcher is None
        self.parser = parser or ContentParser()
        self.storage = storage
        self.monitor = monitor or CrawlerMonitor(enable_prometheus=False)
        self.frontier: Optional[URLFrontier] = None
        self.robots: Optional[RobotsPolicy] = None
        self.link_filter: Optional[LinkFilterChain] = None

        # Crawl state
        self.pages = PageMap()
        self.is_running = False
        self.workers: List[asyncio.Task] = []

    async def initialize(self):
        """Validate the configuration and build the per-run components."""
        self.config.validate()

        if self.fetcher is None:
            self.fetcher = WebFetcher(
                user_agent=self.config.user_agent,
                request_timeout=self.config.request_timeout,
                max_concurrent_requests=self.config.workers,
                max_content_size=self.config.max_content_size
            )

        self.frontier = URLFrontier()
        self.pages = PageMap()
        if self.config.obey_robots_txt:
            self.robots = RobotsPolicy(self.fetcher, self.config.user_agent)
        self.link_filter = LinkFilterChain(self.config, self.robots)

        if self.storage is not None:
            await self.storage.initialize()

        self.logger.info("Crawler scheduler initialized")

    async def add_seed_urls(self):
        """Claim every seed URL at depth 0."""
        added_count = 0
        for url in self.config.seed_urls:
            if await self.frontier.claim_and_enqueue(canonicalize(url), depth=0):
                added_count += 1
        self.logger.info(f"Added {added_count} seed URLs to frontier")

    async def run(self) -> PageMap:
        """
        Crawl until the frontier drains or ``stop()`` is called.

        Returns:
            The page map of every URL claimed during the run

        Raises:
            ConfigurationError: If the configuration is invalid (nothing is fetched)
            Exception: Whatever a user hook raised; the crawl is aborted
        """
        if self.is_running:
            raise RuntimeError("Crawler is already running")

        await self.initialize()
        self.config.lock()
        self.is_running = True

        try:
            await self.add_seed_urls()

            self.workers = [
                asyncio.create_task(self._worker(f"worker-{i}"), name=f"crawlgraph-worker-{i}")
                for i in range(self.config.workers)
            ]
            self.logger.info(f"Started crawling with {len(self.workers)} workers")

            done, pending = await asyncio.wait(self.workers, return_when=asyncio.FIRST_EXCEPTION)

            failed = [task for task in done if not task.cancelled() and task.exception() is not None]
            if failed:
                await self.frontier.stop()
                await self._cleanup_workers()
                raise failed[0].exception()

            for callback in self.config.after_crawl_callbacks:
                callback(self.pages)

            self._log_final_stats()
            return self.pages

        finally:
            self.is_running = False
            self.config.unlock()
            await self._cleanup_workers()
            await self.close()

    async def _worker(self, worker_id: str):
        """Process frontier entries until the frontier reports drain or stop."""
        worker_logger = get_crawler_logger(__name__, worker=worker_id)
        worker_logger.debug("Worker started")

        while True:
            entry = await self.frontier.dequeue()
            if entry is None:
                break

            try:
                await self._process_entry(entry, worker_logger)
            finally:
                await self.frontier.task_done()
                self.monitor.update_frontier(self.frontier.queued, self.frontier.in_flight)

        worker_logger.debug("Worker finished")

    async def _process_entry(self, entry: FrontierEntry, worker_logger):
        """Fetch one entry, publish its links and record it."""
        if self.config.delay > 0:
            await asyncio.sleep(self.config.delay)

        result = await self._fetch(entry.url)
        page = self._build_page(entry, result)

        if page.is_redirect:
            await self._follow_redirect(page, entry, worker_logger)
        else:
            await self._publish_links(page, worker_logger)

        self._run_page_hooks(page)
        self.monitor.record_page(page)

        if self.config.discard_page_bodies:
            page = page.without_body()

        self.pages.add(page)
        if self.storage is not None:
            await self.storage.store_page(page)

        worker_logger.debug(f"Processed {page.url} (status={page.status_code}, depth={page.depth})")

    async def _fetch(self, url: str) -> FetchResult:
        """Call the transport; transport failures become error results."""
        start_time = time.time()
        try:
            return await self.fetcher.fetch(url)
        except Exception as e:
            self.logger.warning(f"Transport failed for {url}: {e}")
            return FetchResult(
                url=url,
                status_code=0,
                error=f"{type(e).__name__}: {e}",
                fetch_time=time.time() - start_time
            )

    def _build_page(self, entry: FrontierEntry, result: FetchResult) -> PageRecord:
        """Turn a transport result into a PageRecord for the entry."""
        common = dict(
            url=entry.url,
            depth=entry.depth,
            referer=entry.referer,
            status_code=result.status_code,
            headers=result.headers or {},
            content_type=result.content_type,
            body=result.content,
            fetch_time=result.fetch_time
        )

        if result.error:
            return PageRecord(fetch_error=result.error, **common)

        if result.status_code in REDIRECT_STATUSES and result.location:
            target = canonicalize(result.location, entry.url)
            if target is not None:
                return PageRecord(redirected_to=target, **common)
            return PageRecord(fetch_error=f"Invalid redirect location: {result.location!r}", **common)

        if result.status_code >= 400:
            return PageRecord(fetch_error=f"HTTP {result.status_code}", **common)

        if result.content_type and 'html' not in result.content_type:
            return PageRecord(fetch_error=f"Non-HTML content type: {result.content_type}", **common)

        if result.content is None:
            return PageRecord(fetch_error="Empty or oversized response body", **common)

        try:
            parsed = self.parser.parse(entry.url, result.content)
        except Exception as e:
            self.logger.warning(f"Failed to parse {entry.url}: {e}")
            return PageRecord(fetch_error=f"Parse error: {e}", **common)

        for href in parsed.invalid_links:
            self.logger.debug(f"Dropping unusable link {href!r} on {entry.url}")
            for callback in self.config.invalid_link_callbacks:
                callback(href, entry.url)

        return PageRecord(links=tuple(parsed.links), doc=parsed.doc, **common)

    async def _follow_redirect(self, page: PageRecord, entry: FrontierEntry, worker_logger):
        """
        Queue a redirect target as the same hop as the redirecting page:
        same depth, same referer.
        """
        target = page.redirected_to
        if entry.redirects >= self.config.redirect_limit:
            worker_logger.warning(f"Redirect limit ({self.config.redirect_limit}) reached at {page.url}")
            return

        if not await self.link_filter.accepts_redirect(target):
            worker_logger.debug(f"Not following redirect {page.url} -> {target}")
            return

        if await self.frontier.claim_and_enqueue(target, entry.depth, entry.referer,
                                                 redirects=entry.redirects + 1):
            self.monitor.record_links_enqueued(1)

    async def _publish_links(self, page: PageRecord, worker_logger):
        blocked_before = self.link_filter.stats['rejected_robots']
        links = await self.link_filter.select_links(page)
        self.monitor.record_robots_blocked(self.link_filter.stats['rejected_robots'] - blocked_before)

        added_count = 0
        for link in links:
            if await self.frontier.claim_and_enqueue(link, page.depth + 1, page.url):
                added_count += 1

        self.monitor.record_links_enqueued(added_count)
        if added_count:
            worker_logger.debug(f"Queued {added_count} new URLs from {page.url}")

    def _run_page_hooks(self, page: PageRecord):
        for callback in self.config.page_callbacks:
            callback(page)

        for patterns, callback in self.config.pattern_callbacks:
            if any(pattern.search(page.url) for pattern in patterns):
                callback(page)

    def _log_final_stats(self):
        summary = self.monitor.get_summary()
        frontier_stats = self.frontier.get_stats()

        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"Pages recorded: {len(self.pages)}")
        self.logger.info(f"URLs claimed: {frontier_stats['total_claimed']}")
        self.logger.info(f"Fetch errors: {summary['fetch_errors']}")
        self.logger.info(f"Redirects: {summary['redirects']}")
        self.logger.info(f"Total time: {summary['elapsed_time']:.2f} seconds")
        self.logger.info(f"Average rate: {summary['pages_per_minute']:.1f} pages/min")
        self.logger.info(f"Link filter stats: {self.link_filter.get_stats()}")
        if self.robots is not None:
            self.logger.info(f"Robots stats: {self.robots.get_stats()}")

    async def stop(self):
        """Stop after the pages currently being fetched; run() returns the partial page map."""
        self.logger.info("Stopping crawler...")
        if self.frontier is not None:
            await self.frontier.stop()

    async def _cleanup_workers(self):
        """Cancel and cleanup worker tasks."""
        if self.workers:
            for worker in self.workers:
                if not worker.done():
                    worker.cancel()

            await asyncio.gather(*self.workers, return_exceptions=True)
            self.workers.clear()

    async def close(self):
        """Close connections owned by the scheduler."""
        if self._owns_fetcher and isinstance(self.fetcher, WebFetcher):
            await self.fetcher.close()

        if self.storage is not None:
            await self.storage.close()

    def get_stats(self):
        """Get current crawl statistics."""
        stats = self.monitor.get_summary()
        stats['is_running'] = self.is_running
        if self.frontier is not None:
            stats.update(self.frontier.get_stats())
        return stats
