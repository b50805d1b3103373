#!/usr/bin/env python3
"""
Command-line entry point for crawlgraph.
"""

import asyncio
import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from crawlgraph.crawler.scheduler import CrawlerScheduler
from crawlgraph.storage.database import create_storage_backend
from crawlgraph.storage.page_map import PageMap
from crawlgraph.utils.config import (
    Config, ConfigurationError, CrawlConfiguration, DEFAULT_USER_AGENT, load_config
)
from crawlgraph.utils.logger import setup_logging
from crawlgraph.utils.monitoring import CrawlerMonitor


class CrawlerApp:
    """Main application class for the crawler."""

    def __init__(self):
        self.scheduler: Optional[CrawlerScheduler] = None
        self.logger = logging.getLogger(__name__)
        self._shutdown_event: Optional[asyncio.Event] = None

    def setup_signal_handlers(self):
        """Stop the crawl cooperatively on SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()

        def request_stop(signum):
            self.logger.info(f"Received signal {signum}, finishing in-flight pages...")
            self.request_shutdown()

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, request_stop, signum)
            except NotImplementedError:
                # add_signal_handler is unavailable on Windows event loops
                pass

    def request_shutdown(self):
        """Ask a running crawl to stop after the pages currently in flight."""
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    async def run(self, config: Config) -> PageMap:
        """Run one crawl described by ``config``."""
        crawler = config.crawler
        self.logger.info("=== CRAWLGRAPH STARTING ===")
        self.logger.info(f"Seed URLs: {crawler.seed_urls}")
        self.logger.info(f"Depth limit: {crawler.depth_limit}")
        self.logger.info(f"Workers: {crawler.workers}")
        self.logger.info(f"Delay: {crawler.delay}s, obey robots.txt: {crawler.obey_robots_txt}")

        monitor = CrawlerMonitor(
            enable_prometheus=config.monitoring.metrics_enabled,
            prometheus_port=config.monitoring.prometheus_port
        )
        monitor.start_server()

        self.scheduler = CrawlerScheduler(
            crawler,
            storage=create_storage_backend(config.storage),
            monitor=monitor
        )
        self._shutdown_event = asyncio.Event()
        self.setup_signal_handlers()

        crawl_task = asyncio.create_task(self.scheduler.run())
        shutdown_task = asyncio.create_task(self._stop_on_shutdown())

        try:
            return await crawl_task
        finally:
            shutdown_task.cancel()
            await asyncio.gather(shutdown_task, return_exceptions=True)
            self.logger.info("=== CRAWLGRAPH FINISHED ===")

    async def _stop_on_shutdown(self):
        """Wait for a shutdown signal, then let the scheduler drain what is in flight."""
        await self._shutdown_event.wait()
        await self.scheduler.stop()


def build_config(args: argparse.Namespace) -> Config:
    """Merge a YAML config file (if any) with command-line overrides."""
    if args.config:
        config = load_config(args.config)
    else:
        config = Config(crawler=CrawlConfiguration(seed_urls=[]))

    crawler = config.crawler
    if args.urls:
        crawler.seed_urls = list(args.urls)
    if args.depth_limit is not None:
        crawler.depth_limit = args.depth_limit
    if args.delay is not None:
        crawler.delay = args.delay
    if args.workers is not None:
        crawler.workers = args.workers
    if args.user_agent:
        crawler.user_agent = args.user_agent
    if args.obey_robots_txt:
        crawler.obey_robots_txt = True
    if args.discard_page_bodies:
        crawler.discard_page_bodies = True
    if args.skip:
        crawler.skip_links_like(*args.skip)
    if args.log_level:
        config.logging.level = args.log_level

    crawler.validate()
    return config


def write_results(pages: PageMap, output: Optional[str]):
    """Print one line per page, or dump the page map as JSON."""
    if output:
        summary = {
            url: {key: value for key, value in record.items() if key != 'body'}
            for url, record in pages.to_dict().items()
        }
        Path(output).write_text(json.dumps(summary, indent=2, ensure_ascii=False), encoding='utf-8')
        print(f"Wrote {len(pages)} pages to {output}")
        return

    for url in sorted(pages, key=lambda u: (pages[u].depth, u)):
        page = pages[url]
        status = page.fetch_error or (f"-> {page.redirected_to}" if page.redirected_to else page.status_code)
        print(f"{page.depth}\t{url}\t{status}")
    print(f"{len(pages)} pages")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="crawlgraph: crawl a site and print its page graph",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py https://example.com/                   # Crawl one site
  python main.py --config config.yaml                   # Settings from YAML
  python main.py https://example.com/ --depth-limit 2   # Stop two links from the seed
  python main.py https://example.com/ --skip '\\.pdf$' --output pages.json
        """
    )

    parser.add_argument('urls', nargs='*', help='Seed URLs (override the config file)')
    parser.add_argument('--config', help='Path to YAML configuration file')
    parser.add_argument('--depth-limit', type=int, help='Maximum link depth from the seeds')
    parser.add_argument('--delay', type=float, help="Seconds each worker waits before a request")
    parser.add_argument('--workers', type=int, help='Number of concurrent fetch workers')
    parser.add_argument('--user-agent', help=f'User-Agent header (default: {DEFAULT_USER_AGENT})')
    parser.add_argument('--obey-robots-txt', action='store_true', help='Honour robots.txt Disallow rules')
    parser.add_argument('--discard-page-bodies', action='store_true', help='Drop bodies after link extraction')
    parser.add_argument('--skip', action='append', metavar='REGEX', help='Skip links whose path matches')
    parser.add_argument('--output', help='Write the page map as JSON to this file')
    parser.add_argument('--log-level', help='Logging level (default: INFO)')
    parser.add_argument('--version', action='version', version='crawlgraph 1.0.0')

    args = parser.parse_args()

    try:
        config = build_config(args)
    except (ConfigurationError, FileNotFoundError) as e:
        print(f"Error: {e}")
        return 1

    setup_logging(config.logging)

    app = CrawlerApp()
    try:
        pages = asyncio.run(app.run(config))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1

    write_results(pages, args.output)
    return 0


if __name__ == '__main__':
    sys.exit(main())
