"""
Crawl statistics and Prometheus metrics.
"""

import time
import logging
from typing import Any, Dict, Optional
from dataclasses import dataclass, field

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server


@dataclass
class CrawlStats:
    """Statistics for crawl operations."""
    start_time: float = field(default_factory=time.time)
    pages_crawled: int = 0
    fetch_errors: int = 0
    redirects: int = 0
    links_enqueued: int = 0
    robots_blocked: int = 0
    total_bytes_downloaded: int = 0
    average_response_time: float = 0.0

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.pages_crawled / elapsed_minutes if elapsed_minutes > 0 else 0


class CrawlerMonitor:
    """
    Tracks CrawlStats for one crawl and mirrors them to Prometheus metrics.

    Each monitor owns its own CollectorRegistry so that several crawls in one
    process do not collide on metric names.
    """

    def __init__(self, enable_prometheus: bool = True, prometheus_port: Optional[int] = None):
        self.logger = logging.getLogger(__name__)
        self.stats = CrawlStats()
        self.enable_prometheus = enable_prometheus
        self.prometheus_port = prometheus_port
        self.registry: Optional[CollectorRegistry] = None
        self.metrics: Dict[str, Any] = {}

        if self.enable_prometheus:
            self._setup_prometheus()

    def _setup_prometheus(self):
        self.registry = CollectorRegistry()
        self.metrics = {
            'pages': Counter(
                'crawlgraph_pages',
                'Pages recorded in the page map',
                ['outcome'],
                registry=self.registry
            ),
            'links_enqueued': Counter(
                'crawlgraph_links_enqueued',
                'Links claimed and pushed to the frontier',
                registry=self.registry
            ),
            'robots_blocked': Counter(
                'crawlgraph_robots_blocked',
                'Links rejected by robots.txt',
                registry=self.registry
            ),
            'bytes_downloaded': Counter(
                'crawlgraph_bytes_downloaded',
                'Body bytes downloaded',
                registry=self.registry
            ),
            'response_time_seconds': Histogram(
                'crawlgraph_response_time_seconds',
                'Response time for page requests',
                registry=self.registry
            ),
            'frontier_size': Gauge(
                'crawlgraph_frontier_size',
                'URLs waiting in the frontier',
                registry=self.registry
            ),
            'in_flight': Gauge(
                'crawlgraph_in_flight',
                'Frontier entries being processed',
                registry=self.registry
            )
        }

    def start_server(self):
        """Expose the registry over HTTP when a port is configured."""
        if not self.enable_prometheus or self.prometheus_port is None:
            return
        start_http_server(self.prometheus_port, registry=self.registry)
        self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")

    def record_page(self, page):
        """Record a finished page record."""
        self.stats.pages_crawled += 1
        n = self.stats.pages_crawled
        self.stats.average_response_time += (page.fetch_time - self.stats.average_response_time) / n

        if page.fetch_error is not None:
            outcome = 'error'
            self.stats.fetch_errors += 1
        elif page.redirected_to is not None:
            outcome = 'redirect'
            self.stats.redirects += 1
        else:
            outcome = 'ok'

        size = len(page.body.encode('utf-8')) if page.body else 0
        self.stats.total_bytes_downloaded += size

        if self.enable_prometheus:
            self.metrics['pages'].labels(outcome=outcome).inc()
            self.metrics['response_time_seconds'].observe(page.fetch_time)
            self.metrics['bytes_downloaded'].inc(size)

    def record_links_enqueued(self, count: int):
        self.stats.links_enqueued += count
        if self.enable_prometheus and count:
            self.metrics['links_enqueued'].inc(count)

    def record_robots_blocked(self, count: int):
        self.stats.robots_blocked += count
        if self.enable_prometheus and count:
            self.metrics['robots_blocked'].inc(count)

    def update_frontier(self, queued: int, in_flight: int):
        if self.enable_prometheus:
            self.metrics['frontier_size'].set(queued)
            self.metrics['in_flight'].set(in_flight)

    def get_sample_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        if self.registry is None:
            return None
        return self.registry.get_sample_value(name, labels or {})

    def get_summary(self) -> Dict[str, Any]:
        return {
            'pages_crawled': self.stats.pages_crawled,
            'fetch_errors': self.stats.fetch_errors,
            'redirects': self.stats.redirects,
            'links_enqueued': self.stats.links_enqueued,
            'robots_blocked': self.stats.robots_blocked,
            'total_bytes_downloaded': self.stats.total_bytes_downloaded,
            'average_response_time': self.stats.average_response_time,
            'elapsed_time': self.stats.elapsed_time,
            'pages_per_minute': self.stats.pages_per_minute
        }
