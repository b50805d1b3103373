"""
crawlgraph

A focused web crawler that builds a deduplicated page graph from seed URLs.
"""

from .core import crawl, run
from .crawler.page import PageRecord
from .storage.page_map import PageMap
from .utils.config import ConfigurationError, CrawlConfiguration

__version__ = "1.0.0"
__author__ = "Alex Nguyen"
__description__ = "A focused web crawler that builds a deduplicated page graph from seed URLs"

__all__ = [
    'crawl', 'run',
    'CrawlConfiguration', 'ConfigurationError',
    'PageRecord', 'PageMap'
]
