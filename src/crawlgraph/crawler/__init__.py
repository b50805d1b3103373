"""
Web crawler core components.
"""

from .url_frontier import URLFrontier, FrontierEntry
from .fetcher import WebFetcher, FetchResult
from .parser import ContentParser, ParsedDocument
from .page import PageRecord
from .robots import RobotsPolicy
from .link_filter import LinkFilterChain
from .urls import canonicalize

__all__ = [
    'URLFrontier', 'FrontierEntry',
    'WebFetcher', 'FetchResult',
    'ContentParser', 'ParsedDocument',
    'PageRecord', 'RobotsPolicy', 'LinkFilterChain', 'canonicalize'
]
